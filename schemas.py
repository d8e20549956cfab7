"""
Database Schemas for the store backend

Each Pydantic model maps to a MongoDB collection (lowercased class name).
References to other documents are stored as ObjectId.

Collections:
- user (addresses are embedded)
- product
- order
- review
- cart
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "shipped", "delivered"]
ORDER_STATUSES = ("pending", "shipped", "delivered")


class CamelModel(BaseModel):
    """Request bodies arrive in camelCase; fields stay snake_case in Python and Mongo."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(CamelModel):
    """Embedded in user.addresses"""
    label: str = Field(..., min_length=1, description="Home, Work, ...")
    full_name: str = Field(..., min_length=1)
    street_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    is_default: bool = False


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    clerk_id: str = Field(..., description="External identity id")
    email: EmailStr = Field(..., description="Email address")
    name: str = Field("User", description="Display name")
    image_url: Optional[str] = None
    password_hash: Optional[str] = Field(None, description="BCrypt hash, local accounts only")
    is_admin: bool = Field(False, description="Admin user flag")
    addresses: List[Dict[str, Any]] = Field(default_factory=list)
    wishlist: List[ObjectId] = Field(default_factory=list, description="Product ids")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., min_length=1, description="Product name")
    category: str = Field(..., min_length=1, description="Product category")
    price: float = Field(..., ge=0, description="Price in USD")
    stock: int = Field(..., ge=0, description="Units in stock")
    description: str = Field("", description="Product description")
    images: List[str] = Field(default_factory=list, max_length=3, description="Image URLs")
    average_rating: float = Field(0, ge=0, le=5)
    total_reviews: int = Field(0, ge=0)


class ShippingAddress(CamelModel):
    full_name: str = Field(..., min_length=1)
    street_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)


class OrderItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product_id: ObjectId
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: ObjectId
    clerk_id: str
    order_items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_result: Optional[Dict[str, Any]] = None
    total_price: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class Review(BaseModel):
    """
    Reviews collection schema
    Collection name: "review"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product_id: ObjectId
    user_id: ObjectId
    order_id: ObjectId
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class CartItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product_id: ObjectId
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    """
    Carts collection schema
    Collection name: "cart"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: ObjectId
    clerk_id: str
    items: List[CartItem] = Field(default_factory=list)
