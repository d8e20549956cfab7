import logging
import os
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import PyMongoError

import inngest.fast_api

import events
import storage
from auth import create_token, get_current_user, new_clerk_id, is_admin_email, public_user, pwd_context, require_admin
from config import ADMIN_DIST_PATH, APP_ENV, CORS_ORIGINS, DATABASE_URL, LOG_LEVEL, PORT
from database import db, create_document, get_documents, now, serialize_doc
from schemas import (
    Address,
    CamelModel,
    Cart,
    Order as OrderSchema,
    OrderItem,
    OrderStatus,
    Product as ProductSchema,
    Review as ReviewSchema,
    ShippingAddress,
    User as UserSchema,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# App init
app = FastAPI(title="E-Commerce API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Database error"})


# Utils
def object_id(value: str, what: str = "id") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {what}")
    return ObjectId(value)


def require_db():
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")


def get_product_or_404(product_id: ObjectId) -> dict:
    product = db["product"].find_one({"_id": product_id})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Request models
class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class OrderItemRequest(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class OrderCreateRequest(CamelModel):
    items: List[OrderItemRequest] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddress] = None
    address_id: Optional[str] = None
    payment_result: Optional[Dict[str, Any]] = None


class StatusUpdateRequest(CamelModel):
    status: OrderStatus


class WishlistRequest(CamelModel):
    product_id: str


class CartItemRequest(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartQuantityRequest(CamelModel):
    quantity: int = Field(..., ge=1)


class ReviewCreateRequest(CamelModel):
    product_id: str
    order_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


# Routes
@app.get("/")
def root():
    return {"message": "E-Commerce API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if DATABASE_URL else "Not Set",
        "database_name": None,
        "collections": [],
    }
    if db is None:
        return response
    response["database_name"] = db.name
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "Connected"
    except PyMongoError as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


@app.on_event("startup")
def create_indexes():
    if db is None:
        return
    try:
        db["user"].create_index("clerk_id", unique=True)
        db["user"].create_index("email")
        db["order"].create_index([("user_id", 1), ("created_at", -1)])
        db["review"].create_index([("product_id", 1), ("user_id", 1)], unique=True)
        db["cart"].create_index("user_id", unique=True)
    except PyMongoError as e:
        logger.error("Could not create indexes: %s", e)


# Auth
@app.post("/api/auth/signup")
def signup(req: SignupRequest):
    require_db()
    existing = db["user"].find_one({"email": req.email})
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = UserSchema(
        clerk_id=new_clerk_id(),
        email=req.email,
        name=req.name,
        password_hash=pwd_context.hash(req.password),
        is_admin=is_admin_email(req.email),
    )
    user_id = create_document("user", user)
    created = db["user"].find_one({"_id": ObjectId(user_id)})
    logger.info("Local account created for %s", req.email)
    return {"token": create_token(created), "user": public_user(created)}


@app.post("/api/auth/login")
def login(req: LoginRequest):
    require_db()
    user = db["user"].find_one({"email": req.email})
    if not user or not pwd_context.verify(req.password, user.get("password_hash") or ""):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


@app.get("/api/users/me")
def me(user=Depends(get_current_user)):
    return public_user(user)


# Products
@app.get("/api/products")
def list_products(search: Optional[str] = None, category: Optional[str] = None):
    require_db()
    query: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"category": {"$regex": pattern, "$options": "i"}},
        ]
    if category and category.lower() != "all":
        query["category"] = {"$regex": f"^{re.escape(category)}$", "$options": "i"}
    return serialize_doc(get_documents("product", query))


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    require_db()
    return serialize_doc(get_product_or_404(object_id(product_id, "product id")))


@app.post("/api/products")
def create_product(
    name: str = Form(..., min_length=1),
    category: str = Form(..., min_length=1),
    price: float = Form(..., ge=0),
    stock: int = Form(..., ge=0),
    description: str = Form(""),
    images: Optional[List[UploadFile]] = File(None),
    admin=Depends(require_admin),
):
    files = images or []
    storage.check_image_count(files, required=True)
    prod = ProductSchema(
        name=name,
        category=category,
        price=price,
        stock=stock,
        description=description,
        images=storage.save_images(files),
    )
    _id = create_document("product", prod)
    logger.info("Product %s created by %s", _id, admin.get("email"))
    return serialize_doc(db["product"].find_one({"_id": ObjectId(_id)}))


@app.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    name: Optional[str] = Form(None, min_length=1),
    category: Optional[str] = Form(None, min_length=1),
    price: Optional[float] = Form(None, ge=0),
    stock: Optional[int] = Form(None, ge=0),
    description: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    admin=Depends(require_admin),
):
    oid = object_id(product_id, "product id")
    fields = {"name": name, "category": category, "price": price, "stock": stock, "description": description}
    updates = {k: v for k, v in fields.items() if v is not None}
    files = images or []
    if not updates and not files:
        raise HTTPException(status_code=400, detail="No updates provided")
    product = get_product_or_404(oid)
    if files:
        storage.check_image_count(files, required=False)
        updates["images"] = storage.save_images(files)
    updates["updated_at"] = now()
    db["product"].update_one({"_id": oid}, {"$set": updates})
    if files:
        storage.delete_images(product.get("images", []))
    logger.info("Product %s updated by %s", product_id, admin.get("email"))
    return serialize_doc(db["product"].find_one({"_id": oid}))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, admin=Depends(require_admin)):
    oid = object_id(product_id, "product id")
    product = get_product_or_404(oid)
    db["product"].delete_one({"_id": oid})
    storage.delete_images(product.get("images", []))
    logger.info("Product %s deleted by %s", product_id, admin.get("email"))
    return {"deleted": True}


# Orders
def resolve_shipping_address(user: dict, req: OrderCreateRequest) -> ShippingAddress:
    if req.address_id:
        aid = object_id(req.address_id, "address id")
        saved = next((a for a in user.get("addresses", []) if a["_id"] == aid), None)
        if saved is None:
            raise HTTPException(status_code=404, detail="Address not found")
        return ShippingAddress(**{k: saved[k] for k in ShippingAddress.model_fields})
    if req.shipping_address is None:
        raise HTTPException(status_code=400, detail="Shipping address is required")
    return req.shipping_address


def release_stock(items: List[OrderItem]) -> None:
    for item in items:
        db["product"].update_one({"_id": item.product_id}, {"$inc": {"stock": item.quantity}})


@app.post("/api/orders")
def create_order(req: OrderCreateRequest, user=Depends(get_current_user)):
    shipping = resolve_shipping_address(user, req)

    order_items: List[OrderItem] = []
    for item in req.items:
        product = get_product_or_404(object_id(item.product_id, "product id"))
        if product["stock"] < item.quantity:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")
        images = product.get("images") or []
        order_items.append(OrderItem(
            product_id=product["_id"],
            name=product["name"],
            price=product["price"],
            quantity=item.quantity,
            image=images[0] if images else None,
        ))

    # stock is taken with a conditional decrement; undo on the first miss
    reserved: List[OrderItem] = []
    for item in order_items:
        result = db["product"].update_one(
            {"_id": item.product_id, "stock": {"$gte": item.quantity}},
            {"$inc": {"stock": -item.quantity}, "$set": {"updated_at": now()}},
        )
        if result.modified_count == 0:
            release_stock(reserved)
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {item.name}")
        reserved.append(item)

    total = round(sum(i.price * i.quantity for i in order_items), 2)
    order = OrderSchema(
        user_id=user["_id"],
        clerk_id=user["clerk_id"],
        order_items=order_items,
        shipping_address=shipping,
        payment_result=req.payment_result,
        total_price=total,
    )
    order_id = create_document("order", order)
    logger.info("Order %s placed by %s, total %.2f", order_id, user["clerk_id"], total)
    return {"message": "Order created successfully", "order": serialize_doc(db["order"].find_one({"_id": ObjectId(order_id)}))}


@app.get("/api/orders")
def list_user_orders(user=Depends(get_current_user)):
    orders = get_documents("order", {"user_id": user["_id"]})
    reviewed = set(db["review"].distinct("order_id", {"order_id": {"$in": [o["_id"] for o in orders]}}))
    for o in orders:
        o["has_reviewed"] = o["_id"] in reviewed
    return {"orders": serialize_doc(orders)}


# Admin
@app.get("/api/admin/orders")
def list_all_orders(admin=Depends(require_admin)):
    orders = get_documents("order")
    user_ids = list({o["user_id"] for o in orders})
    users = {u["_id"]: u for u in db["user"].find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1})}
    for o in orders:
        u = users.get(o["user_id"])
        o["customer"] = {"name": u.get("name"), "email": u.get("email")} if u else None
    return {"orders": serialize_doc(orders)}


@app.patch("/api/admin/orders/{order_id}/status")
def update_order_status(order_id: str, req: StatusUpdateRequest, admin=Depends(require_admin)):
    oid = object_id(order_id, "order id")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    ts = now()
    updates: Dict[str, Any] = {"status": req.status, "updated_at": ts}
    if req.status == "shipped" and not order.get("shipped_at"):
        updates["shipped_at"] = ts
    if req.status == "delivered" and not order.get("delivered_at"):
        updates["delivered_at"] = ts
    db["order"].update_one({"_id": oid}, {"$set": updates})
    logger.info("Order %s status %s -> %s by %s", order_id, order.get("status"), req.status, admin.get("email"))
    order.update(updates)
    return {"message": "Order status updated successfully", "order": serialize_doc(order)}


@app.get("/api/admin/customers")
def list_customers(admin=Depends(require_admin)):
    customers = list(db["user"].find({}, {"password_hash": 0}).sort("created_at", -1))
    return {"customers": serialize_doc(customers)}


@app.get("/api/admin/stats")
def admin_stats(admin=Depends(require_admin)):
    revenue = list(db["order"].aggregate([{"$group": {"_id": None, "total": {"$sum": "$total_price"}}}]))
    return serialize_doc({
        "total_revenue": round(revenue[0]["total"], 2) if revenue else 0,
        "total_orders": db["order"].count_documents({}),
        "total_customers": db["user"].count_documents({}),
        "total_products": db["product"].count_documents({}),
    })


# Addresses
def save_addresses(user: dict, addresses: List[dict]) -> None:
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"addresses": addresses, "updated_at": now()}})


@app.get("/api/users/addresses")
def list_addresses(user=Depends(get_current_user)):
    return {"addresses": serialize_doc(user.get("addresses", []))}


@app.post("/api/users/addresses")
def add_address(req: Address, user=Depends(get_current_user)):
    addresses = list(user.get("addresses", []))
    if req.is_default:
        for a in addresses:
            a["is_default"] = False
    addresses.append({"_id": ObjectId(), **req.model_dump()})
    save_addresses(user, addresses)
    return {"message": "Address added successfully", "addresses": serialize_doc(addresses)}


@app.put("/api/users/addresses/{address_id}")
def update_address(address_id: str, req: Address, user=Depends(get_current_user)):
    aid = object_id(address_id, "address id")
    addresses = list(user.get("addresses", []))
    index = next((i for i, a in enumerate(addresses) if a["_id"] == aid), None)
    if index is None:
        raise HTTPException(status_code=404, detail="Address not found")
    if req.is_default:
        for a in addresses:
            a["is_default"] = False
    addresses[index] = {"_id": aid, **req.model_dump()}
    save_addresses(user, addresses)
    return {"message": "Address updated successfully", "addresses": serialize_doc(addresses)}


@app.delete("/api/users/addresses/{address_id}")
def delete_address(address_id: str, user=Depends(get_current_user)):
    aid = object_id(address_id, "address id")
    addresses = user.get("addresses", [])
    remaining = [a for a in addresses if a["_id"] != aid]
    if len(remaining) == len(addresses):
        raise HTTPException(status_code=404, detail="Address not found")
    save_addresses(user, remaining)
    return {"message": "Address deleted successfully", "addresses": serialize_doc(remaining)}


# Wishlist
@app.get("/api/users/wishlist")
def get_wishlist(user=Depends(get_current_user)):
    ids = user.get("wishlist", [])
    by_id = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}
    return {"wishlist": serialize_doc([by_id[i] for i in ids if i in by_id])}


@app.post("/api/users/wishlist")
def add_to_wishlist(req: WishlistRequest, user=Depends(get_current_user)):
    pid = object_id(req.product_id, "product id")
    get_product_or_404(pid)
    if pid in user.get("wishlist", []):
        raise HTTPException(status_code=400, detail="Product already in wishlist")
    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"wishlist": pid}})
    return {"message": "Product added to wishlist", "wishlist": serialize_doc(user.get("wishlist", []) + [pid])}


@app.delete("/api/users/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user=Depends(get_current_user)):
    pid = object_id(product_id, "product id")
    wishlist = user.get("wishlist", [])
    if pid not in wishlist:
        raise HTTPException(status_code=400, detail="Product not found in wishlist")
    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"wishlist": pid}})
    return {"message": "Product removed from wishlist", "wishlist": serialize_doc([w for w in wishlist if w != pid])}


# Cart
def get_or_create_cart(user: dict) -> dict:
    cart = db["cart"].find_one({"user_id": user["_id"]})
    if cart is None:
        cart_id = create_document("cart", Cart(user_id=user["_id"], clerk_id=user["clerk_id"]))
        cart = db["cart"].find_one({"_id": ObjectId(cart_id)})
    return cart


def save_cart(cart: dict) -> None:
    db["cart"].update_one({"_id": cart["_id"]}, {"$set": {"items": cart["items"], "updated_at": now()}})


def cart_response(cart: dict) -> dict:
    ids = [i["product_id"] for i in cart["items"]]
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}
    items = [
        {"product": products[i["product_id"]], "quantity": i["quantity"]}
        for i in cart["items"]
        if i["product_id"] in products
    ]
    subtotal = round(sum(i["product"]["price"] * i["quantity"] for i in items), 2)
    return {
        "cart": serialize_doc({
            "_id": cart["_id"],
            "items": items,
            "item_count": sum(i["quantity"] for i in items),
            "subtotal": subtotal,
        })
    }


@app.get("/api/cart")
def get_cart(user=Depends(get_current_user)):
    return cart_response(get_or_create_cart(user))


@app.post("/api/cart")
def add_to_cart(req: CartItemRequest, user=Depends(get_current_user)):
    pid = object_id(req.product_id, "product id")
    product = get_product_or_404(pid)
    cart = get_or_create_cart(user)
    existing = next((i for i in cart["items"] if i["product_id"] == pid), None)
    quantity = (existing["quantity"] if existing else 0) + req.quantity
    if quantity > product["stock"]:
        raise HTTPException(status_code=400, detail="Insufficient stock")
    if existing:
        existing["quantity"] = quantity
    else:
        cart["items"].append({"product_id": pid, "quantity": quantity})
    save_cart(cart)
    return cart_response(cart)


@app.put("/api/cart/{product_id}")
def update_cart_item(product_id: str, req: CartQuantityRequest, user=Depends(get_current_user)):
    pid = object_id(product_id, "product id")
    cart = get_or_create_cart(user)
    existing = next((i for i in cart["items"] if i["product_id"] == pid), None)
    if existing is None:
        raise HTTPException(status_code=404, detail="Item not found in cart")
    product = get_product_or_404(pid)
    if req.quantity > product["stock"]:
        raise HTTPException(status_code=400, detail="Insufficient stock")
    existing["quantity"] = req.quantity
    save_cart(cart)
    return cart_response(cart)


@app.delete("/api/cart/{product_id}")
def remove_from_cart(product_id: str, user=Depends(get_current_user)):
    pid = object_id(product_id, "product id")
    cart = get_or_create_cart(user)
    cart["items"] = [i for i in cart["items"] if i["product_id"] != pid]
    save_cart(cart)
    return cart_response(cart)


@app.delete("/api/cart")
def clear_cart(user=Depends(get_current_user)):
    cart = get_or_create_cart(user)
    cart["items"] = []
    save_cart(cart)
    return cart_response(cart)


# Reviews
def refresh_product_rating(product_id: ObjectId) -> None:
    agg = list(db["review"].aggregate([
        {"$match": {"product_id": product_id}},
        {"$group": {"_id": None, "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]))
    if agg and agg[0]["count"]:
        average, count = round(agg[0]["avg"], 1), agg[0]["count"]
    else:
        average, count = 0, 0
    db["product"].update_one(
        {"_id": product_id},
        {"$set": {"average_rating": average, "total_reviews": count, "updated_at": now()}},
    )


@app.get("/api/reviews")
def list_reviews(product_id: str = Query(..., alias="productId")):
    require_db()
    reviews = get_documents("review", {"product_id": object_id(product_id, "product id")})
    return {"reviews": serialize_doc(reviews)}


@app.post("/api/reviews")
def create_review(req: ReviewCreateRequest, user=Depends(get_current_user)):
    pid = object_id(req.product_id, "product id")
    oid = object_id(req.order_id, "order id")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order["clerk_id"] != user["clerk_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to review this order")
    if order["status"] != "delivered":
        raise HTTPException(status_code=400, detail="Can only review delivered orders")
    if not any(i["product_id"] == pid for i in order["order_items"]):
        raise HTTPException(status_code=400, detail="Product not found in this order")
    if db["review"].find_one({"product_id": pid, "user_id": user["_id"]}):
        raise HTTPException(status_code=400, detail="You have already reviewed this product")
    get_product_or_404(pid)

    review = ReviewSchema(product_id=pid, user_id=user["_id"], order_id=oid, rating=req.rating, comment=req.comment)
    review_id = create_document("review", review)
    refresh_product_rating(pid)
    return {"message": "Review submitted successfully", "review": serialize_doc(db["review"].find_one({"_id": ObjectId(review_id)}))}


@app.delete("/api/reviews/{review_id}")
def delete_review(review_id: str, user=Depends(get_current_user)):
    rid = object_id(review_id, "review id")
    review = db["review"].find_one({"_id": rid})
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if review["user_id"] != user["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to delete this review")
    db["review"].delete_one({"_id": rid})
    refresh_product_rating(review["product_id"])
    return {"message": "Review deleted successfully"}


# Uploaded product images
@app.get("/uploads/{filename}", include_in_schema=False)
def uploaded_image(filename: str):
    path = storage.image_path(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(path)


# Background events
inngest.fast_api.serve(app, events.inngest_client, events.FUNCTIONS)


# Admin SPA
def admin_file(root_dir: str, full_path: str) -> str:
    """File under the admin build for `full_path`, or its index.html for client-side routes."""
    root_dir = os.path.realpath(root_dir)
    candidate = os.path.realpath(os.path.join(root_dir, full_path))
    if candidate.startswith(root_dir + os.sep) and os.path.isfile(candidate):
        return candidate
    return os.path.join(root_dir, "index.html")


def mount_admin_spa(target: FastAPI, dist_path: str) -> None:
    # must run after every API route is registered, the catch-all would shadow them
    target.mount("/assets", StaticFiles(directory=os.path.join(dist_path, "assets"), check_dir=False), name="admin-assets")

    @target.get("/{full_path:path}", include_in_schema=False)
    def admin_spa(full_path: str):
        return FileResponse(admin_file(dist_path, full_path))


if APP_ENV == "production" and os.path.isdir(ADMIN_DIST_PATH):
    mount_admin_spa(app, ADMIN_DIST_PATH)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
