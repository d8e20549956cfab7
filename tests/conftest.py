import os

# config reads the environment at import time
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("INNGEST_SIGNING_KEY", None)

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import auth
import database
import events
import main
import storage


@pytest.fixture
def mongo(monkeypatch):
    fake = mongomock.MongoClient()["ecommerce_test"]
    for module in (database, auth, events, main):
        monkeypatch.setattr(module, "db", fake)
    return fake


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(storage, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def make_user(mongo):
    def _make(email="shopper@example.com", name="Shopper", **extra):
        doc = {
            "_id": ObjectId(),
            "clerk_id": auth.new_clerk_id(),
            "email": email,
            "name": name,
            "addresses": [],
            "wishlist": [],
            "created_at": database.now(),
            "updated_at": database.now(),
        }
        doc.update(extra)
        mongo["user"].insert_one(doc)
        return doc
    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {auth.create_token(user)}"}
    return _headers


@pytest.fixture
def shopper(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", name="Admin")


@pytest.fixture
def shopper_headers(shopper, headers_for):
    return headers_for(shopper)


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def make_product(mongo):
    def _make(name="Trail Shoe", price=50.0, stock=10, category="Shoes", images=None):
        doc = {
            "_id": ObjectId(),
            "name": name,
            "category": category,
            "price": price,
            "stock": stock,
            "description": "",
            "images": ["/uploads/seed.jpg"] if images is None else images,
            "average_rating": 0,
            "total_reviews": 0,
            "created_at": database.now(),
            "updated_at": database.now(),
        }
        mongo["product"].insert_one(doc)
        return doc
    return _make


@pytest.fixture
def address_payload():
    return {
        "label": "Home",
        "full_name": "Sam Rivera",
        "street_address": "12 Elm St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "phone_number": "555-0100",
        "is_default": False,
    }
