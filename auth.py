import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import ADMIN_EMAIL, JWT_ALG, JWT_EXPIRE_DAYS, JWT_SECRET
from database import db, now, serialize_doc

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def new_clerk_id() -> str:
    return f"user_{uuid.uuid4().hex}"


def is_admin_email(email: Optional[str]) -> bool:
    return bool(ADMIN_EMAIL) and (email or "").lower() == ADMIN_EMAIL.lower()


def create_token(user: dict) -> str:
    payload = {
        "sub": user["clerk_id"],
        "email": user.get("email"),
        "exp": now() + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def public_user(user: dict) -> dict:
    return serialize_doc({
        "_id": user["_id"],
        "clerk_id": user["clerk_id"],
        "name": user.get("name"),
        "email": user.get("email"),
        "image_url": user.get("image_url"),
        "is_admin": is_admin(user),
    })


def is_admin(user: dict) -> bool:
    return bool(user.get("is_admin")) or is_admin_email(user.get("email"))


def get_current_user(authorization: Optional[str] = Header(None)):
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = authorization.replace("Bearer ", "").strip()
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    clerk_id = payload.get("sub")
    if not clerk_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db["user"].find_one({"clerk_id": clerk_id})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token user")
    return user


def require_admin(user=Depends(get_current_user)):
    if not is_admin(user):
        logger.warning("Admin route refused for %s", user.get("email"))
        raise HTTPException(status_code=403, detail="Admin only")
    return user
