import os

APP_ENV = os.getenv("APP_ENV", "development")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ecommerce")

# Security/JWT
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")

# Comma separated list, "*" when unset
CLIENT_URL = os.getenv("CLIENT_URL", "*")
CORS_ORIGINS = [o.strip() for o in CLIENT_URL.split(",") if o.strip()]

# Files
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
ADMIN_DIST_PATH = os.getenv("ADMIN_DIST_PATH", os.path.join("..", "admin", "dist"))
MAX_PRODUCT_IMAGES = 3

# Background events (Inngest)
INNGEST_SIGNING_KEY = os.getenv("INNGEST_SIGNING_KEY", "")
INNGEST_APP_ID = os.getenv("INNGEST_APP_ID", "ecommerce-api")
