# server/config.py

import os
from dotenv import load_dotenv


load_dotenv()


# -------------------------------
# Token & Session
# -------------------------------

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRED_TIME = int(os.getenv("JWT_EXPIRED_TIME", "60"))  # minutes

# Sessions are kept in process memory unless a Redis URL is given
REDIS_URL = os.getenv("REDIS_URL", "")


# -------------------------------
# Storage
# -------------------------------

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/app.db")
AVATAR_DIR = os.getenv("AVATAR_DIR", "assets/images/profiles")


# -------------------------------
# HTTP
# -------------------------------

APP_KEY = os.getenv("APP_KEY", "")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
