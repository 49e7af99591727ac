"""
Central configuration. Values come from the environment, optionally through a
.env file in the working directory.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# --- Database ---
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./inventory.db")

# --- Auth ---
DEFAULT_JWT_SECRET = "change_this_secret_in_prod"
JWT_SECRET: str = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRE_MINUTES: int = int(os.getenv("TOKEN_EXPIRE_MINUTES", str(8 * 60)))
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

DEFAULT_ADMIN_USERNAME: str = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD: str = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin")

# --- HTTP ---
_raw_origins = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS: list[str] = [o.strip() for o in _raw_origins.split(",") if o.strip()]
PORT: int = int(os.getenv("PORT", "5000"))

# --- Logging ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
