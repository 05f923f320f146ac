"""
Application configuration using python-dotenv.

Values come from the process environment, optionally seeded from a .env file
next to the backend. Every setting has a default suitable for local use.
"""

import os
import pathlib
import sys
from dotenv import load_dotenv


# Tests configure themselves through the environment only
is_testing = os.getenv("PYTEST_VERSION") is not None or "pytest" in sys.modules

if not is_testing:
    _backend_dir = pathlib.Path(__file__).resolve().parent.parent.parent
    for env_path in (_backend_dir / ".env", _backend_dir.parent / ".env", pathlib.Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url() -> str:
    """Database URL; PostgreSQL in production, SQLite file by default."""
    return os.getenv("DATABASE_URL", "sqlite:///./aroundu_bookings.db")


DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Server calendar: "today" and the slot date of a timestamp are evaluated here
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

# Locking and transient failure handling
DB_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))
TRANSIENT_RETRY_ATTEMPTS = int(os.getenv("TRANSIENT_RETRY_ATTEMPTS", "2"))
TRANSIENT_RETRY_BASE_DELAY = float(os.getenv("TRANSIENT_RETRY_BASE_DELAY", "0.1"))
