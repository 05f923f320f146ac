"""
Test utilities for AroundU booking tests.
"""

import jwt
from datetime import datetime, timedelta, timezone

from core.config import JWT_SECRET_KEY
from models import User


def create_jwt_token(user: User, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Create a JWT access token for a user, signed like the account service signs them."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "user_type": user.user_type,
        "name": user.full_name,
        "exp": now + expires_in,
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm="HS256")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt_token(user)}"}
