# pyright: reportMissingTypeStubs=false
"""
Authentication dependencies for FastAPI.

Resolves the bearer token on each request into a UserContext. Authorization
on booking data is by slot ownership and is enforced in the services, so this
module only establishes who the caller is.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.database import get_db
from services.jwt_service import jwt_service, TokenPayload
from models import User

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(self, user_id: int, email: str, user_type: str, name: str):
        self.user_id = user_id
        self.email = email
        self.user_type = user_type  # "student" or "professor"
        self.name = name

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, email='{self.email}', user_type='{self.user_type}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        logger.warning(f"Token presented for unknown user {payload.sub}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return UserContext(
        user_id=user.id,
        email=user.email,
        user_type=user.user_type,
        name=user.full_name,
    )


def require_authenticated(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require any authenticated user."""
    return user
