"""
Tests for JWT service functionality.
"""

import jwt
from datetime import datetime, timedelta, timezone

from core.config import JWT_SECRET_KEY
from services.jwt_service import jwt_service, TokenPayload


def _payload(**overrides):
    data = {
        "sub": "42",
        "email": "prof@example.edu",
        "user_type": "professor",
        "name": "Test Professor",
    }
    data.update(overrides)
    return TokenPayload(**data)


class TestJWTService:
    """Test JWT token creation and validation."""

    def test_round_trip_keeps_identity(self):
        token = jwt_service.create_access_token(_payload())

        decoded = jwt_service.verify_token(token)

        assert decoded is not None
        assert decoded.user_id == 42
        assert decoded.email == "prof@example.edu"
        assert decoded.user_type == "professor"
        assert decoded.exp is not None and decoded.iat is not None

    def test_expired_token_is_rejected(self):
        token = jwt_service.create_access_token(_payload(), expires_delta=timedelta(seconds=-1))

        assert jwt_service.verify_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "42", "email": "x@example.edu", "user_type": "student", "exp": now + timedelta(minutes=5)},
            "some-other-secret",
            algorithm="HS256",
        )

        assert jwt_service.verify_token(token) is None

    def test_non_numeric_subject_is_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "google-subject", "email": "x@example.edu", "user_type": "student", "exp": now + timedelta(minutes=5)},
            JWT_SECRET_KEY,
            algorithm="HS256",
        )

        assert jwt_service.verify_token(token) is None

    def test_garbage_token(self):
        assert jwt_service.verify_token("not.a.jwt") is None
