"""
User model for community members.

The booking core only consumes identity: who is calling, and whether a
requester still exists at acceptance time. Students and professors share this
table; authorization is by slot ownership, not by user type.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class User(Base):
    """Community member (student or professor)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100), default="")
    user_type: Mapped[str] = mapped_column(String(20), default="student")  # 'student' or 'professor'
    university: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    course: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    profile_key: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    """Object-storage key of the profile picture. Presigning happens outside this service."""

    # Metadata
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    slot_templates = relationship("SlotTemplate", back_populates="owner", cascade="all, delete-orphan")
    booking_requests = relationship("BookingRequest", back_populates="requester")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
