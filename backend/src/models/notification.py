"""
Notification model: the outbound sink for booking state changes.

Rows are written after a booking transaction has committed. Delivery to
connected clients (sockets, push) is handled by other services reading this
table.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, Boolean, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class Notification(Base):
    """A single notification addressed to one user."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    """Recipient."""

    actor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    """User whose action caused the notification."""

    type: Mapped[str] = mapped_column(String(50))
    """e.g. 'booking_request', 'booking_accepted', 'booking_rejected', 'booking_cancelled'."""

    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    data: Mapped[Dict[str, Any]] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), default=dict)
    """Extra JSON payload for the client."""

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_notifications_user_read', 'user_id', 'read'),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
