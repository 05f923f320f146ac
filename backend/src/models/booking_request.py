"""
Booking request model: a consumer's request to reserve a slot instance.

Requests start as 'pending' and move exactly once to a terminal status:
'accepted' or 'rejected' by the slot owner, or 'cancelled' by the requester.
Every transition requires the row to still be pending at the time it is
applied, which the services check under a row lock.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class BookingRequest(Base):
    """Request from a consumer against one slot instance."""

    __tablename__ = "booking_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    slot_instance_id: Mapped[int] = mapped_column(ForeignKey("slot_instances.id", ondelete="CASCADE"))
    """Slot instance being requested. Requests are removed with their instance."""

    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    """Consumer who submitted the request. Never the instance's resolved owner."""

    message: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    """Optional message from the requester to the slot owner."""

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    """Valid values: 'pending', 'accepted', 'rejected', 'cancelled'."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    slot_instance = relationship("SlotInstance", back_populates="requests")
    requester = relationship("User", back_populates="booking_requests")
    booking = relationship("Booking", back_populates="request", uselist=False)

    __table_args__ = (
        UniqueConstraint("slot_instance_id", "requester_id", name="uq_booking_request_instance_requester"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="check_booking_request_status"
        ),
        Index('idx_booking_requests_instance_status', 'slot_instance_id', 'status'),
        Index('idx_booking_requests_requester', 'requester_id'),
        Index('idx_booking_requests_status_created', 'status', 'created_at'),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def __repr__(self) -> str:
        return f"<BookingRequest(id={self.id}, instance={self.slot_instance_id}, requester={self.requester_id}, status={self.status})>"
