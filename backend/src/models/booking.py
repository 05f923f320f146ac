"""
Booking model: a confirmed reservation.

Created exactly once per accepted BookingRequest, by the acceptance engine
only, and never modified afterwards. The number of bookings for a slot
instance never exceeds the instance's effective capacity.
"""

from datetime import datetime
from sqlalchemy import TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Booking(Base):
    """Confirmed reservation of a slot instance by a user."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    slot_instance_id: Mapped[int] = mapped_column(ForeignKey("slot_instances.id"))
    """Booked slot instance. No ON DELETE rule: instances with bookings cannot be deleted."""

    request_id: Mapped[int] = mapped_column(ForeignKey("booking_requests.id"), unique=True)
    """The accepted request this booking was created from (one booking per request)."""

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    """The requester who holds the booking."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    slot_instance = relationship("SlotInstance", back_populates="bookings")
    request = relationship("BookingRequest", back_populates="booking")

    __table_args__ = (
        Index('idx_bookings_slot_instance', 'slot_instance_id'),
        Index('idx_bookings_user', 'user_id'),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, instance={self.slot_instance_id}, user={self.user_id})>"
