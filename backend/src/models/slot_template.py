"""
Slot template model for recurring weekly availability.

A template says "every <weekday> from <start_time> to <end_time> I take up to
<capacity> bookings". Templates are pure data: concrete bookable occurrences
are SlotInstance rows, which may reference a template for their owner and
capacity fallback.
"""

from datetime import time, datetime
from typing import Optional
from sqlalchemy import Time, TIMESTAMP, ForeignKey, Index, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class SlotTemplate(Base):
    """
    Recurring weekly availability rule owned by a provider.

    Editing a template does not rewrite instances that were already
    materialized from it; those instances keep referencing the template and
    see its current capacity only through the capacity fallback chain.
    """

    __tablename__ = "slot_templates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the template."""

    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    """The provider (professor) who owns this template."""

    weekday: Mapped[int] = mapped_column(Integer)
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of day."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of day. Always after start_time."""

    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """Maximum confirmed bookings per instance. 0 means unlimited."""

    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    owner = relationship("User", back_populates="slot_templates")
    instances = relationship("SlotInstance", back_populates="template", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="check_slot_template_weekday"),
        CheckConstraint("start_time < end_time", name="check_slot_template_time_range"),
        CheckConstraint("capacity >= 0", name="check_slot_template_capacity"),
        Index('idx_slot_templates_owner_weekday', 'owner_id', 'weekday'),
    )

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        days = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
        return days[self.weekday]

    def __repr__(self) -> str:
        return f"<SlotTemplate(id={self.id}, owner_id={self.owner_id}, day={self.day_name}, {self.start_time}-{self.end_time})>"
