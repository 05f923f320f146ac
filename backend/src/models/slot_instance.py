"""
Slot instance model: a single bookable calendar occurrence.

Instances are either ad-hoc (created_by set, no template) or derived from a
template. The owner of an instance is resolved as created_by when present,
otherwise the template's owner. Capacity resolves as the instance's own value
when positive, otherwise the template's when positive, otherwise unlimited.
"""

from datetime import date as date_type, datetime
from typing import Optional
from sqlalchemy import TIMESTAMP, Date, ForeignKey, Index, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from utils.slot_rules import resolve_owner_id, resolve_effective_capacity


class SlotInstance(Base):
    """
    Concrete bookable occurrence on a specific date.

    No two instances with the same resolved owner on the same date may have
    overlapping [start_ts, end_ts) intervals. This is checked by the slot
    instance service at creation time, not by a database constraint.
    """

    __tablename__ = "slot_instances"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the slot instance."""

    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("slot_templates.id", ondelete="SET NULL"), nullable=True
    )
    """Template this instance was derived from, or NULL for ad-hoc instances."""

    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    """
    Provider who created the instance directly.
    NULL for instances materialized from a template; their owner is the template's owner.
    """

    date: Mapped[date_type] = mapped_column(Date)
    """Calendar date the instance falls on (server timezone)."""

    start_ts: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    end_ts: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """Own capacity. 0 defers to the template's capacity, then to unlimited."""

    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    template = relationship("SlotTemplate", back_populates="instances")
    creator = relationship("User", foreign_keys=[created_by])
    requests = relationship("BookingRequest", back_populates="slot_instance", passive_deletes=True)
    bookings = relationship("Booking", back_populates="slot_instance")

    __table_args__ = (
        CheckConstraint("start_ts < end_ts", name="check_slot_instance_time_range"),
        CheckConstraint("capacity >= 0", name="check_slot_instance_capacity"),
        Index('idx_slot_instances_date', 'date'),
        Index('idx_slot_instances_created_by_date', 'created_by', 'date'),
        Index('idx_slot_instances_template', 'template_id'),
    )

    @property
    def owner_id(self) -> Optional[int]:
        """Resolved owner: created_by if present, else the template's owner."""
        template_owner_id = self.template.owner_id if self.template is not None else None
        return resolve_owner_id(self.created_by, template_owner_id)

    @property
    def effective_capacity(self) -> int:
        """Own capacity if > 0, else template capacity if > 0, else 0 (unlimited)."""
        template_capacity = self.template.capacity if self.template is not None else None
        return resolve_effective_capacity(self.capacity, template_capacity)

    @property
    def effective_notes(self) -> Optional[str]:
        if self.notes:
            return self.notes
        return self.template.notes if self.template is not None else None

    def __repr__(self) -> str:
        return f"<SlotInstance(id={self.id}, owner_id={self.owner_id}, date={self.date}, {self.start_ts}-{self.end_ts})>"
