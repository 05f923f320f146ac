"""
Slot template service for recurring weekly availability definitions.

Templates are plain owner-scoped CRUD. The only concurrency concern is that
an edit to a template's capacity must not race an acceptance that is reading
it, so updates and deletes take the same row lock the acceptance engine takes.
"""

import logging
from datetime import time
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import ValidationError, InvalidRangeError, NotFoundError, ForbiddenError, InstanceHasBookingsError
from models import SlotTemplate, SlotInstance, BookingRequest, Booking
from utils.transaction_utils import apply_lock_timeout, retry_on_transient_failure

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("weekday", "start_time", "end_time", "capacity", "notes")


def _validate_template_fields(weekday: int, start_time: time, end_time: time, capacity: int) -> None:
    if weekday is None or not 0 <= weekday <= 6:
        raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)")
    if start_time is None or end_time is None:
        raise ValidationError("start_time and end_time are required")
    if start_time >= end_time:
        raise InvalidRangeError("start_time must be before end_time")
    if capacity is None or capacity < 0:
        raise ValidationError("capacity must be 0 (unlimited) or a positive number")


class SlotTemplateService:
    """Service class for slot template operations."""

    @staticmethod
    def create_template(
        db: Session,
        owner_id: int,
        weekday: int,
        start_time: time,
        end_time: time,
        capacity: int = 0,
        notes: Optional[str] = None,
    ) -> SlotTemplate:
        """
        Create a recurring weekly template for a provider.

        Raises:
            ValidationError: If weekday, times or capacity are invalid
        """
        _validate_template_fields(weekday, start_time, end_time, capacity)

        template = SlotTemplate(
            owner_id=owner_id,
            weekday=weekday,
            start_time=start_time,
            end_time=end_time,
            capacity=capacity,
            notes=notes,
        )
        db.add(template)
        db.commit()
        db.refresh(template)

        logger.info(f"Created slot template {template.id} for owner {owner_id}")
        return template

    @staticmethod
    def list_templates(db: Session, owner_id: int) -> List[SlotTemplate]:
        """List a provider's templates ordered by weekday and start time."""
        return db.query(SlotTemplate).filter(
            SlotTemplate.owner_id == owner_id
        ).order_by(SlotTemplate.weekday, SlotTemplate.start_time).all()

    @staticmethod
    def _get_owned_template_for_update(db: Session, owner_id: int, template_id: int) -> SlotTemplate:
        apply_lock_timeout(db)
        template = db.query(SlotTemplate).filter(
            SlotTemplate.id == template_id
        ).with_for_update().populate_existing().first()

        if not template:
            raise NotFoundError("Slot template not found")
        if template.owner_id != owner_id:
            raise ForbiddenError("Not authorized to modify this slot template")
        return template

    @staticmethod
    @retry_on_transient_failure()
    def update_template(db: Session, owner_id: int, template_id: int, updates: Dict[str, Any]) -> SlotTemplate:
        """
        Edit a template the caller owns.

        Only keys present in ``updates`` are changed. Already materialized
        instances are not rewritten.

        Raises:
            NotFoundError, ForbiddenError, ValidationError
        """
        try:
            template = SlotTemplateService._get_owned_template_for_update(db, owner_id, template_id)

            merged = {field: getattr(template, field) for field in UPDATABLE_FIELDS}
            merged.update({k: v for k, v in updates.items() if k in UPDATABLE_FIELDS})
            _validate_template_fields(merged["weekday"], merged["start_time"], merged["end_time"], merged["capacity"])

            for field, value in merged.items():
                setattr(template, field, value)

            db.commit()
            db.refresh(template)
        except Exception:
            db.rollback()
            raise

        logger.info(f"Updated slot template {template_id} for owner {owner_id}")
        return template

    @staticmethod
    @retry_on_transient_failure()
    def delete_template(db: Session, owner_id: int, template_id: int) -> None:
        """
        Delete a template the caller owns.

        Instances created directly by a provider keep existing with their
        template reference cleared. Instances that were materialized from the
        template have no owner without it, so they are deleted too, unless any
        of them already has a booking.

        Rows are locked request -> instance -> template, the order accept_request
        uses, so a delete racing an accept waits instead of deadlocking.

        Raises:
            NotFoundError, ForbiddenError, InstanceHasBookingsError
        """
        try:
            apply_lock_timeout(db)
            existing = db.query(SlotTemplate.owner_id).filter(SlotTemplate.id == template_id).first()
            if not existing:
                raise NotFoundError("Slot template not found")
            if existing.owner_id != owner_id:
                raise ForbiddenError("Not authorized to modify this slot template")

            # Same order as the acceptance engine: requests, then instances, then the template
            instance_ids = db.query(SlotInstance.id).filter(SlotInstance.template_id == template_id)
            db.query(BookingRequest.id).filter(
                BookingRequest.slot_instance_id.in_(instance_ids.scalar_subquery())
            ).order_by(BookingRequest.id).with_for_update().all()
            locked_instances = db.query(SlotInstance.id, SlotInstance.created_by).filter(
                SlotInstance.template_id == template_id
            ).order_by(SlotInstance.id).with_for_update().all()

            template = SlotTemplateService._get_owned_template_for_update(db, owner_id, template_id)

            dependent_ids = [row.id for row in locked_instances if row.created_by is None]

            if dependent_ids:
                has_bookings = db.query(Booking.id).filter(
                    Booking.slot_instance_id.in_(dependent_ids)
                ).first() is not None
                if has_bookings:
                    raise InstanceHasBookingsError(
                        "Slot instances created from this template already have bookings"
                    )
                db.query(SlotInstance).filter(
                    SlotInstance.id.in_(dependent_ids)
                ).delete(synchronize_session=False)

            db.delete(template)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Deleted slot template {template_id} for owner {owner_id} "
            f"({len(dependent_ids)} materialized instances removed)"
        )
