"""
Slot instance service: materializing bookable occurrences and enforcing
non-overlap among a provider's instances on a given date.

Batch creation and template materialization run in a single transaction:
either every submitted range is inserted or none is. Concurrent batches for
the same provider are serialized by locking the provider's user row before
the existing instances are read, so two batches cannot both pass the overlap
check against a snapshot that misses the other's inserts.
"""

import logging
from dataclasses import dataclass
from datetime import date as date_type, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from core.constants import MAX_MATERIALIZE_SPAN_DAYS, REQUEST_STATUS_PENDING, WEEK_SPAN_DAYS
from core.exceptions import (
    ValidationError, PastDateError, InvalidRangeError, NotFoundError, ForbiddenError,
    OverlapError, InstanceHasBookingsError, DataInconsistencyError
)
from models import SlotInstance, SlotTemplate, BookingRequest, Booking, User
from utils.datetime_utils import app_today, ensure_app_tz, intervals_overlap, combine_in_app_tz
from utils.slot_rules import resolve_owner_id
from utils.transaction_utils import apply_lock_timeout, retry_on_transient_failure

logger = logging.getLogger(__name__)


@dataclass
class SlotRange:
    """A range submitted for insertion as a slot instance."""
    start_ts: datetime
    end_ts: datetime
    capacity: int = 0
    notes: Optional[str] = None
    template_id: Optional[int] = None


def owner_id_column():  # type: ignore[no-untyped-def]
    """SQL expression for the resolved owner; requires an outer join to SlotTemplate."""
    return func.coalesce(SlotInstance.created_by, SlotTemplate.owner_id)


def _find_overlap(
    new_ranges: Sequence[Tuple[datetime, datetime]],
    existing: Iterable[Tuple[int, datetime, datetime]],
) -> Optional[OverlapError]:
    """
    Return the first overlap among new ranges or between a new range and an existing instance.

    New ranges are checked pairwise first, then each against every existing
    instance. Indexes in the error are 1-based positions in ``new_ranges``.
    """
    for i in range(len(new_ranges)):
        start_i, end_i = new_ranges[i]
        for j in range(i + 1, len(new_ranges)):
            start_j, end_j = new_ranges[j]
            if intervals_overlap(start_i, end_i, start_j, end_j):
                return OverlapError(
                    f"Submitted ranges {i + 1} and {j + 1} overlap",
                    range_indexes=(i + 1, j + 1),
                )

    existing = list(existing)
    for i, (start_i, end_i) in enumerate(new_ranges):
        for instance_id, ex_start, ex_end in existing:
            if intervals_overlap(start_i, end_i, ex_start, ex_end):
                return OverlapError(
                    f"Submitted range {start_i.isoformat()} - {end_i.isoformat()} "
                    f"overlaps existing instance {instance_id}",
                    range_indexes=(i + 1,),
                    existing_instance_id=instance_id,
                )
    return None


class SlotInstanceService:
    """
    Service class for slot instance operations.

    Every method takes the session as its first argument. Mutating methods
    commit on success and roll back before re-raising on any failure.
    """

    @staticmethod
    def _validate_batch(owner_id: int, day: date_type, ranges: Sequence[SlotRange]) -> List[SlotRange]:
        if not ranges:
            raise ValidationError("date and non-empty ranges array required")

        if day < app_today():
            raise PastDateError("Cannot create slot instances for past dates")

        normalized: List[SlotRange] = []
        for r in ranges:
            if r.start_ts is None or r.end_ts is None:
                raise ValidationError("Each range must include start_ts and end_ts")
            start = ensure_app_tz(r.start_ts)
            end = ensure_app_tz(r.end_ts)
            assert start is not None and end is not None
            if start >= end:
                raise InvalidRangeError("Invalid start/end timestamps")
            if start.date() != day or end.date() != day:
                raise InvalidRangeError("start_ts and end_ts must both be on the provided date")
            if r.capacity is not None and r.capacity < 0:
                raise ValidationError("capacity must be 0 (unlimited) or a positive number")
            normalized.append(SlotRange(
                start_ts=start,
                end_ts=end,
                capacity=r.capacity or 0,
                notes=r.notes,
                template_id=r.template_id,
            ))
        return normalized

    @staticmethod
    def _lock_owner(db: Session, owner_id: int) -> None:
        owner = db.query(User.id).filter(User.id == owner_id).with_for_update().first()
        if not owner:
            raise NotFoundError("User not found")

    @staticmethod
    def _load_existing_ranges(
        db: Session, owner_id: int, start_day: date_type, end_day: date_type
    ) -> Dict[date_type, List[Tuple[int, datetime, datetime]]]:
        """Existing instances owned by owner_id between two dates, grouped by date."""
        rows = db.query(
            SlotInstance.id, SlotInstance.date, SlotInstance.start_ts, SlotInstance.end_ts
        ).outerjoin(
            SlotTemplate, SlotInstance.template_id == SlotTemplate.id
        ).filter(
            SlotInstance.date >= start_day,
            SlotInstance.date <= end_day,
            owner_id_column() == owner_id,
        ).all()

        grouped: Dict[date_type, List[Tuple[int, datetime, datetime]]] = {}
        for instance_id, day, start_ts, end_ts in rows:
            grouped.setdefault(day, []).append(
                (instance_id, ensure_app_tz(start_ts), ensure_app_tz(end_ts))  # type: ignore[arg-type]
            )
        return grouped

    @staticmethod
    @retry_on_transient_failure()
    def create_instance_batch(
        db: Session, owner_id: int, day: date_type, ranges: Sequence[SlotRange]
    ) -> List[SlotInstance]:
        """
        Create several slot instances on one date, all or nothing.

        Args:
            db: Database session
            owner_id: Provider creating the instances (stored as created_by)
            day: Target date, not in the past
            ranges: Ranges to insert, each fully inside ``day``

        Returns:
            The inserted instances, in submission order

        Raises:
            PastDateError, InvalidRangeError, ValidationError: Invalid input
            NotFoundError, ForbiddenError: A referenced template is missing or not owned by the caller
            OverlapError: A range overlaps another submitted range or an existing instance
        """
        normalized = SlotInstanceService._validate_batch(owner_id, day, ranges)

        try:
            apply_lock_timeout(db)
            SlotInstanceService._lock_owner(db, owner_id)

            template_ids = {r.template_id for r in normalized if r.template_id is not None}
            if template_ids:
                templates = {
                    t.id: t for t in db.query(SlotTemplate).filter(SlotTemplate.id.in_(template_ids)).all()
                }
                for template_id in template_ids:
                    template = templates.get(template_id)
                    if template is None:
                        raise NotFoundError(f"Slot template {template_id} not found")
                    if template.owner_id != owner_id:
                        raise ForbiddenError(f"Slot template {template_id} belongs to another user")

            existing = SlotInstanceService._load_existing_ranges(db, owner_id, day, day).get(day, [])
            overlap = _find_overlap([(r.start_ts, r.end_ts) for r in normalized], existing)
            if overlap is not None:
                raise overlap

            inserted: List[SlotInstance] = []
            for r in normalized:
                instance = SlotInstance(
                    template_id=r.template_id,
                    created_by=owner_id,
                    date=day,
                    start_ts=r.start_ts,
                    end_ts=r.end_ts,
                    capacity=r.capacity,
                    notes=r.notes,
                )
                db.add(instance)
                inserted.append(instance)

            db.commit()
            for instance in inserted:
                db.refresh(instance)
        except OverlapError as e:
            db.rollback()
            logger.info(f"Rejected slot batch for owner {owner_id} on {day}: {e.detail}")
            raise
        except Exception:
            db.rollback()
            raise

        logger.info(f"Created {len(inserted)} slot instances for owner {owner_id} on {day}")
        return inserted

    @staticmethod
    @retry_on_transient_failure()
    def materialize_from_templates(
        db: Session, owner_id: int, start_day: date_type, end_day: date_type
    ) -> List[SlotInstance]:
        """
        Expand the owner's weekly templates into slot instances for a date range.

        Every date in the inclusive range whose weekday matches a template gets
        one instance per template. Materialized instances reference the template
        and leave created_by empty, so their owner, capacity and notes resolve
        through the template. Overlap rules are those of create_instance_batch,
        applied per date, and the whole range is all or nothing.

        Raises:
            PastDateError, ValidationError, OverlapError
        """
        if end_day < start_day:
            raise ValidationError("end date must not be before start date")
        if start_day < app_today():
            raise PastDateError("Cannot create slot instances for past dates")
        if (end_day - start_day).days + 1 > MAX_MATERIALIZE_SPAN_DAYS:
            raise ValidationError(f"Date range may span at most {MAX_MATERIALIZE_SPAN_DAYS} days")

        try:
            apply_lock_timeout(db)
            SlotInstanceService._lock_owner(db, owner_id)

            templates = db.query(SlotTemplate).filter(
                SlotTemplate.owner_id == owner_id
            ).order_by(SlotTemplate.weekday, SlotTemplate.start_time).all()

            planned: Dict[date_type, List[SlotTemplate]] = {}
            day = start_day
            while day <= end_day:
                matching = [t for t in templates if t.weekday == day.weekday()]
                if matching:
                    planned[day] = matching
                day += timedelta(days=1)

            existing_by_day = SlotInstanceService._load_existing_ranges(db, owner_id, start_day, end_day)

            inserted: List[SlotInstance] = []
            for day, day_templates in planned.items():
                new_ranges = [
                    (combine_in_app_tz(day, t.start_time), combine_in_app_tz(day, t.end_time))
                    for t in day_templates
                ]
                overlap = _find_overlap(new_ranges, existing_by_day.get(day, []))
                if overlap is not None:
                    raise OverlapError(
                        f"{day.isoformat()}: {overlap.detail}",
                        range_indexes=overlap.range_indexes,
                        existing_instance_id=overlap.existing_instance_id,
                    )
                for template, (start_ts, end_ts) in zip(day_templates, new_ranges):
                    instance = SlotInstance(
                        template_id=template.id,
                        created_by=None,
                        date=day,
                        start_ts=start_ts,
                        end_ts=end_ts,
                        capacity=0,
                    )
                    db.add(instance)
                    inserted.append(instance)

            db.commit()
            for instance in inserted:
                db.refresh(instance)
        except OverlapError as e:
            db.rollback()
            logger.info(f"Rejected template materialization for owner {owner_id}: {e.detail}")
            raise
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Materialized {len(inserted)} slot instances for owner {owner_id} "
            f"between {start_day} and {end_day}"
        )
        return inserted

    @staticmethod
    @retry_on_transient_failure()
    def delete_instance(db: Session, owner_id: int, instance_id: int) -> None:
        """
        Delete a slot instance owned by the caller.

        Refused while the instance has any booking. Pending, rejected and
        cancelled requests are removed with it. The instance's request rows are
        locked before the instance row, the same order the acceptance engine
        uses, so a delete and an accept on the same instance cannot deadlock.

        Raises:
            NotFoundError, ForbiddenError, InstanceHasBookingsError
        """
        try:
            apply_lock_timeout(db)

            db.query(BookingRequest.id).filter(
                BookingRequest.slot_instance_id == instance_id
            ).order_by(BookingRequest.id).with_for_update().all()

            instance = db.query(SlotInstance).filter(
                SlotInstance.id == instance_id
            ).with_for_update().populate_existing().first()
            if not instance:
                raise NotFoundError("Slot instance not found")

            template_owner_id = None
            if instance.template_id is not None:
                template_owner_id = db.query(SlotTemplate.owner_id).filter(
                    SlotTemplate.id == instance.template_id
                ).scalar()
            resolved_owner = resolve_owner_id(instance.created_by, template_owner_id)
            if resolved_owner is None:
                logger.error(f"Slot instance {instance_id} has no resolvable owner")
                raise DataInconsistencyError("Slot instance missing owner (data inconsistency)")
            if resolved_owner != owner_id:
                raise ForbiddenError("Not authorized to delete this instance")

            booking_count = db.query(func.count(Booking.id)).filter(
                Booking.slot_instance_id == instance_id
            ).scalar() or 0
            if booking_count > 0:
                raise InstanceHasBookingsError(
                    f"Slot instance has {booking_count} confirmed booking(s) and cannot be deleted"
                )

            db.query(SlotInstance).filter(SlotInstance.id == instance_id).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Deleted slot instance {instance_id} for owner {owner_id}")

    @staticmethod
    def _request_counts(db: Session, instance_ids: List[int]) -> Tuple[Dict[int, int], Dict[int, int]]:
        """Pending request counts and booking counts per instance."""
        if not instance_ids:
            return {}, {}

        pending_rows = db.query(
            BookingRequest.slot_instance_id, func.count(BookingRequest.id)
        ).filter(
            BookingRequest.slot_instance_id.in_(instance_ids),
            BookingRequest.status == REQUEST_STATUS_PENDING,
        ).group_by(BookingRequest.slot_instance_id).all()

        booking_rows = db.query(
            Booking.slot_instance_id, func.count(Booking.id)
        ).filter(
            Booking.slot_instance_id.in_(instance_ids)
        ).group_by(Booking.slot_instance_id).all()

        return (
            {instance_id: int(count) for instance_id, count in pending_rows},
            {instance_id: int(count) for instance_id, count in booking_rows},
        )

    @staticmethod
    def serialize_instance(
        instance: SlotInstance,
        pending_count: int = 0,
        accepted_count: int = 0,
        owner: Optional[User] = None,
    ) -> Dict[str, Any]:
        """Shape a slot instance for API responses, with capacity and notes resolved."""
        return {
            'id': instance.id,
            'template_id': instance.template_id,
            'date': instance.date,
            'start_ts': ensure_app_tz(instance.start_ts),
            'end_ts': ensure_app_tz(instance.end_ts),
            'capacity': instance.effective_capacity,
            'notes': instance.effective_notes,
            'created_by': instance.created_by,
            'owner_id': instance.owner_id,
            'owner': {
                'id': owner.id,
                'first_name': owner.first_name,
                'last_name': owner.last_name,
            } if owner is not None else None,
            'pending_count': pending_count,
            'accepted_count': accepted_count,
        }

    @staticmethod
    def _serialize_many(db: Session, instances: List[SlotInstance]) -> List[Dict[str, Any]]:
        ids = [i.id for i in instances]
        pending_counts, accepted_counts = SlotInstanceService._request_counts(db, ids)

        owner_ids = {i.owner_id for i in instances if i.owner_id is not None}
        owners = {
            u.id: u for u in db.query(User).filter(User.id.in_(owner_ids)).all()
        } if owner_ids else {}

        return [
            SlotInstanceService.serialize_instance(
                instance,
                pending_count=pending_counts.get(instance.id, 0),
                accepted_count=accepted_counts.get(instance.id, 0),
                owner=owners.get(instance.owner_id) if instance.owner_id is not None else None,
            )
            for instance in instances
        ]

    @staticmethod
    def list_week(db: Session, start_day: date_type) -> List[Dict[str, Any]]:
        """All slot instances from start_day through the following six days, with counts."""
        end_day = start_day + timedelta(days=WEEK_SPAN_DAYS - 1)
        instances = db.query(SlotInstance).options(
            joinedload(SlotInstance.template)
        ).filter(
            SlotInstance.date >= start_day,
            SlotInstance.date <= end_day,
        ).order_by(SlotInstance.date, SlotInstance.start_ts).all()

        return SlotInstanceService._serialize_many(db, instances)

    @staticmethod
    def list_for_date(db: Session, day: date_type, owner_id: int) -> List[Dict[str, Any]]:
        """Slot instances on one date owned by owner_id, with counts."""
        instances = db.query(SlotInstance).outerjoin(
            SlotTemplate, SlotInstance.template_id == SlotTemplate.id
        ).options(
            joinedload(SlotInstance.template)
        ).filter(
            SlotInstance.date == day,
            owner_id_column() == owner_id,
        ).order_by(SlotInstance.start_ts).all()

        return SlotInstanceService._serialize_many(db, instances)
