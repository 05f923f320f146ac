"""
Booking request service: consumers queue requests against slot instances,
providers browse the requests addressed to them.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from core.constants import (
    MAX_REQUEST_MESSAGE_LENGTH, REQUEST_STATUS_PENDING, REQUEST_STATUSES,
    REQUESTS_DEFAULT_LIMIT, REQUESTS_MAX_LIMIT
)
from core.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, DuplicateRequestError, DataInconsistencyError
)
from models import BookingRequest, SlotInstance, SlotTemplate, User
from services.slot_instance_service import owner_id_column
from utils.datetime_utils import ensure_app_tz
from utils.transaction_utils import is_unique_violation

logger = logging.getLogger(__name__)


def _validate_status_filter(status: Optional[str]) -> None:
    if status is not None and status not in REQUEST_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(REQUEST_STATUSES)}")


def serialize_request(request: BookingRequest) -> Dict[str, Any]:
    """Shape a booking request for API responses, with requester and slot summaries."""
    instance = request.slot_instance
    requester = request.requester
    return {
        'id': request.id,
        'slot_instance_id': request.slot_instance_id,
        'requester_id': request.requester_id,
        'message': request.message,
        'status': request.status,
        'created_at': ensure_app_tz(request.created_at),
        'updated_at': ensure_app_tz(request.updated_at),
        'requester': {
            'id': requester.id,
            'first_name': requester.first_name,
            'last_name': requester.last_name,
            'university': requester.university,
            'course': requester.course,
            'profile_key': requester.profile_key,
        } if requester is not None else None,
        'slot': {
            'id': instance.id,
            'date': instance.date,
            'start_ts': ensure_app_tz(instance.start_ts),
            'end_ts': ensure_app_tz(instance.end_ts),
            'owner_id': instance.owner_id,
        } if instance is not None else None,
    }


class BookingRequestService:
    """Service class for submitting and listing booking requests."""

    @staticmethod
    def submit_request(
        db: Session, requester_id: int, instance_id: int, message: Optional[str] = None
    ) -> BookingRequest:
        """
        Create a pending request from a consumer against a slot instance.

        Args:
            db: Database session
            requester_id: Consumer submitting the request
            instance_id: Slot instance being requested
            message: Optional note to the slot owner

        Returns:
            The new pending BookingRequest

        Raises:
            NotFoundError: Instance does not exist
            ForbiddenError: Consumer is the instance's resolved owner
            DuplicateRequestError: Consumer already requested this instance
            DataInconsistencyError: Instance has no resolvable owner
        """
        if message is not None and len(message) > MAX_REQUEST_MESSAGE_LENGTH:
            raise ValidationError(f"message must be at most {MAX_REQUEST_MESSAGE_LENGTH} characters")

        try:
            instance = db.query(SlotInstance).options(
                joinedload(SlotInstance.template)
            ).filter(SlotInstance.id == instance_id).first()
            if not instance:
                raise NotFoundError("Slot instance not found")

            owner_id = instance.owner_id
            if owner_id is None:
                logger.error(f"Slot instance {instance_id} has no resolvable owner")
                raise DataInconsistencyError("Slot instance missing owner (data inconsistency)")
            if owner_id == requester_id:
                raise ForbiddenError("Cannot request your own slot")

            existing = db.query(BookingRequest.id).filter(
                BookingRequest.slot_instance_id == instance_id,
                BookingRequest.requester_id == requester_id,
            ).first()
            if existing:
                raise DuplicateRequestError("You have already requested this slot")

            request = BookingRequest(
                slot_instance_id=instance_id,
                requester_id=requester_id,
                message=message,
                status=REQUEST_STATUS_PENDING,
            )
            db.add(request)
            db.commit()
            db.refresh(request)
        except IntegrityError as e:
            db.rollback()
            if is_unique_violation(e):
                # A concurrent submission won the unique constraint
                raise DuplicateRequestError("You have already requested this slot") from e
            # The instance was deleted between the lookup and the insert
            logger.info(f"Slot instance {instance_id} vanished before request by user {requester_id} was stored")
            raise NotFoundError("Slot instance not found") from e
        except Exception:
            db.rollback()
            raise

        logger.info(f"Booking request {request.id} submitted by user {requester_id} for instance {instance_id}")
        return request

    @staticmethod
    def list_incoming_requests(
        db: Session,
        owner_id: int,
        status: Optional[str] = None,
        search: Optional[str] = None,
        slot_instance_id: Optional[int] = None,
        limit: int = REQUESTS_DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Tuple[List[BookingRequest], int]:
        """
        Requests against instances the caller owns, oldest first.

        ``search`` matches the requester's first name, last name, university
        or course, case-insensitively. ``limit`` is clamped to 1..100.

        Returns:
            (page of requests, total matching count)
        """
        _validate_status_filter(status)
        limit = max(1, min(limit, REQUESTS_MAX_LIMIT))
        offset = max(0, offset)

        query = db.query(BookingRequest).join(
            SlotInstance, BookingRequest.slot_instance_id == SlotInstance.id
        ).outerjoin(
            SlotTemplate, SlotInstance.template_id == SlotTemplate.id
        ).join(
            User, BookingRequest.requester_id == User.id
        ).filter(owner_id_column() == owner_id)

        if status:
            query = query.filter(BookingRequest.status == status)
        if slot_instance_id is not None:
            query = query.filter(BookingRequest.slot_instance_id == slot_instance_id)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.university.ilike(pattern),
                User.course.ilike(pattern),
            ))

        total = query.with_entities(func.count(BookingRequest.id)).scalar() or 0

        requests = query.options(
            joinedload(BookingRequest.requester),
            joinedload(BookingRequest.slot_instance).joinedload(SlotInstance.template),
        ).order_by(
            BookingRequest.created_at, BookingRequest.id
        ).offset(offset).limit(limit).all()

        return requests, int(total)

    @staticmethod
    def list_my_requests(db: Session, requester_id: int, status: Optional[str] = None) -> List[BookingRequest]:
        """The caller's own requests, newest first."""
        _validate_status_filter(status)

        query = db.query(BookingRequest).options(
            joinedload(BookingRequest.requester),
            joinedload(BookingRequest.slot_instance).joinedload(SlotInstance.template),
        ).filter(BookingRequest.requester_id == requester_id)

        if status:
            query = query.filter(BookingRequest.status == status)

        return query.order_by(BookingRequest.created_at.desc(), BookingRequest.id.desc()).all()
