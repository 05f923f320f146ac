"""
Capacity-safe acceptance engine for booking requests.

Every transition of a booking request (accept, reject, cancel) runs in one
short transaction that locks rows in a fixed order:

    booking request -> slot instance -> slot template

Locking the slot instance row is what serializes concurrent accepts against
the same instance: the second accept blocks until the first commits and then
counts the booking the first one inserted. Operations on different instances
never touch the same rows and proceed in parallel.

Nothing outside the database happens inside these transactions. Callers
dispatch notifications only after the method has returned.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import REQUEST_STATUS_ACCEPTED, REQUEST_STATUS_REJECTED, REQUEST_STATUS_CANCELLED
from core.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, CapacityFullError, NotPendingError, DataInconsistencyError
)
from models import BookingRequest, SlotInstance, SlotTemplate, Booking, User
from utils.slot_rules import resolve_owner_id, resolve_effective_capacity
from utils.transaction_utils import apply_lock_timeout, retry_on_transient_failure

logger = logging.getLogger(__name__)


def _lock_pending_request(db: Session, request_id: int) -> BookingRequest:
    request = db.query(BookingRequest).filter(
        BookingRequest.id == request_id
    ).with_for_update().populate_existing().first()
    if not request:
        raise NotFoundError("Request not found")
    if not request.is_pending:
        raise NotPendingError("Request not pending")
    return request


def _lock_instance_and_template(
    db: Session, instance_id: int
) -> Tuple[SlotInstance, Optional[SlotTemplate]]:
    """Lock the slot instance, then its template if it has one."""
    instance = db.query(SlotInstance).filter(
        SlotInstance.id == instance_id
    ).with_for_update().populate_existing().first()
    if not instance:
        logger.error(f"Booking request references missing slot instance {instance_id}")
        raise DataInconsistencyError("Slot instance not found for request (data inconsistency)")

    template = None
    if instance.template_id is not None:
        template = db.query(SlotTemplate).filter(
            SlotTemplate.id == instance.template_id
        ).with_for_update().populate_existing().first()
    return instance, template


def _authorize_owner(instance: SlotInstance, template: Optional[SlotTemplate], acting_owner_id: int) -> int:
    owner_id = resolve_owner_id(instance.created_by, template.owner_id if template is not None else None)
    if owner_id is None:
        logger.error(f"Slot instance {instance.id} has no resolvable owner")
        raise DataInconsistencyError("Slot instance missing owner (data inconsistency)")
    if owner_id != acting_owner_id:
        raise ForbiddenError("Not authorized to act on this request")
    return owner_id


class BookingAcceptanceService:
    """
    Service class for booking request state transitions.

    A request moves from 'pending' exactly once: to 'accepted' or 'rejected'
    by the slot owner, or to 'cancelled' by the requester.
    """

    @staticmethod
    @retry_on_transient_failure()
    def accept_request(db: Session, request_id: int, acting_owner_id: int) -> Booking:
        """
        Accept a pending request and create its booking.

        Runs as a single transaction; on any failure nothing is written.

        Args:
            db: Database session
            request_id: Request to accept
            acting_owner_id: Caller, who must be the slot instance's resolved owner

        Returns:
            The created Booking

        Raises:
            NotFoundError: Request does not exist
            NotPendingError: Request was already accepted, rejected or cancelled
            ForbiddenError: Caller does not own the slot instance
            CapacityFullError: Instance already holds as many bookings as its capacity
            ValidationError: Requester no longer exists
            DataInconsistencyError: Instance missing or without a resolvable owner
        """
        try:
            apply_lock_timeout(db)

            request = _lock_pending_request(db, request_id)
            instance, template = _lock_instance_and_template(db, request.slot_instance_id)
            _authorize_owner(instance, template, acting_owner_id)

            capacity = resolve_effective_capacity(
                instance.capacity, template.capacity if template is not None else None
            )
            if capacity > 0:
                booked = db.query(func.count(Booking.id)).filter(
                    Booking.slot_instance_id == instance.id
                ).scalar() or 0
                if booked >= capacity:
                    raise CapacityFullError("Capacity full")

            requester_exists = db.query(User.id).filter(User.id == request.requester_id).first()
            if not requester_exists:
                raise ValidationError("Requester no longer exists")

            booking = Booking(
                slot_instance_id=instance.id,
                request_id=request.id,
                user_id=request.requester_id,
            )
            db.add(booking)
            request.status = REQUEST_STATUS_ACCEPTED

            db.commit()
            db.refresh(booking)
        except CapacityFullError:
            db.rollback()
            logger.info(f"Capacity full, request {request_id} left pending")
            raise
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Integrity error while accepting request {request_id}: {e}")
            raise DataInconsistencyError("Could not record booking (data inconsistency)") from e
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Accepted request {request_id}: booking {booking.id} for user {booking.user_id} "
            f"on instance {booking.slot_instance_id}"
        )
        return booking

    @staticmethod
    @retry_on_transient_failure()
    def reject_request(db: Session, request_id: int, acting_owner_id: int) -> BookingRequest:
        """
        Reject a pending request. Uses the same lock order as accept.

        Raises:
            NotFoundError, NotPendingError, ForbiddenError, DataInconsistencyError
        """
        try:
            apply_lock_timeout(db)

            request = _lock_pending_request(db, request_id)
            instance, template = _lock_instance_and_template(db, request.slot_instance_id)
            _authorize_owner(instance, template, acting_owner_id)

            request.status = REQUEST_STATUS_REJECTED
            db.commit()
            db.refresh(request)
        except Exception:
            db.rollback()
            raise

        logger.info(f"Rejected request {request_id} by owner {acting_owner_id}")
        return request

    @staticmethod
    @retry_on_transient_failure()
    def cancel_request(db: Session, request_id: int, requester_id: int) -> BookingRequest:
        """
        Withdraw the caller's own pending request.

        Accepted requests cannot be cancelled here; their booking stands.

        Raises:
            NotFoundError, ForbiddenError, NotPendingError
        """
        try:
            apply_lock_timeout(db)

            request = db.query(BookingRequest).filter(
                BookingRequest.id == request_id
            ).with_for_update().populate_existing().first()
            if not request:
                raise NotFoundError("Request not found")
            if request.requester_id != requester_id:
                raise ForbiddenError("Only the requester can cancel this request")
            if not request.is_pending:
                raise NotPendingError("Request not pending")

            request.status = REQUEST_STATUS_CANCELLED
            db.commit()
            db.refresh(request)
        except Exception:
            db.rollback()
            raise

        logger.info(f"Cancelled request {request_id} by requester {requester_id}")
        return request
