# pyright: reportUnknownMemberType=false, reportMissingTypeStubs=false
from sqlalchemy.orm import Session
import logging
from typing import Any, Dict, Optional

from core.constants import (
    NOTIFICATION_BOOKING_REQUEST, NOTIFICATION_BOOKING_ACCEPTED,
    NOTIFICATION_BOOKING_REJECTED, NOTIFICATION_BOOKING_CANCELLED
)
from models import Notification, BookingRequest, Booking, SlotInstance

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Service for writing booking notifications.

    Called only after the booking transaction has committed. A failure here
    is logged and reported as False; it never affects the booking itself.
    """

    @staticmethod
    def notify(
        db: Session,
        user_id: int,
        notification_type: str,
        actor_id: Optional[int] = None,
        entity_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Insert a notification row for one recipient in its own transaction.

        Args:
            db: Database session
            user_id: Recipient
            notification_type: One of the booking notification types
            actor_id: User whose action caused the notification
            entity_id: Id of the related request or booking
            entity_type: Kind of the related entity
            data: Extra JSON payload

        Returns:
            True if the notification was stored, False otherwise
        """
        try:
            notification = Notification(
                user_id=user_id,
                actor_id=actor_id,
                type=notification_type,
                entity_id=entity_id,
                entity_type=entity_type,
                data=data or {},
            )
            db.add(notification)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to store {notification_type} notification for user {user_id}: {e}")
            return False

    @staticmethod
    def notify_request_submitted(db: Session, request: BookingRequest, owner_id: int) -> bool:
        """Tell the slot owner a consumer requested one of their slots."""
        return NotificationService.notify(
            db,
            user_id=owner_id,
            notification_type=NOTIFICATION_BOOKING_REQUEST,
            actor_id=request.requester_id,
            entity_id=request.id,
            entity_type="booking_request",
            data={"slot_instance_id": request.slot_instance_id},
        )

    @staticmethod
    def notify_request_accepted(db: Session, booking: Booking, owner_id: int) -> bool:
        """Tell the requester their request became a booking."""
        return NotificationService.notify(
            db,
            user_id=booking.user_id,
            notification_type=NOTIFICATION_BOOKING_ACCEPTED,
            actor_id=owner_id,
            entity_id=booking.id,
            entity_type="booking",
            data={"request_id": booking.request_id, "slot_instance_id": booking.slot_instance_id},
        )

    @staticmethod
    def notify_request_rejected(db: Session, request: BookingRequest, owner_id: int) -> bool:
        return NotificationService.notify(
            db,
            user_id=request.requester_id,
            notification_type=NOTIFICATION_BOOKING_REJECTED,
            actor_id=owner_id,
            entity_id=request.id,
            entity_type="booking_request",
            data={"slot_instance_id": request.slot_instance_id},
        )

    @staticmethod
    def notify_request_cancelled(db: Session, request: BookingRequest) -> bool:
        """Tell the slot owner a consumer withdrew their pending request."""
        instance = db.get(SlotInstance, request.slot_instance_id)
        owner_id = instance.owner_id if instance is not None else None
        if owner_id is None:
            logger.warning(f"Skipping cancellation notification for request {request.id}: owner unknown")
            return False
        return NotificationService.notify(
            db,
            user_id=owner_id,
            notification_type=NOTIFICATION_BOOKING_CANCELLED,
            actor_id=request.requester_id,
            entity_id=request.id,
            entity_type="booking_request",
            data={"slot_instance_id": request.slot_instance_id},
        )
