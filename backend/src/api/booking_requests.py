# pyright: reportMissingTypeStubs=false
"""
Booking request API endpoints.

Providers list and decide on incoming requests; consumers list and cancel
their own. Notifications are written after the transition has committed and
never change the outcome of the request.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.constants import REQUESTS_DEFAULT_LIMIT
from core.database import get_db
from auth.dependencies import require_authenticated, UserContext
from api.responses import (
    BookingRequestResponse, IncomingRequestListResponse, MyRequestListResponse,
    BookingResponse, BookingEnvelope, MessageResponse
)
from services.booking_acceptance_service import BookingAcceptanceService
from services.booking_request_service import BookingRequestService, serialize_request
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/requests", summary="List requests for my slot instances")
def list_incoming_requests(
    status: Optional[str] = Query(None, description="pending, accepted, rejected or cancelled"),
    search: Optional[str] = Query(None, description="Requester name, university or course"),
    slot_instance_id: Optional[int] = Query(None, alias="slotInstanceId"),
    limit: int = Query(REQUESTS_DEFAULT_LIMIT),
    offset: int = Query(0),
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> IncomingRequestListResponse:
    requests, total = BookingRequestService.list_incoming_requests(
        db,
        owner_id=current_user.user_id,
        status=status,
        search=search,
        slot_instance_id=slot_instance_id,
        limit=limit,
        offset=offset,
    )
    return IncomingRequestListResponse(
        requests=[BookingRequestResponse(**serialize_request(r)) for r in requests],
        total=total,
    )


@router.get("/my-requests", summary="List my booking requests")
def list_my_requests(
    status: Optional[str] = Query(None, description="pending, accepted, rejected or cancelled"),
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> MyRequestListResponse:
    requests = BookingRequestService.list_my_requests(db, current_user.user_id, status)
    return MyRequestListResponse(requests=[BookingRequestResponse(**serialize_request(r)) for r in requests])


@router.post("/requests/{request_id}/accept", summary="Accept a booking request")
def accept_request(
    request_id: int,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> BookingEnvelope:
    """
    Accept a pending request for one of the caller's slot instances.

    Returns 409 when the instance is at capacity or the request is no longer
    pending.
    """
    booking = BookingAcceptanceService.accept_request(db, request_id, current_user.user_id)
    NotificationService.notify_request_accepted(db, booking, current_user.user_id)

    return BookingEnvelope(booking=BookingResponse(
        id=booking.id,
        slot_instance_id=booking.slot_instance_id,
        request_id=booking.request_id,
        user_id=booking.user_id,
        created_at=booking.created_at,
    ))


@router.post("/requests/{request_id}/reject", summary="Reject a booking request")
def reject_request(
    request_id: int,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> MessageResponse:
    request = BookingAcceptanceService.reject_request(db, request_id, current_user.user_id)
    NotificationService.notify_request_rejected(db, request, current_user.user_id)
    return MessageResponse(msg="Request rejected")


@router.post("/requests/{request_id}/cancel", summary="Cancel my booking request")
def cancel_request(
    request_id: int,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> MessageResponse:
    request = BookingAcceptanceService.cancel_request(db, request_id, current_user.user_id)
    NotificationService.notify_request_cancelled(db, request)
    return MessageResponse(msg="Request cancelled")
