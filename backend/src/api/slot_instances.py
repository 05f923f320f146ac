# pyright: reportMissingTypeStubs=false
"""
Slot instance API endpoints.

Covers batch creation, materialization from templates, deletion, the
weekly calendar and per-date listings, and submitting a booking request
against an instance.
"""

import logging
from datetime import datetime, date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.constants import MAX_NOTES_LENGTH, MAX_REQUEST_MESSAGE_LENGTH
from core.database import get_db
from core.exceptions import ValidationError
from auth.dependencies import require_authenticated, UserContext
from api.responses import (
    SlotInstanceResponse, SlotInstanceBatchResponse, SlotInstanceListResponse,
    BookingRequestResponse, BookingRequestEnvelope, MessageResponse
)
from services.booking_request_service import BookingRequestService, serialize_request
from services.notification_service import NotificationService
from services.slot_instance_service import SlotInstanceService, SlotRange
from utils.datetime_utils import parse_date_string

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class SlotRangeRequest(BaseModel):
    """One range in a batch. Naive timestamps are read in the server timezone."""
    start_ts: datetime
    end_ts: datetime
    capacity: int = Field(0, description="0 falls back to the template's capacity, then unlimited")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    template_id: Optional[int] = None


class SlotInstanceBatchRequest(BaseModel):
    """Request model for creating several instances on one date."""
    date: str = Field(..., description="Target date (YYYY-MM-DD)")
    ranges: List[SlotRangeRequest]


class MaterializeRequest(BaseModel):
    """Request model for expanding templates over a date range (inclusive)."""
    start_date: str = Field(..., description="First date (YYYY-MM-DD)")
    end_date: str = Field(..., description="Last date (YYYY-MM-DD)")


class SubmitBookingRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=MAX_REQUEST_MESSAGE_LENGTH)


def _parse_date(value: str, field_name: str) -> date:
    try:
        return parse_date_string(value)
    except ValueError as e:
        raise ValidationError(f"{field_name}: {e}") from e


# ===== API Endpoints =====

@router.post("/slot-instances/batch", status_code=status.HTTP_201_CREATED,
             summary="Create slot instances for a date")
def create_slot_instance_batch(
    request: SlotInstanceBatchRequest,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotInstanceBatchResponse:
    """
    Insert every range or none of them.

    Fails with 409 when any range overlaps another submitted range or one of
    the caller's existing instances on that date.
    """
    day = _parse_date(request.date, "date")
    ranges = [
        SlotRange(
            start_ts=r.start_ts,
            end_ts=r.end_ts,
            capacity=r.capacity,
            notes=r.notes,
            template_id=r.template_id,
        )
        for r in request.ranges
    ]
    inserted = SlotInstanceService.create_instance_batch(db, current_user.user_id, day, ranges)
    return SlotInstanceBatchResponse(inserted=[
        SlotInstanceResponse(**SlotInstanceService.serialize_instance(i)) for i in inserted
    ])


@router.post("/slot-instances/materialize", status_code=status.HTTP_201_CREATED,
             summary="Create slot instances from my templates")
def materialize_slot_instances(
    request: MaterializeRequest,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotInstanceBatchResponse:
    start_day = _parse_date(request.start_date, "start_date")
    end_day = _parse_date(request.end_date, "end_date")
    inserted = SlotInstanceService.materialize_from_templates(db, current_user.user_id, start_day, end_day)
    return SlotInstanceBatchResponse(inserted=[
        SlotInstanceResponse(**SlotInstanceService.serialize_instance(i)) for i in inserted
    ])


@router.get("/week", summary="List slot instances for a week")
def list_week(
    start: str = Query(..., description="First day of the week (YYYY-MM-DD)"),
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotInstanceListResponse:
    start_day = _parse_date(start, "start")
    instances = SlotInstanceService.list_week(db, start_day)
    return SlotInstanceListResponse(instances=[SlotInstanceResponse(**i) for i in instances])


@router.get("/slot-instances", summary="List slot instances on a date")
def list_slot_instances_for_date(
    date_param: str = Query(..., alias="date", description="Date (YYYY-MM-DD)"),
    mine: bool = Query(False, description="Only the caller's own instances"),
    professor_id: Optional[int] = Query(None, alias="professorId", description="Owner to list instances for"),
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotInstanceListResponse:
    day = _parse_date(date_param, "date")
    if mine:
        owner_id = current_user.user_id
    elif professor_id is not None:
        owner_id = professor_id
    else:
        raise ValidationError("Either mine=true or professorId is required")

    instances = SlotInstanceService.list_for_date(db, day, owner_id)
    return SlotInstanceListResponse(instances=[SlotInstanceResponse(**i) for i in instances])


@router.delete("/slot-instances/{instance_id}", summary="Delete a slot instance")
def delete_slot_instance(
    instance_id: int,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> MessageResponse:
    SlotInstanceService.delete_instance(db, current_user.user_id, instance_id)
    return MessageResponse(msg="Slot instance deleted")


@router.post("/slot-instances/{instance_id}/request", status_code=status.HTTP_201_CREATED,
             summary="Request a slot instance")
def submit_booking_request(
    instance_id: int,
    request: Optional[SubmitBookingRequest] = None,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> BookingRequestEnvelope:
    message = request.message if request is not None else None
    booking_request = BookingRequestService.submit_request(db, current_user.user_id, instance_id, message)

    # Committed; notify the owner outside the booking transaction
    owner_id = booking_request.slot_instance.owner_id
    if owner_id is not None:
        NotificationService.notify_request_submitted(db, booking_request, owner_id)

    return BookingRequestEnvelope(request=BookingRequestResponse(**serialize_request(booking_request)))
