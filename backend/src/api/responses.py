"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
the slot, slot instance and booking request routers.
"""

from datetime import datetime, date, time
from typing import List, Optional

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    msg: str


class SlotTemplateResponse(BaseModel):
    """Response model for a slot template."""
    id: int
    owner_id: int
    weekday: int
    start_time: time
    end_time: time
    capacity: int  # 0 means unlimited
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SlotTemplateEnvelope(BaseModel):
    slot: SlotTemplateResponse


class SlotTemplateListResponse(BaseModel):
    slots: List[SlotTemplateResponse]


class OwnerSummary(BaseModel):
    id: int
    first_name: str
    last_name: str


class SlotInstanceResponse(BaseModel):
    """Response model for a slot instance with capacity and notes already resolved."""
    id: int
    template_id: Optional[int] = None
    date: date
    start_ts: datetime
    end_ts: datetime
    capacity: int  # effective capacity, 0 means unlimited
    notes: Optional[str] = None
    created_by: Optional[int] = None
    owner_id: Optional[int] = None
    owner: Optional[OwnerSummary] = None
    pending_count: int = 0
    accepted_count: int = 0


class SlotInstanceBatchResponse(BaseModel):
    inserted: List[SlotInstanceResponse]


class SlotInstanceListResponse(BaseModel):
    instances: List[SlotInstanceResponse]


class RequesterSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    university: Optional[str] = None
    course: Optional[str] = None
    profile_key: Optional[str] = None


class RequestSlotSummary(BaseModel):
    id: int
    date: date
    start_ts: datetime
    end_ts: datetime
    owner_id: Optional[int] = None


class BookingRequestResponse(BaseModel):
    """Response model for a booking request."""
    id: int
    slot_instance_id: int
    requester_id: int
    message: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    requester: Optional[RequesterSummary] = None
    slot: Optional[RequestSlotSummary] = None


class BookingRequestEnvelope(BaseModel):
    request: BookingRequestResponse


class IncomingRequestListResponse(BaseModel):
    """Page of incoming requests plus the total for pagination."""
    requests: List[BookingRequestResponse]
    total: int


class MyRequestListResponse(BaseModel):
    requests: List[BookingRequestResponse]


class BookingResponse(BaseModel):
    """Response model for a confirmed booking."""
    id: int
    slot_instance_id: int
    request_id: int
    user_id: int
    created_at: datetime


class BookingEnvelope(BaseModel):
    booking: BookingResponse
