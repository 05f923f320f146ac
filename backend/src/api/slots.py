# pyright: reportMissingTypeStubs=false
"""
Slot template API endpoints.

Providers manage their recurring weekly availability here. Concrete bookable
occurrences live under /slot-instances.
"""

import logging
from datetime import time
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.constants import MAX_NOTES_LENGTH
from core.database import get_db
from auth.dependencies import require_authenticated, UserContext
from api.responses import SlotTemplateResponse, SlotTemplateEnvelope, SlotTemplateListResponse, MessageResponse
from models import SlotTemplate
from services.slot_template_service import SlotTemplateService

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class SlotTemplateCreateRequest(BaseModel):
    """Request model for creating a slot template."""
    weekday: int = Field(..., description="0=Monday ... 6=Sunday")
    start_time: time
    end_time: time
    capacity: int = Field(0, description="Maximum bookings per instance, 0 for unlimited")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class SlotTemplateUpdateRequest(BaseModel):
    """Request model for updating a slot template. Omitted fields are left unchanged."""
    weekday: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


def _to_response(template: SlotTemplate) -> SlotTemplateResponse:
    return SlotTemplateResponse(
        id=template.id,
        owner_id=template.owner_id,
        weekday=template.weekday,
        start_time=template.start_time,
        end_time=template.end_time,
        capacity=template.capacity,
        notes=template.notes,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


# ===== API Endpoints =====

@router.post("/slots", status_code=status.HTTP_201_CREATED, summary="Create a slot template")
def create_slot_template(
    request: SlotTemplateCreateRequest,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotTemplateEnvelope:
    template = SlotTemplateService.create_template(
        db,
        owner_id=current_user.user_id,
        weekday=request.weekday,
        start_time=request.start_time,
        end_time=request.end_time,
        capacity=request.capacity,
        notes=request.notes,
    )
    return SlotTemplateEnvelope(slot=_to_response(template))


@router.get("/slots", summary="List my slot templates")
def list_slot_templates(
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotTemplateListResponse:
    templates = SlotTemplateService.list_templates(db, current_user.user_id)
    return SlotTemplateListResponse(slots=[_to_response(t) for t in templates])


@router.put("/slots/{template_id}", summary="Update a slot template")
def update_slot_template(
    template_id: int,
    request: SlotTemplateUpdateRequest,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> SlotTemplateEnvelope:
    updates = request.model_dump(exclude_unset=True)
    template = SlotTemplateService.update_template(db, current_user.user_id, template_id, updates)
    return SlotTemplateEnvelope(slot=_to_response(template))


@router.delete("/slots/{template_id}", summary="Delete a slot template")
def delete_slot_template(
    template_id: int,
    current_user: UserContext = Depends(require_authenticated),
    db: Session = Depends(get_db)
) -> MessageResponse:
    SlotTemplateService.delete_template(db, current_user.user_id, template_id)
    return MessageResponse(msg="Slot template deleted")
