"""
Services package for shared business logic.

This package contains service classes that encapsulate the booking business
logic shared by the API endpoints and scripts.
"""

from .slot_template_service import SlotTemplateService
from .slot_instance_service import SlotInstanceService, SlotRange
from .booking_request_service import BookingRequestService
from .booking_acceptance_service import BookingAcceptanceService
from .notification_service import NotificationService

__all__ = [
    "SlotTemplateService",
    "SlotInstanceService",
    "SlotRange",
    "BookingRequestService",
    "BookingAcceptanceService",
    "NotificationService",
]
