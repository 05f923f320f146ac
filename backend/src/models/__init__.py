# Package initialization
# Import all models to ensure relationships are properly established
from .user import User
from .slot_template import SlotTemplate
from .slot_instance import SlotInstance
from .booking_request import BookingRequest
from .booking import Booking
from .notification import Notification

__all__ = [
    "User",
    "SlotTemplate",
    "SlotInstance",
    "BookingRequest",
    "Booking",
    "Notification",
]
