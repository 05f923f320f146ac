"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_NOTES_LENGTH = 1000
MAX_REQUEST_MESSAGE_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",
    "https://aroundu.me",
    "https://aroundu-admin.netlify.app",
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = list(dict.fromkeys(origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()))

# Booking request statuses
REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_ACCEPTED = "accepted"
REQUEST_STATUS_REJECTED = "rejected"
REQUEST_STATUS_CANCELLED = "cancelled"
REQUEST_STATUSES = (
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_ACCEPTED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_CANCELLED,
)

# Incoming request listing pagination
REQUESTS_DEFAULT_LIMIT = 10
REQUESTS_MAX_LIMIT = 100

# Calendar spans
WEEK_SPAN_DAYS = 7
MAX_MATERIALIZE_SPAN_DAYS = 31

# Notification types emitted after booking transitions commit
NOTIFICATION_BOOKING_REQUEST = "booking_request"
NOTIFICATION_BOOKING_ACCEPTED = "booking_accepted"
NOTIFICATION_BOOKING_REJECTED = "booking_rejected"
NOTIFICATION_BOOKING_CANCELLED = "booking_cancelled"
