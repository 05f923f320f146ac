"""
Booking domain errors.

Services raise these instead of HTTPException so the same operations can be
driven from scripts and tests. The API layer maps them to JSON responses with
the HTTP status and error type carried on each class.
"""

from typing import Optional, Tuple

from fastapi import status


class BookingError(Exception):
    """Base class for all booking domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "booking_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(BookingError):
    """Malformed input: bad dates, missing fields, inverted ranges."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"


class PastDateError(ValidationError):
    error_type = "past_date"


class InvalidRangeError(ValidationError):
    error_type = "invalid_range"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ForbiddenError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"


class ConflictError(BookingError):
    """Definitive business-rule rejection. Retrying without changing intent will fail again."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"


class OverlapError(ConflictError):
    """
    A submitted range overlaps another submitted range or an existing instance.

    ``range_indexes`` holds the 1-based positions of the offending submitted
    ranges; ``existing_instance_id`` is set when the clash is with a stored instance.
    """

    error_type = "overlap"

    def __init__(self, detail: str, range_indexes: Tuple[int, ...] = (), existing_instance_id: Optional[int] = None):
        super().__init__(detail)
        self.range_indexes = range_indexes
        self.existing_instance_id = existing_instance_id


class DuplicateRequestError(ConflictError):
    error_type = "duplicate_request"


class CapacityFullError(ConflictError):
    error_type = "capacity_full"


class NotPendingError(ConflictError):
    error_type = "not_pending"


class InstanceHasBookingsError(ConflictError):
    error_type = "instance_has_bookings"


class TransientStoreError(BookingError):
    """Lock timeout, deadlock or serialization failure that survived the retry policy."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "transient_store_error"


class DataInconsistencyError(BookingError):
    """Server-side invariant violation, e.g. a slot instance whose owner cannot be resolved."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "data_inconsistency"
