"""
Datetime utilities for consistent timezone handling across the application.

All business dates ("today", the calendar date a slot timestamp falls on) are
evaluated in the server timezone configured by APP_TIMEZONE. Timestamps are
normalized to that timezone before they are stored, so values read back from
databases that drop the offset (SQLite) can be re-localized safely.
"""

import logging
from datetime import datetime, date, time
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import APP_TIMEZONE

logger = logging.getLogger(__name__)

APP_TZ = ZoneInfo(APP_TIMEZONE)


def app_now() -> datetime:
    """
    Get the current datetime in the server timezone.

    Returns:
        Current timezone-aware datetime
    """
    return datetime.now(APP_TZ)


def app_today() -> date:
    """Get today's date in the server timezone (date-only granularity)."""
    return app_now().date()


def ensure_app_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the server timezone.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in the server timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive values are stored wall-clock times in the server timezone
        return dt.replace(tzinfo=APP_TZ)
    return dt.astimezone(APP_TZ)


def parse_datetime_string(dt_str: str) -> datetime:
    """
    Parse an ISO format datetime string into the server timezone.

    Handles:
    - ISO format with offset (e.g., "2025-03-01T09:00:00+08:00")
    - ISO format with Z (UTC) (e.g., "2025-03-01T01:00:00Z")
    - ISO format without offset (interpreted as server time)

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    try:
        dt = datetime.fromisoformat(dt_str.strip().replace('Z', '+00:00'))
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid datetime string format: {dt_str}") from e
    result = ensure_app_tz(dt)
    assert result is not None
    return result


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days.

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def intervals_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """
    Check whether two half-open intervals [start1, end1) and [start2, end2) overlap.

    Adjacent intervals (end1 == start2) do not overlap.
    """
    return not (end1 <= start2 or end2 <= start1)


def combine_in_app_tz(day: date, t: time) -> datetime:
    """Build a timezone-aware datetime for a wall-clock time on the given date."""
    return datetime.combine(day, t).replace(tzinfo=APP_TZ)
