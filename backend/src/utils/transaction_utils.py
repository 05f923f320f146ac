"""
Transaction helpers for the booking services.

Provides the bounded lock wait applied at the start of locking transactions and
the retry policy for transient store failures (deadlocks, lock timeouts,
serialization failures).
"""

import functools
import logging
import time
from typing import Any, Callable, TypeVar, cast

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from core.config import DB_LOCK_TIMEOUT_MS, TRANSIENT_RETRY_ATTEMPTS, TRANSIENT_RETRY_BASE_DELAY
from core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_PGCODES = frozenset({"40001", "40P01", "55P03"})

SQLITE_TRANSIENT_MESSAGES = ("database is locked", "database table is locked")


def is_transient_db_error(exc: BaseException) -> bool:
    """Check whether a database error is safe to retry."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in TRANSIENT_PGCODES:
        return True
    message = str(orig or exc).lower()
    return any(fragment in message for fragment in SQLITE_TRANSIENT_MESSAGES)


def apply_lock_timeout(db: Session) -> None:
    """
    Bound how long the current transaction waits for row locks.

    PostgreSQL only; SQLite waits on its busy timeout instead.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = '{int(DB_LOCK_TIMEOUT_MS)}ms'"))


def retry_on_transient_failure(
    max_retries: int = TRANSIENT_RETRY_ATTEMPTS,
    base_delay: float = TRANSIENT_RETRY_BASE_DELAY,
) -> Callable[[F], F]:
    """
    Decorator that retries a transactional operation on transient store failures.

    The decorated function must take the Session as its first argument and roll
    it back before re-raising, so each attempt starts a fresh transaction.
    When retries are exhausted the failure surfaces as TransientStoreError.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Base delay in seconds (exponential backoff)
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except DBAPIError as e:
                    if not is_transient_db_error(e):
                        raise
                    if attempt >= max_retries:
                        logger.warning(
                            f"Transient store failure in {func.__name__} persisted after "
                            f"{max_retries + 1} attempts: {e}"
                        )
                        raise TransientStoreError(
                            "The booking store is busy, please retry shortly"
                        ) from e
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Transient store failure in {func.__name__} (attempt {attempt + 1}/{max_retries + 1}), "
                        f"retrying in {delay:.2f} seconds: {e}"
                    )
                    time.sleep(delay)
            raise AssertionError("unreachable")
        return cast(F, wrapper)
    return decorator


def is_unique_violation(exc: BaseException) -> bool:
    """Check whether an IntegrityError came from a unique constraint."""
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode is not None:
        return pgcode == "23505"
    return "unique constraint" in str(orig or exc).lower()
