"""
Test configuration and shared fixtures for the AroundU booking test suite.

Runs against TEST_DATABASE_URL (PostgreSQL or SQLite; a temporary SQLite file
by default) with transaction-based isolation. Each test gets a clean
database state via automatic transaction rollback.
"""

import os
import tempfile
import pytest
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from core.database import Base, build_engine
from alembic.config import Config
from alembic import command

from models import User, SlotTemplate, SlotInstance, BookingRequest, Booking, Notification
from utils.datetime_utils import app_today, combine_in_app_tz


# Test database URL
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{Path(tempfile.gettempdir()) / 'aroundu_bookings_test.db'}"
)

BACKEND_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture(scope="session")
def db_engine() -> Generator[Engine, None, None]:
    """
    Create a database engine for the test session.

    Built with the application's engine factory so SQLite gets the same
    locking setup as in production use. NullPool gives every session its
    own connection, which the concurrency tests rely on.
    """
    engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    yield engine

    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """
    Setup test database schema using Alembic migrations.

    This runs once at the start of the test session and ensures the test
    database has the schema the migrations produce, not just what the models
    declare.
    """
    alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)

    Base.metadata.drop_all(bind=db_engine)
    with db_engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE IF EXISTS alembic_version")

    command.upgrade(alembic_cfg, "head")

    yield

    # Cleanup: drop all tables after test session
    Base.metadata.drop_all(bind=db_engine)
    with db_engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE IF EXISTS alembic_version")


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for a test with automatic rollback.

    The session joins an outer transaction on its connection through a
    savepoint, so application code may commit and roll back freely; the
    outer transaction is rolled back at teardown and nothing persists.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    TestingSession = sessionmaker(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSession()

    yield session

    # Teardown: rollback everything
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def committed_session_factory(db_engine) -> Generator[sessionmaker, None, None]:
    """
    Session factory whose commits are real, for tests that need several connections.

    Every row is deleted at teardown. Tests using this fixture must not also
    use db_session: on SQLite the db_session transaction holds the write lock
    for the whole test.
    """
    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)

    yield factory

    with db_engine.begin() as conn:
        for model in (Notification, Booking, BookingRequest, SlotInstance, SlotTemplate, User):
            conn.execute(delete(model))


# Helper functions for creating booking data
_user_counter = 0


def create_user(
    db_session: Session,
    first_name: str = "Test",
    last_name: str = "User",
    user_type: str = "student",
    email: Optional[str] = None,
    university: Optional[str] = None,
    course: Optional[str] = None,
) -> User:
    """Create and commit a user with a unique email."""
    global _user_counter
    _user_counter += 1
    user = User(
        email=email or f"user{_user_counter}_{first_name.lower()}@example.edu",
        first_name=first_name,
        last_name=last_name,
        user_type=user_type,
        university=university,
        course=course,
    )
    db_session.add(user)
    db_session.commit()
    return user


def future_date(days: int = 7) -> date:
    """A date safely in the future relative to the server calendar."""
    return app_today() + timedelta(days=days)


def slot_ts(day: date, hour: int, minute: int = 0) -> datetime:
    """Timezone-aware timestamp on ``day`` at the given wall-clock time."""
    return combine_in_app_tz(day, time(hour, minute))


def create_template(
    db_session: Session,
    owner: User,
    weekday: int = 0,
    start: time = time(10, 0),
    end: time = time(11, 0),
    capacity: int = 0,
    notes: Optional[str] = None,
) -> SlotTemplate:
    template = SlotTemplate(
        owner_id=owner.id,
        weekday=weekday,
        start_time=start,
        end_time=end,
        capacity=capacity,
        notes=notes,
    )
    db_session.add(template)
    db_session.commit()
    return template


def create_instance(
    db_session: Session,
    day: date,
    start_hour: int,
    end_hour: int,
    created_by: Optional[User] = None,
    template: Optional[SlotTemplate] = None,
    capacity: int = 0,
    notes: Optional[str] = None,
) -> SlotInstance:
    """
    Insert a slot instance directly, bypassing the service's validation.

    Pass ``created_by`` for an ad-hoc instance, ``template`` alone for a
    materialized one, or both.
    """
    instance = SlotInstance(
        template_id=template.id if template is not None else None,
        created_by=created_by.id if created_by is not None else None,
        date=day,
        start_ts=slot_ts(day, start_hour),
        end_ts=slot_ts(day, end_hour),
        capacity=capacity,
        notes=notes,
    )
    db_session.add(instance)
    db_session.commit()
    return instance


def create_request(
    db_session: Session,
    instance: SlotInstance,
    requester: User,
    status: str = "pending",
    message: Optional[str] = None,
) -> BookingRequest:
    request = BookingRequest(
        slot_instance_id=instance.id,
        requester_id=requester.id,
        status=status,
        message=message,
    )
    db_session.add(request)
    db_session.commit()
    return request
