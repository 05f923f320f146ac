"""
Concurrent acceptance against a real database.

Each worker uses its own session and connection, so the row locks taken by
accept_request are what keeps the booking count within capacity.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from core.exceptions import CapacityFullError, NotPendingError, OverlapError, TransientStoreError
from models import Booking, BookingRequest, SlotInstance
from services.booking_acceptance_service import BookingAcceptanceService
from services.slot_instance_service import SlotInstanceService, SlotRange
from tests.conftest import create_user, create_instance, create_request, future_date, slot_ts


def _accept_in_own_session(session_factory, request_id, owner_id):
    db = session_factory()
    try:
        BookingAcceptanceService.accept_request(db, request_id, owner_id)
        return "accepted"
    except CapacityFullError:
        return "capacity_full"
    except NotPendingError:
        return "not_pending"
    except TransientStoreError:
        return "transient"
    finally:
        db.close()


def test_parallel_accepts_never_exceed_capacity(committed_session_factory):
    setup = committed_session_factory()
    professor = create_user(setup, user_type="professor")
    instance = create_instance(setup, future_date(), 10, 11, created_by=professor, capacity=2)
    request_ids = [create_request(setup, instance, create_user(setup)).id for _ in range(6)]
    instance_id, professor_id = instance.id, professor.id
    setup.close()

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(
            lambda rid: _accept_in_own_session(committed_session_factory, rid, professor_id),
            request_ids,
        ))

    check = committed_session_factory()
    try:
        bookings = check.query(Booking).filter(Booking.slot_instance_id == instance_id).count()
        accepted = check.query(BookingRequest).filter(
            BookingRequest.slot_instance_id == instance_id,
            BookingRequest.status == "accepted",
        ).count()
    finally:
        check.close()

    assert set(outcomes) <= {"accepted", "capacity_full"}
    assert bookings == 2
    assert outcomes.count("accepted") == bookings == accepted
    assert outcomes.count("capacity_full") == 4


def test_same_request_accepted_twice_in_parallel_books_once(committed_session_factory):
    setup = committed_session_factory()
    professor = create_user(setup, user_type="professor")
    instance = create_instance(setup, future_date(), 10, 11, created_by=professor)
    request_id = create_request(setup, instance, create_user(setup)).id
    instance_id, professor_id = instance.id, professor.id
    setup.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(
            lambda _: _accept_in_own_session(committed_session_factory, request_id, professor_id),
            range(2),
        ))

    check = committed_session_factory()
    try:
        bookings = check.query(Booking).filter(Booking.slot_instance_id == instance_id).count()
    finally:
        check.close()

    assert bookings == 1
    assert outcomes.count("accepted") == 1
    assert sorted(outcomes) == ["accepted", "not_pending"]


def test_racing_overlapping_batches_insert_exactly_one(committed_session_factory):
    setup = committed_session_factory()
    professor_id = create_user(setup, user_type="professor").id
    setup.close()
    day = future_date()

    def submit(offset_minutes):
        db = committed_session_factory()
        start = slot_ts(day, 10) + timedelta(minutes=offset_minutes)
        try:
            SlotInstanceService.create_instance_batch(
                db, professor_id, day, [SlotRange(start_ts=start, end_ts=start + timedelta(hours=1))]
            )
            return "created"
        except OverlapError:
            return "overlap"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(submit, [5 * i for i in range(8)]))

    check = committed_session_factory()
    try:
        stored = check.query(SlotInstance).filter(SlotInstance.created_by == professor_id).count()
    finally:
        check.close()

    assert outcomes.count("created") == 1
    assert outcomes.count("overlap") == 7
    assert stored == 1
