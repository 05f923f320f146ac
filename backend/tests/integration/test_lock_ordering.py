"""
Row lock ordering across booking transactions.

Every transaction that locks more than one kind of row takes them in the
order booking request -> slot instance -> slot template. The order is read
from the SELECT ... FOR UPDATE statements the session executes, so it is
checked the same way on SQLite (where FOR UPDATE is not rendered) and on
PostgreSQL.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List

from sqlalchemy import event
from sqlalchemy.orm import Session

from core.exceptions import InstanceHasBookingsError, NotFoundError, TransientStoreError
from models import Booking, BookingRequest, SlotInstance, SlotTemplate, User
from services.booking_acceptance_service import BookingAcceptanceService
from services.slot_instance_service import SlotInstanceService
from services.slot_template_service import SlotTemplateService
from tests.conftest import create_user, create_template, create_instance, create_request, future_date


LOCK_ORDER = [BookingRequest, SlotInstance, SlotTemplate]


def _record_locked_entities(session: Session) -> List[type]:
    """Collect, in first-seen order, the entities selected FOR UPDATE by session."""
    locked: List[type] = []

    @event.listens_for(session, "do_orm_execute")
    def _record(orm_execute_state):  # type: ignore
        statement = orm_execute_state.statement
        if not orm_execute_state.is_select or statement._for_update_arg is None:
            return
        entity = statement.column_descriptions[0]["entity"]
        if entity is not User and entity not in locked:
            locked.append(entity)

    return locked


class TestLockOrder:

    def test_accept_locks_request_then_instance_then_template(self, db_session):
        professor = create_user(db_session, user_type="professor")
        template = create_template(db_session, professor)
        instance = create_instance(db_session, future_date(), 10, 11, template=template)
        request = create_request(db_session, instance, create_user(db_session))
        locked = _record_locked_entities(db_session)

        BookingAcceptanceService.accept_request(db_session, request.id, professor.id)

        assert locked == LOCK_ORDER

    def test_delete_template_locks_request_then_instance_then_template(self, db_session):
        professor = create_user(db_session, user_type="professor")
        template = create_template(db_session, professor)
        instance = create_instance(db_session, future_date(), 10, 11, template=template)
        create_request(db_session, instance, create_user(db_session))
        locked = _record_locked_entities(db_session)

        SlotTemplateService.delete_template(db_session, professor.id, template.id)

        assert locked == LOCK_ORDER

    def test_delete_instance_locks_request_then_instance(self, db_session):
        professor = create_user(db_session, user_type="professor")
        instance = create_instance(db_session, future_date(), 10, 11, created_by=professor)
        create_request(db_session, instance, create_user(db_session))
        locked = _record_locked_entities(db_session)

        SlotInstanceService.delete_instance(db_session, professor.id, instance.id)

        assert locked == LOCK_ORDER[:2]


def test_template_delete_racing_accept_has_one_consistent_winner(committed_session_factory):
    setup = committed_session_factory()
    professor = create_user(setup, user_type="professor")
    template = create_template(setup, professor)
    instance = create_instance(setup, future_date(), 10, 11, template=template)
    request_id = create_request(setup, instance, create_user(setup)).id
    template_id, instance_id, professor_id = template.id, instance.id, professor.id
    setup.close()

    def accept():
        db = committed_session_factory()
        try:
            BookingAcceptanceService.accept_request(db, request_id, professor_id)
            return "accepted"
        except NotFoundError:
            return "gone"
        except TransientStoreError:
            return "transient"
        finally:
            db.close()

    def delete():
        db = committed_session_factory()
        try:
            SlotTemplateService.delete_template(db, professor_id, template_id)
            return "deleted"
        except InstanceHasBookingsError:
            return "has_bookings"
        except TransientStoreError:
            return "transient"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        accept_future = pool.submit(accept)
        delete_future = pool.submit(delete)
        outcome = (accept_future.result(), delete_future.result())

    check = committed_session_factory()
    try:
        bookings = check.query(Booking).filter(Booking.slot_instance_id == instance_id).count()
        template_left = check.get(SlotTemplate, template_id) is not None
    finally:
        check.close()

    assert outcome in {("accepted", "has_bookings"), ("gone", "deleted")}
    if outcome[0] == "accepted":
        assert bookings == 1 and template_left
    else:
        assert bookings == 0 and not template_left
