"""
Unit tests for NotificationService.

Notifications are written after the booking transaction commits; a failing
write must leave the booking untouched.
"""

from unittest.mock import patch

from models import Notification, Booking, BookingRequest
from services.booking_acceptance_service import BookingAcceptanceService
from services.notification_service import NotificationService
from tests.conftest import create_user, create_template, create_instance, create_request, future_date


def test_notify_stores_row(db_session):
    professor = create_user(db_session, user_type="professor")
    student = create_user(db_session)

    stored = NotificationService.notify(
        db_session, professor.id, "booking_request",
        actor_id=student.id, entity_id=7, entity_type="booking_request", data={"slot_instance_id": 3},
    )

    assert stored is True
    notification = db_session.query(Notification).filter(Notification.user_id == professor.id).one()
    assert notification.type == "booking_request"
    assert notification.actor_id == student.id
    assert notification.data == {"slot_instance_id": 3}
    assert notification.read is False


def test_request_submitted_notifies_template_owner(db_session):
    professor = create_user(db_session, user_type="professor")
    student = create_user(db_session)
    template = create_template(db_session, professor)
    instance = create_instance(db_session, future_date(), 10, 11, template=template)
    request = create_request(db_session, instance, student)

    assert NotificationService.notify_request_submitted(db_session, request, instance.owner_id)

    notification = db_session.query(Notification).one()
    assert notification.user_id == professor.id
    assert notification.entity_id == request.id


def test_cancellation_notifies_resolved_owner(db_session):
    professor = create_user(db_session, user_type="professor")
    student = create_user(db_session)
    instance = create_instance(db_session, future_date(), 10, 11, created_by=professor)
    request = create_request(db_session, instance, student, status="cancelled")

    assert NotificationService.notify_request_cancelled(db_session, request)

    notification = db_session.query(Notification).one()
    assert notification.user_id == professor.id
    assert notification.type == "booking_cancelled"


def test_failed_notification_does_not_undo_booking(db_session):
    professor = create_user(db_session, user_type="professor")
    student = create_user(db_session)
    instance = create_instance(db_session, future_date(), 10, 11, created_by=professor, capacity=1)
    request = create_request(db_session, instance, student)
    booking = BookingAcceptanceService.accept_request(db_session, request.id, professor.id)

    with patch.object(db_session, "commit", side_effect=RuntimeError("notification store down")):
        stored = NotificationService.notify_request_accepted(db_session, booking, professor.id)

    assert stored is False
    db_session.expire_all()
    assert db_session.query(Booking).filter(Booking.id == booking.id).count() == 1
    assert db_session.get(BookingRequest, request.id).status == "accepted"
    assert db_session.query(Notification).count() == 0
