# backend/tests/services/test_appointment_service.py
"""
Integration tests for AppointmentService against the SQLite test database.

Covers booking validation (template gate and conflict rules), the
lifecycle state machine, idempotent cancellation and rescheduling.
"""

from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from masterbook.core.enums import AutomationType
from masterbook.core.exceptions import (
    AppointmentConflictException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from masterbook.events.appointment_events import AppointmentCancelled, AppointmentCreated, AppointmentStatusChanged
from masterbook.events.publisher import EventPublisher
from masterbook.models.appointment import AppointmentStatus
from masterbook.repositories import RepositoryFactory
from masterbook.schemas.appointment import AppointmentCreate, AppointmentUpdate
from masterbook.services.access_policy import Actor
from masterbook.services.appointment_service import AppointmentService
from tests.conftest import MONDAY, SATURDAY, TestSessionLocal, create_student


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def service(db, publisher):
    return AppointmentService(db, publisher=publisher)


def book(service, student, master, time="10:00", minutes=60, day=MONDAY, **extra):
    return service.create_appointment(
        Actor.from_user(student),
        AppointmentCreate(provider_id=master.id, date=day, time=time, duration_minutes=minutes, **extra),
    )


class TestCreateAppointment:
    def test_creates_pending_appointment(self, service, publisher, master, student):
        appointment = book(service, student, master, minutes=90)

        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.master_id == master.id
        assert appointment.student_id == student.id
        assert appointment.start_utc.hour == 10
        assert appointment.end_utc.hour == 11 and appointment.end_utc.minute == 30
        # 60/h for 90 minutes
        assert Decimal(str(appointment.price)) == Decimal("90.00")

        events = [e for e in publisher.published if isinstance(e, AppointmentCreated)]
        assert len(events) == 1
        assert events[0].provider.email == master.email

    def test_explicit_price_is_kept(self, service, master, student):
        appointment = book(service, student, master, price=Decimal("25.50"))
        assert Decimal(str(appointment.price)) == Decimal("25.50")

    def test_masters_cannot_book(self, service, master, other_master):
        with pytest.raises(ForbiddenException) as exc_info:
            service.create_appointment(
                Actor.from_user(other_master),
                AppointmentCreate(provider_id=master.id, date=MONDAY, time="10:00", duration_minutes=60),
            )
        assert exc_info.value.code == "STUDENT_ONLY"

    def test_unknown_master(self, service, student, other_student):
        with pytest.raises(NotFoundException):
            service.create_appointment(
                Actor.from_user(student),
                AppointmentCreate(provider_id=other_student.id, date=MONDAY, time="10:00", duration_minutes=60),
            )

    def test_outside_template_is_rejected(self, service, master, student):
        with pytest.raises(ValidationException) as exc_info:
            book(service, student, master, day=SATURDAY)
        assert exc_info.value.code == "OUTSIDE_AVAILABILITY"

    def test_running_past_closing_is_rejected(self, service, master, student):
        with pytest.raises(ValidationException):
            book(service, student, master, time="17:30", minutes=60)


class TestBookingConflicts:
    """Existing appointment 10:00-11:00 PENDING."""

    @pytest.fixture
    def existing(self, service, master, student):
        return book(service, student, master, time="10:00", minutes=60)

    def test_exact_overlap(self, service, master, other_student, existing):
        with pytest.raises(AppointmentConflictException) as exc_info:
            book(service, other_student, master, time="10:30", minutes=30)
        assert exc_info.value.reason == "exact_overlap"
        assert exc_info.value.details["conflicting_appointment_id"] == existing.id

    def test_spans_into_slot(self, service, master, other_student, existing):
        with pytest.raises(AppointmentConflictException) as exc_info:
            book(service, other_student, master, time="09:30", minutes=90)
        assert exc_info.value.reason == "spans_into_slot"

    def test_touching_boundary_is_accepted(self, service, master, other_student, existing):
        appointment = book(service, other_student, master, time="11:00", minutes=30)
        assert appointment.status == AppointmentStatus.PENDING.value

    def test_other_masters_calendar_is_independent(self, service, other_master, other_student, existing):
        appointment = book(service, other_student, other_master, time="10:00", minutes=60)
        assert appointment.master_id == other_master.id

    def test_cancelled_appointment_frees_the_slot(self, service, master, student, other_student, existing):
        service.cancel_appointment(existing.id, Actor.from_user(student))
        appointment = book(service, other_student, master, time="10:00", minutes=60)
        assert appointment.id != existing.id


class TestTransitions:
    @pytest.fixture
    def appointment(self, service, master, student):
        return book(service, student, master)

    def test_master_confirms(self, db, service, publisher, master, appointment):
        confirmed = service.transition(appointment.id, Actor.from_user(master), AppointmentStatus.CONFIRMED)

        assert confirmed.status == AppointmentStatus.CONFIRMED.value
        assert confirmed.confirmed_at is not None
        changed = [e for e in publisher.published if isinstance(e, AppointmentStatusChanged)]
        assert changed[0].old_status == "PENDING" and changed[0].new_status == "CONFIRMED"

        records = RepositoryFactory.create_automation_repository(db).get_for_appointment(appointment.id)
        assert sorted(r.type for r in records) == [AutomationType.FOLLOW_UP.value, AutomationType.REMINDER.value]
        assert all(r.is_active for r in records)

    def test_student_cannot_confirm(self, service, student, appointment):
        with pytest.raises(ForbiddenException) as exc_info:
            service.transition(appointment.id, Actor.from_user(student), AppointmentStatus.CONFIRMED)
        assert exc_info.value.code == "MASTER_ONLY"

    def test_pending_cannot_complete(self, service, master, appointment):
        with pytest.raises(InvalidTransitionException):
            service.transition(appointment.id, Actor.from_user(master), AppointmentStatus.COMPLETED)

    def test_confirmed_can_complete(self, service, master, appointment):
        actor = Actor.from_user(master)
        service.transition(appointment.id, actor, AppointmentStatus.CONFIRMED)
        completed = service.transition(appointment.id, actor, AppointmentStatus.COMPLETED)

        assert completed.status == AppointmentStatus.COMPLETED.value
        assert completed.completed_at is not None

    def test_cancel_committed_after_load_is_not_overwritten(self, service, master, student, appointment):
        """A cancellation from another session lands between load and confirm; CANCELLED stays terminal."""
        other_session = TestSessionLocal()
        student_service = AppointmentService(other_session, publisher=EventPublisher())
        load_for = service._load_for

        def load_then_cancel_elsewhere(appointment_id, actor):
            loaded = load_for(appointment_id, actor)
            student_service.cancel_appointment(appointment_id, Actor.from_user(student), "changed plans")
            return loaded

        try:
            with patch.object(service, "_load_for", side_effect=load_then_cancel_elsewhere):
                with pytest.raises(InvalidTransitionException):
                    service.transition(appointment.id, Actor.from_user(master), AppointmentStatus.CONFIRMED)
        finally:
            other_session.close()

        current = service.get_appointment(appointment.id, Actor.from_user(student))
        assert current.status == AppointmentStatus.CANCELLED.value
        assert current.confirmed_at is None

    def test_stranger_cannot_see_or_change(self, service, other_student, appointment):
        actor = Actor.from_user(other_student)
        with pytest.raises(ForbiddenException):
            service.get_appointment(appointment.id, actor)
        with pytest.raises(ForbiddenException):
            service.cancel_appointment(appointment.id, actor)

    def test_unknown_appointment(self, service, student):
        with pytest.raises(NotFoundException):
            service.get_appointment("01HZZZZZZZZZZZZZZZZZZZZZZZ", Actor.from_user(student))


class TestCancellation:
    @pytest.fixture
    def appointment(self, service, master, student):
        return book(service, student, master)

    def test_cancel_records_who_and_why(self, service, student, appointment):
        result = service.cancel_appointment(appointment.id, Actor.from_user(student), "injured")

        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.appointment.cancelled_by_id == student.id
        assert result.appointment.cancellation_reason == "injured"
        assert result.appointment.cancelled_at is not None

    def test_second_cancel_is_rejected_without_side_effects(self, db, service, publisher, student, appointment):
        actor = Actor.from_user(student)
        service.cancel_appointment(appointment.id, actor)

        with pytest.raises(InvalidTransitionException):
            service.cancel_appointment(appointment.id, actor)

        cancelled_events = [e for e in publisher.published if isinstance(e, AppointmentCancelled)]
        assert len(cancelled_events) == 1
        records = RepositoryFactory.create_automation_repository(db).get_for_appointment(appointment.id)
        assert [r.type for r in records] == [AutomationType.CANCELLATION_NOTIFICATION.value]

    def test_replacements_are_reported(self, service, publisher, student, appointment, tennis_students):
        result = service.cancel_appointment(appointment.id, Actor.from_user(student))

        assert result.potential_replacements == 5
        event = [e for e in publisher.published if isinstance(e, AppointmentCancelled)][0]
        assert len(event.replacement_ids) == 5
        assert student.id not in event.replacement_ids

    def test_replacement_failure_does_not_undo_cancellation(self, service, student, appointment):
        service.replacement_finder.find_replacements = Mock(side_effect=RuntimeError("boom"))

        result = service.cancel_appointment(appointment.id, Actor.from_user(student))

        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.potential_replacements == 0

    def test_cancel_via_transition(self, service, master, appointment):
        cancelled = service.transition(appointment.id, Actor.from_user(master), AppointmentStatus.CANCELLED, "rain")
        assert cancelled.status == AppointmentStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "rain"


class TestUpdateAppointment:
    @pytest.fixture
    def appointment(self, service, master, student):
        return book(service, student, master, time="10:00", minutes=60)

    def test_notes_update(self, service, student, appointment):
        updated = service.update_appointment(
            appointment.id, Actor.from_user(student), AppointmentUpdate(notes="  bring balls  ")
        )
        assert updated.notes == "bring balls"

    def test_reschedule_may_overlap_its_own_old_time(self, service, student, appointment):
        updated = service.update_appointment(
            appointment.id, Actor.from_user(student), AppointmentUpdate(date=MONDAY, time="10:30")
        )
        assert updated.start_utc.hour == 10 and updated.start_utc.minute == 30
        assert updated.duration_minutes == 60

    def test_reschedule_into_other_appointment_conflicts(self, service, master, student, other_student, appointment):
        book(service, other_student, master, time="12:00", minutes=60)

        with pytest.raises(AppointmentConflictException) as exc_info:
            service.update_appointment(
                appointment.id, Actor.from_user(student), AppointmentUpdate(date=MONDAY, time="11:30")
            )
        assert exc_info.value.reason == "spans_into_slot"

    def test_reschedule_past_closing_is_rejected(self, service, student, appointment):
        with pytest.raises(ValidationException):
            service.update_appointment(
                appointment.id, Actor.from_user(student), AppointmentUpdate(date=MONDAY, time="17:30")
            )

    def test_cancelled_appointment_cannot_be_rescheduled(self, service, student, appointment):
        actor = Actor.from_user(student)
        service.cancel_appointment(appointment.id, actor)

        with pytest.raises(ConflictException) as exc_info:
            service.update_appointment(appointment.id, actor, AppointmentUpdate(date=MONDAY, time="14:00"))
        assert exc_info.value.code == "NOT_RESCHEDULABLE"

    def test_status_change_through_update(self, service, master, appointment):
        updated = service.update_appointment(
            appointment.id, Actor.from_user(master), AppointmentUpdate(status=AppointmentStatus.CONFIRMED)
        )
        assert updated.status == AppointmentStatus.CONFIRMED.value

    def test_student_status_change_rejected_before_notes_written(self, service, student, appointment):
        with pytest.raises(ForbiddenException):
            service.update_appointment(
                appointment.id,
                Actor.from_user(student),
                AppointmentUpdate(notes="changed", status=AppointmentStatus.CONFIRMED),
            )
        assert service.get_appointment(appointment.id, Actor.from_user(student)).notes == ""


class TestListAppointments:
    def test_each_party_sees_own(self, db, service, master, student, other_student):
        book(service, student, master, time="10:00")
        book(service, other_student, master, time="14:00")
        third = create_student(db, "third@example.com", full_name="Third")

        assert len(service.list_appointments(Actor.from_user(master))) == 2
        assert len(service.list_appointments(Actor.from_user(student))) == 1
        assert service.list_appointments(Actor.from_user(third)) == []
