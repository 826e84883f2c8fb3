# backend/tests/unit/test_conflict_checker.py
"""
Unit tests for conflict detection.

Appointments are transient model instances; the repository is mocked so
only the overlap rules are exercised.
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import pytz
from sqlalchemy.orm import Session

from masterbook.core.exceptions import AppointmentConflictException, ValidationException
from masterbook.models.appointment import Appointment, AppointmentStatus
from masterbook.services.availability_service import default_rules
from masterbook.services.conflict_checker import (
    ConflictChecker,
    annotate_booked,
    check_template_window,
    classify_conflict,
    intervals_overlap,
)
from masterbook.services.slot_generator import generate_day_slots

MONDAY = datetime(2030, 1, 7, tzinfo=pytz.UTC).date()


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute, tzinfo=pytz.UTC)


def appointment(appt_id: str, start: datetime, minutes: int, status: AppointmentStatus = AppointmentStatus.PENDING):
    return Appointment(
        id=appt_id,
        master_id="master-1",
        student_id="student-1",
        start_at=start,
        duration_minutes=minutes,
        status=status.value,
    )


def classify(start: datetime, minutes: int, candidates):
    return classify_conflict(start, start + timedelta(minutes=minutes), candidates)


class TestIntervalsOverlap:
    def test_touching_intervals_do_not_overlap(self):
        assert intervals_overlap(at(10), at(11), at(11), at(12)) is False

    def test_nested_interval_overlaps(self):
        assert intervals_overlap(at(10), at(12), at(10, 30), at(11)) is True


class TestClassifyConflict:
    """Existing appointment 10:00-11:00 PENDING."""

    @pytest.fixture
    def existing(self):
        return [appointment("a1", at(10), 60)]

    def test_start_inside_existing_is_exact_overlap(self, existing):
        conflict = classify(at(10, 30), 30, existing)
        assert conflict is not None
        assert conflict.reason == AppointmentConflictException.EXACT_OVERLAP
        assert conflict.details["conflicting_appointment_id"] == "a1"

    def test_same_start_is_exact_overlap(self, existing):
        assert classify(at(10), 30, existing).reason == "exact_overlap"

    def test_running_into_existing_is_spans_into_slot(self, existing):
        conflict = classify(at(9, 30), 90, existing)
        assert conflict.reason == AppointmentConflictException.SPANS_INTO_SLOT

    def test_covering_existing_is_spans_into_slot(self, existing):
        assert classify(at(9), 180, existing).reason == "spans_into_slot"

    def test_touching_end_is_accepted(self, existing):
        assert classify(at(11), 30, existing) is None

    def test_touching_start_is_accepted(self, existing):
        assert classify(at(9), 60, existing) is None

    def test_exact_overlap_takes_precedence(self, existing):
        """An earlier appointment containing the start wins over one the proposal runs into."""
        candidates = existing + [appointment("a0", at(9), 45)]
        conflict = classify(at(9, 30), 90, candidates)
        assert conflict.reason == "exact_overlap"
        assert conflict.details["conflicting_appointment_id"] == "a0"

    def test_no_candidates_no_conflict(self):
        assert classify(at(10), 60, []) is None


class TestAnnotateBooked:
    def test_overlapping_slots_are_booked(self):
        slots = generate_day_slots(default_rules(), MONDAY)
        annotated = {s.time: s for s in annotate_booked(slots, MONDAY, [appointment("a1", at(10), 60)])}

        assert annotated["10:00"].booked is True
        assert annotated["10:30"].booked is True
        assert annotated["10:00"].available is False
        assert annotated["09:30"].booked is False
        assert annotated["11:00"].booked is False
        assert annotated["11:00"].available is True

    def test_cancelled_appointments_do_not_block(self):
        slots = generate_day_slots(default_rules(), MONDAY)
        cancelled = appointment("a1", at(10), 60, AppointmentStatus.CANCELLED)
        annotated = annotate_booked(slots, MONDAY, [cancelled])

        assert not any(s.booked for s in annotated)

    def test_booked_outside_template_stays_unavailable(self):
        slots = generate_day_slots(default_rules(), MONDAY)
        annotated = {s.time: s for s in annotate_booked(slots, MONDAY, [appointment("a1", at(8), 30)])}

        assert annotated["08:00"].booked is True
        assert annotated["08:00"].available_by_template is False
        assert annotated["08:00"].available is False


class TestTemplateGate:
    def test_inside_window_passes(self):
        check_template_window(default_rules(), MONDAY, 17 * 60, 60)

    def test_running_past_window_end_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            check_template_window(default_rules(), MONDAY, 17 * 60 + 30, 60)
        assert exc_info.value.code == "OUTSIDE_AVAILABILITY"

    def test_starting_before_window_is_rejected(self):
        with pytest.raises(ValidationException):
            check_template_window(default_rules(), MONDAY, 8 * 60 + 30, 60)

    def test_closed_day_is_rejected(self):
        sunday = datetime(2030, 1, 6).date()
        with pytest.raises(ValidationException) as exc_info:
            check_template_window(default_rules(), sunday, 10 * 60, 60)
        assert exc_info.value.details["window"] is None


class TestConflictCheckerService:
    def test_raises_with_reason_from_repository_candidates(self):
        repository = Mock()
        repository.get_blocking_overlapping.return_value = [appointment("a1", at(10), 60)]
        checker = ConflictChecker(Mock(spec=Session), repository=repository)

        with pytest.raises(AppointmentConflictException) as exc_info:
            checker.validate_booking_request("master-1", at(10, 30), 30)

        assert exc_info.value.reason == "exact_overlap"
        assert exc_info.value.status_code == 409

    def test_passes_exclusion_to_repository(self):
        repository = Mock()
        repository.get_blocking_overlapping.return_value = []
        checker = ConflictChecker(Mock(spec=Session), repository=repository)

        checker.validate_booking_request("master-1", at(10), 60, exclude_appointment_id="a1")

        repository.get_blocking_overlapping.assert_called_once_with(
            "master-1", at(10), at(11), exclude_appointment_id="a1"
        )

    def test_naive_start_is_treated_as_utc(self):
        repository = Mock()
        repository.get_blocking_overlapping.return_value = [appointment("a1", at(10), 60)]
        checker = ConflictChecker(Mock(spec=Session), repository=repository)

        with pytest.raises(AppointmentConflictException):
            checker.validate_booking_request("master-1", datetime(2030, 1, 7, 10, 15), 30)
