# backend/tests/services/test_replacement_finder.py
"""Integration tests for ReplacementFinder."""

from datetime import datetime, timedelta

import pytest
import pytz

from masterbook.models.appointment import Appointment, AppointmentStatus
from masterbook.services.replacement_finder import ReplacementFinder
from tests.conftest import create_master, create_student

START = datetime(2030, 1, 7, 10, tzinfo=pytz.UTC)


def add_appointment(db, master, student, start=START, minutes=60, status=AppointmentStatus.PENDING):
    appointment = Appointment(
        master_id=master.id,
        student_id=student.id,
        start_at=start,
        duration_minutes=minutes,
        status=status.value,
        price=0,
    )
    db.add(appointment)
    db.commit()
    return appointment


@pytest.fixture
def finder(db):
    return ReplacementFinder(db)


@pytest.fixture
def cancelled(db, master, student):
    return add_appointment(db, master, student, status=AppointmentStatus.CANCELLED)


class TestFindReplacements:
    def test_caps_at_five_of_eight(self, finder, cancelled, tennis_students):
        candidates = finder.find_replacements(cancelled)

        assert len(candidates) == 5
        assert {c.id for c in candidates} <= {s.id for s in tennis_students}

    def test_explicit_limit(self, finder, cancelled, tennis_students):
        assert len(finder.find_replacements(cancelled, limit=2)) == 2

    def test_cancelling_student_is_excluded(self, finder, cancelled, student):
        assert student.id not in {c.id for c in finder.find_replacements(cancelled)}

    def test_interest_match_is_case_insensitive(self, db, finder, cancelled):
        fan = create_student(db, "caps@example.com", preferred_sports=("  TENNIS ",))
        create_student(db, "golfer@example.com", preferred_sports=("golf",))

        assert [c.id for c in finder.find_replacements(cancelled)] == [fan.id]

    def test_busy_students_are_excluded(self, db, finder, master, other_master, cancelled):
        busy = create_student(db, "busy@example.com", preferred_sports=("tennis",))
        free = create_student(db, "free@example.com", preferred_sports=("tennis",))
        # Overlaps 10:00-11:00 with another master
        add_appointment(db, other_master, busy, start=START + timedelta(minutes=30))
        # Cancelled bookings do not make a student busy
        add_appointment(db, other_master, free, status=AppointmentStatus.CANCELLED)

        ids = {c.id for c in finder.find_replacements(cancelled)}
        assert free.id in ids
        assert busy.id not in ids

    def test_touching_appointment_does_not_make_busy(self, db, finder, other_master, cancelled):
        neighbour = create_student(db, "next@example.com", preferred_sports=("tennis",))
        add_appointment(db, other_master, neighbour, start=START + timedelta(hours=1))

        assert neighbour.id in {c.id for c in finder.find_replacements(cancelled)}

    def test_master_without_specialties_finds_nobody(self, db, finder, student, tennis_students):
        generalist = create_master(db, "generalist@example.com", specialties=())
        appointment = add_appointment(db, generalist, student, status=AppointmentStatus.CANCELLED)

        assert finder.find_replacements(appointment) == []

    def test_no_interested_students(self, finder, cancelled, other_student):
        assert finder.find_replacements(cancelled) == []
