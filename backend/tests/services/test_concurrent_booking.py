# backend/tests/services/test_concurrent_booking.py
"""
Concurrency test for booking validation.

Two threads book the same master at the same time through separate
AppointmentService instances that share an in-memory repository whose
writes are slow, widening the check-then-insert window. Exactly one
booking may succeed; the other must see the first and fail.
"""

from datetime import datetime
from decimal import Decimal
import threading
import time
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from masterbook.core.enums import RoleName
from masterbook.core.exceptions import AppointmentConflictException
from masterbook.core.ulid_helper import generate_ulid
from masterbook.events.publisher import EventPublisher
from masterbook.models.appointment import Appointment
from masterbook.models.profiles import MasterProfile
from masterbook.models.user import User
from masterbook.schemas.appointment import AppointmentCreate
from masterbook.schemas.availability import WeeklyTemplate
from masterbook.services.access_policy import Actor
from masterbook.services.appointment_service import AppointmentService
from masterbook.services.availability_service import default_rules
from masterbook.services.conflict_checker import ConflictChecker
from tests.conftest import MONDAY


class InMemoryAppointmentRepository:
    """The subset of AppointmentRepository the booking path uses."""

    def __init__(self, users: Dict[str, User], write_delay: float = 0.05):
        self.users = users
        self.write_delay = write_delay
        self.rows: Dict[str, Appointment] = {}

    def get_blocking_overlapping(
        self,
        master_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Appointment]:
        return [
            a
            for a in list(self.rows.values())
            if a.master_id == master_id
            and a.is_blocking
            and a.id != exclude_appointment_id
            and a.overlaps(range_start, range_end)
        ]

    def create(self, **kwargs) -> Appointment:
        time.sleep(self.write_delay)
        appointment = Appointment(id=generate_ulid(), **kwargs)
        appointment.master = self.users[kwargs["master_id"]]
        appointment.student = self.users[kwargs["student_id"]]
        self.rows[appointment.id] = appointment
        return appointment

    def get_with_parties(self, appointment_id: str) -> Optional[Appointment]:
        return self.rows.get(appointment_id)


@pytest.fixture
def parties():
    master = User(id=generate_ulid(), email="race.master@example.com", full_name="Race Master", role="master")
    master.master_profile = MasterProfile(user_id=master.id, specialties=["Tennis"], hourly_rate=Decimal("60"))
    students = [
        User(id=generate_ulid(), email=f"racer{i}@example.com", full_name=f"Racer {i}", role="student")
        for i in range(2)
    ]
    return master, students


def build_service(repository, master):
    db = Mock(spec=Session)
    user_repository = Mock()
    user_repository.get_master.return_value = master
    availability_service = Mock()
    availability_service.get_weekly_template.return_value = WeeklyTemplate(
        provider_id=master.id, time_slots=default_rules()
    )
    return AppointmentService(
        db,
        publisher=EventPublisher(),
        repository=repository,
        user_repository=user_repository,
        conflict_checker=ConflictChecker(db, repository=repository),
        availability_service=availability_service,
        replacement_finder=Mock(),
        automation_service=Mock(),
    )


def test_simultaneous_bookings_only_one_wins(parties):
    master, students = parties
    repository = InMemoryAppointmentRepository({u.id: u for u in [master, *students]})
    barrier = threading.Barrier(len(students))
    outcomes: List[object] = []
    outcomes_lock = threading.Lock()

    def attempt(student: User) -> None:
        service = build_service(repository, master)
        payload = AppointmentCreate(provider_id=master.id, date=MONDAY, time="10:00", duration_minutes=60)
        barrier.wait()
        try:
            result: object = service.create_appointment(Actor(user_id=student.id, role=RoleName.STUDENT), payload)
        except Exception as exc:
            result = exc
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(s,)) for s in students]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    created = [o for o in outcomes if isinstance(o, Appointment)]
    conflicts = [o for o in outcomes if isinstance(o, AppointmentConflictException)]
    assert len(created) == 1
    assert len(conflicts) == 1
    assert conflicts[0].reason == "exact_overlap"
    assert len(repository.rows) == 1
