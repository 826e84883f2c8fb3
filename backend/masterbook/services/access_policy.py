# backend/masterbook/services/access_policy.py
"""
Access policy for appointments.

Every mutating appointment operation asks the same two questions here
instead of comparing role strings inline.
"""

from dataclasses import dataclass

from ..core.enums import RoleName
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User

# Transitions only the appointment's master may perform
PROVIDER_ONLY_STATUSES = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED})


@dataclass(frozen=True)
class Actor:
    """A verified identity acting on the platform."""

    user_id: str
    role: RoleName

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, role=RoleName(user.role))

    @property
    def is_master(self) -> bool:
        return self.role == RoleName.MASTER

    @property
    def is_student(self) -> bool:
        return self.role == RoleName.STUDENT

    def is_provider_of(self, appointment: Appointment) -> bool:
        return self.is_master and appointment.master_id == self.user_id

    def is_client_of(self, appointment: Appointment) -> bool:
        return self.is_student and appointment.student_id == self.user_id


def can_modify(actor: Actor, appointment: Appointment) -> bool:
    """True when the actor is the appointment's master or its student."""
    return actor.is_provider_of(appointment) or actor.is_client_of(appointment)


def can_transition(actor: Actor, appointment: Appointment, new_status: AppointmentStatus) -> bool:
    """Confirming and completing belong to the master; cancelling to either party."""
    if not can_modify(actor, appointment):
        return False
    if new_status in PROVIDER_ONLY_STATUSES:
        return actor.is_provider_of(appointment)
    return True
