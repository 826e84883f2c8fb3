"""
Appointment domain events.

Events carry a snapshot of everything a notifier needs (names, emails,
wall-clock time) so handlers can run after the request's session is gone.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.user import User


@dataclass(frozen=True)
class Recipient:
    """Contact snapshot of a user."""

    user_id: str
    email: str
    full_name: str

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(user_id=user.id, email=user.email, full_name=user.full_name)


@dataclass
class AppointmentCreated:
    """Fired after a student requests an appointment."""

    appointment_id: str
    provider_id: str
    client_id: str
    start_at: datetime
    duration_minutes: int
    provider: Recipient
    client: Recipient

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AppointmentStatusChanged:
    """Fired after a non-cancelling status transition (confirm, complete)."""

    appointment_id: str
    provider_id: str
    client_id: str
    old_status: str
    new_status: str
    changed_by: str
    start_at: datetime
    duration_minutes: int
    provider: Recipient
    client: Recipient

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AppointmentCancelled:
    """Fired once, after a cancellation has been committed."""

    appointment_id: str
    provider_id: str
    client_id: str
    cancelled_by: str
    reason: Optional[str]
    start_at: datetime
    duration_minutes: int
    provider: Recipient
    client: Recipient
    replacements: List[Recipient] = field(default_factory=list)

    @property
    def replacement_ids(self) -> List[str]:
        return [r.user_id for r in self.replacements]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["replacement_ids"] = self.replacement_ids
        return data
