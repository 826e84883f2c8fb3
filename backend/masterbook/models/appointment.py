# backend/masterbook/models/appointment.py
"""
Appointment model for the MasterBook platform.

An appointment is one scheduled session between a master and a student.
The start instant is stored in UTC; the end is derived from the duration.
Appointment status is a single enum used by every code path, and the
allowed transitions between statuses are declared here once.
"""

from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.timezone_utils import ensure_utc, format_instant, utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "PENDING"  # Requested by the student
    CONFIRMED = "CONFIRMED"  # Accepted by the master
    CANCELLED = "CANCELLED"  # Terminal
    COMPLETED = "COMPLETED"  # Terminal


# Statuses that hold the master's time
BLOCKING_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
)

ALLOWED_TRANSITIONS: Mapping[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


class Appointment(Base):
    """
    Scheduled session between a master and a student.

    Invariant: for one master, no two appointments in BLOCKING_STATUSES
    have overlapping [start_at, end_at) intervals.
    """

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    master_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    master = relationship("User", foreign_keys=[master_id], backref="appointments_as_master")
    student = relationship("User", foreign_keys=[student_id], backref="appointments_as_student")
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="ck_appointments_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index("ix_appointments_master_status_start", "master_id", "status", "start_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id}: master={self.master_id}, student={self.student_id}, "
            f"start={self.start_at}, duration={self.duration_minutes}, status={self.status}>"
        )

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    @property
    def start_utc(self) -> datetime:
        return ensure_utc(self.start_at)

    @property
    def end_utc(self) -> datetime:
        return self.start_utc + timedelta(minutes=int(self.duration_minutes))

    @property
    def is_blocking(self) -> bool:
        return self.status_enum in BLOCKING_STATUSES

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap test against [start, end)."""
        return self.start_utc < ensure_utc(end) and ensure_utc(start) < self.end_utc

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status_enum]

    def confirm(self) -> None:
        self.status = AppointmentStatus.CONFIRMED.value
        self.confirmed_at = utc_now()
        logger.info(f"Appointment {self.id} confirmed")

    def cancel(self, cancelled_by_user_id: str, reason: Optional[str] = None) -> None:
        self.status = AppointmentStatus.CANCELLED.value
        self.cancelled_at = utc_now()
        self.cancelled_by_id = cancelled_by_user_id
        self.cancellation_reason = reason
        logger.info(f"Appointment {self.id} cancelled by user {cancelled_by_user_id}")

    def complete(self) -> None:
        self.status = AppointmentStatus.COMPLETED.value
        self.completed_at = utc_now()
        logger.info(f"Appointment {self.id} marked as completed")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for events and notification templates."""
        start = format_instant(self.start_utc)
        return {
            "id": self.id,
            "master_id": self.master_id,
            "student_id": self.student_id,
            "start_at": start["iso"],
            "end_at": self.end_utc.isoformat(),
            "date": start["date"],
            "time": start["time"],
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "price": float(self.price or 0),
            "notes": self.notes or "",
        }
