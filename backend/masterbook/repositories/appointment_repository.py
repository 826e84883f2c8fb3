# backend/masterbook/repositories/appointment_repository.py
"""
Appointment Repository for the MasterBook platform.

Overlap queries are half-open: an appointment [s, e) intersects a range
[a, b) iff s < b and e > a. The end of an appointment is derived from its
duration, so the SQL filter only bounds start_at; it reaches back by the
longest allowed appointment so that appointments which started before the
range and run into it are found. The exact test is then applied in Python.
"""

from datetime import datetime, timedelta
import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.config import settings
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import ensure_utc
from ..models.appointment import BLOCKING_STATUSES, Appointment, AppointmentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_BLOCKING_VALUES = [s.value for s in BLOCKING_STATUSES]


class AppointmentRepository(BaseRepository[Appointment]):
    """Repository for appointment data access."""

    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def _lookback(self) -> timedelta:
        return timedelta(minutes=settings.max_appointment_minutes)

    def get_with_parties(self, appointment_id: str) -> Optional[Appointment]:
        """Load an appointment with master and student eagerly."""
        try:
            return (
                self.db.query(Appointment)
                .options(joinedload(Appointment.master), joinedload(Appointment.student))
                .filter(Appointment.id == appointment_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading appointment {appointment_id}: {str(e)}")
            raise RepositoryException(f"Failed to load appointment: {str(e)}")

    def get_blocking_overlapping(
        self,
        master_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Appointment]:
        """
        PENDING/CONFIRMED appointments of a master intersecting [range_start, range_end).

        Args:
            master_id: The master whose calendar is checked
            range_start: Inclusive UTC start of the range
            range_end: Exclusive UTC end of the range
            exclude_appointment_id: Appointment to ignore (used when rescheduling)

        Returns:
            Overlapping appointments ordered by start
        """
        range_start = ensure_utc(range_start)
        range_end = ensure_utc(range_end)
        query = self.db.query(Appointment).filter(
            Appointment.master_id == master_id,
            Appointment.status.in_(_BLOCKING_VALUES),
            Appointment.start_at < range_end,
            Appointment.start_at > range_start - self._lookback(),
        )
        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)

        candidates = self._execute_query(query.order_by(Appointment.start_at))
        return [a for a in candidates if a.overlaps(range_start, range_end)]

    def get_students_with_overlap(
        self, student_ids: Iterable[str], range_start: datetime, range_end: datetime
    ) -> Set[str]:
        """Ids of the given students holding a PENDING/CONFIRMED appointment in the range."""
        ids = list(student_ids)
        if not ids:
            return set()
        range_start = ensure_utc(range_start)
        range_end = ensure_utc(range_end)
        query = self.db.query(Appointment).filter(
            Appointment.student_id.in_(ids),
            Appointment.status.in_(_BLOCKING_VALUES),
            Appointment.start_at < range_end,
            Appointment.start_at > range_start - self._lookback(),
        )
        return {a.student_id for a in self._execute_query(query) if a.overlaps(range_start, range_end)}

    def get_for_user(self, user_id: str) -> List[Appointment]:
        """Appointments where the user is master or student, ordered by start."""
        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.master), joinedload(Appointment.student))
            .filter(or_(Appointment.master_id == user_id, Appointment.student_id == user_id))
            .order_by(Appointment.start_at, Appointment.id)
        )
        return self._execute_query(query)

    def get_starting_between(
        self, window_start: datetime, window_end: datetime, status: AppointmentStatus
    ) -> List[Appointment]:
        """Appointments in ``status`` whose start falls in [window_start, window_end)."""
        query = self.db.query(Appointment).filter(
            Appointment.status == status.value,
            Appointment.start_at >= ensure_utc(window_start),
            Appointment.start_at < ensure_utc(window_end),
        )
        return self._execute_query(query.order_by(Appointment.start_at))

    def get_completed_between(self, window_start: datetime, window_end: datetime) -> List[Appointment]:
        """Appointments marked COMPLETED during [window_start, window_end)."""
        query = self.db.query(Appointment).filter(
            Appointment.status == AppointmentStatus.COMPLETED.value,
            Appointment.completed_at >= ensure_utc(window_start),
            Appointment.completed_at < ensure_utc(window_end),
        )
        return self._execute_query(query.order_by(Appointment.completed_at))
