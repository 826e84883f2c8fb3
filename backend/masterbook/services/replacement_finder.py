# backend/masterbook/services/replacement_finder.py
"""
Replacement Finder.

When an appointment is cancelled, look for other students who might take
the freed time: their preferred sports share at least one entry with the
master's specialties and they hold no PENDING/CONFIRMED appointment
overlapping the freed interval. Matches are returned in natural order
(creation order) and capped.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.appointment import Appointment
from ..models.user import User
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class ReplacementFinder(BaseService):
    """Finds students who could take a cancelled appointment's time."""

    def __init__(
        self,
        db: Session,
        user_repository: Optional[UserRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
    ):
        super().__init__(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )

    @BaseService.measure_operation("find_replacements")
    def find_replacements(self, appointment: Appointment, limit: Optional[int] = None) -> List[User]:
        """
        Return up to ``limit`` candidate students for the cancelled appointment.

        An empty list is a normal outcome, not an error.
        """
        cap = settings.replacement_candidate_limit if limit is None else limit
        master = self.user_repository.get_master(appointment.master_id)
        if master is None or master.master_profile is None:
            return []
        specialties = master.master_profile.specialty_set
        if not specialties or cap <= 0:
            return []

        interested = [
            student
            for student in self.user_repository.get_students_with_profiles(
                exclude_user_id=appointment.student_id
            )
            if student.student_profile.interest_set & specialties
        ]
        if not interested:
            return []

        busy = self.appointment_repository.get_students_with_overlap(
            [s.id for s in interested], appointment.start_utc, appointment.end_utc
        )
        candidates = [s for s in interested if s.id not in busy][:cap]

        self.logger.info(
            f"Found {len(candidates)} replacement candidates for appointment {appointment.id}",
            extra={"appointment_id": appointment.id, "interested": len(interested), "busy": len(busy)},
        )
        return candidates
