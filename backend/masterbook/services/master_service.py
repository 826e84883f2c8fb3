# backend/masterbook/services/master_service.py
"""
Master discovery for the MasterBook platform.

Read-only views over master profiles: search, public profile, and the
list of students who have booked a master. Ratings are not computed.
"""

from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..models.user import User
from ..repositories import RepositoryFactory
from ..repositories.user_repository import UserRepository
from ..schemas.master import MasterStudent, MasterSummary
from .base import BaseService

logger = logging.getLogger(__name__)


def _summary(master: User) -> MasterSummary:
    profile = master.master_profile
    template = profile.stored_template() if profile else None
    return MasterSummary(
        id=master.id,
        full_name=master.full_name,
        bio=profile.bio if profile else "",
        specialties=list(profile.specialties or []) if profile else [],
        hourly_rate=Decimal(str(profile.hourly_rate)) if profile else Decimal("0"),
        location=profile.location if profile else "",
        availability_notes=template.get("notes") if template else None,
    )


class MasterService(BaseService):
    """Search and public profiles of masters."""

    def __init__(self, db: Session, user_repository: Optional[UserRepository] = None):
        super().__init__(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("search_masters")
    def search_masters(
        self,
        sport: Optional[str] = None,
        location: Optional[str] = None,
        price_min: Optional[Decimal] = None,
        price_max: Optional[Decimal] = None,
    ) -> List[MasterSummary]:
        """Masters filtered by specialty (case-insensitive), location and rate, by name."""
        masters = self.user_repository.search_masters(location=location, price_min=price_min, price_max=price_max)
        if sport:
            wanted = sport.strip().lower()
            masters = [m for m in masters if wanted in m.master_profile.specialty_set]
        return [_summary(m) for m in masters]

    @BaseService.measure_operation("get_master")
    def get_master(self, master_id: str) -> MasterSummary:
        master = self.user_repository.get_master(master_id)
        if master is None:
            raise NotFoundException(f"Master {master_id} not found", code="MASTER_NOT_FOUND")
        return _summary(master)

    @BaseService.measure_operation("get_students_of_master")
    def get_students(self, master_id: str) -> List[MasterStudent]:
        """Students that booked ``master_id``, with how many appointments each made."""
        rows = self.user_repository.get_students_of_master(master_id)
        students = []
        for user, count in rows:
            profile = user.student_profile
            students.append(
                MasterStudent(
                    id=user.id,
                    full_name=user.full_name,
                    email=user.email,
                    skill_level=profile.skill_level if profile else None,
                    preferred_sports=list(profile.preferred_sports or []) if profile else [],
                    appointment_count=count,
                )
            )
        return students
