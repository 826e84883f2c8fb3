# backend/masterbook/repositories/user_repository.py
"""
User Repository for the MasterBook platform.

Reads users together with their master/student profiles. Profile CRUD
lives outside the scheduling core, so apart from the booking row lock
this repository is read-only.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import RoleName
from ..core.exceptions import RepositoryException
from ..models.appointment import Appointment
from ..models.profiles import MasterProfile, StudentProfile
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for users, masters and students."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_master(self, user_id: str) -> Optional[User]:
        """Return the user if it exists and has the master role."""
        try:
            return (
                self.db.query(User)
                .options(joinedload(User.master_profile))
                .filter(User.id == user_id, User.role == RoleName.MASTER.value)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading master {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load master: {str(e)}")

    def lock_master_row(self, master_id: str) -> Optional[User]:
        """
        Take a row lock on the master for the rest of the transaction.

        Serializes validate-then-write booking sequences across processes on
        PostgreSQL. SQLite has no row locks and ignores FOR UPDATE.
        """
        try:
            return self.db.query(User).filter(User.id == master_id).with_for_update().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking master {master_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock master row: {str(e)}")

    def get_students_with_profiles(self, exclude_user_id: Optional[str] = None) -> List[User]:
        """
        Active students that have a student profile, in creation order.

        Args:
            exclude_user_id: Student to leave out (e.g. the cancelling client)
        """
        query = (
            self.db.query(User)
            .join(StudentProfile, StudentProfile.user_id == User.id)
            .options(joinedload(User.student_profile))
            .filter(User.role == RoleName.STUDENT.value, User.is_active.is_(True))
        )
        if exclude_user_id:
            query = query.filter(User.id != exclude_user_id)
        return self._execute_query(query.order_by(User.created_at, User.id))

    def search_masters(
        self,
        location: Optional[str] = None,
        price_min: Optional[Decimal] = None,
        price_max: Optional[Decimal] = None,
    ) -> List[User]:
        """
        Masters with a profile, filtered by location substring and rate bounds.

        Specialty filtering is done by the caller because specialties are a
        JSON list and matching is case-insensitive.
        """
        query = (
            self.db.query(User)
            .join(MasterProfile, MasterProfile.user_id == User.id)
            .options(joinedload(User.master_profile))
            .filter(User.role == RoleName.MASTER.value, User.is_active.is_(True))
        )
        if location:
            query = query.filter(MasterProfile.location.ilike(f"%{location}%"))
        if price_min is not None:
            query = query.filter(MasterProfile.hourly_rate >= price_min)
        if price_max is not None:
            query = query.filter(MasterProfile.hourly_rate <= price_max)
        return self._execute_query(query.order_by(User.full_name, User.id))

    def get_students_of_master(self, master_id: str) -> List[Tuple[User, int]]:
        """Students that booked the master at least once, with their booking counts."""
        query = (
            self.db.query(User, func.count(Appointment.id))
            .join(Appointment, Appointment.student_id == User.id)
            .filter(Appointment.master_id == master_id)
            .group_by(User.id)
            .order_by(User.full_name, User.id)
        )
        return [(user, int(count)) for user, count in self._execute_query(query)]
