# backend/masterbook/repositories/factory.py
"""
Repository Factory for the MasterBook platform.

Services never build repositories themselves; they ask the factory,
which keeps construction in one place and lets tests swap in mocks.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository
    from .automation_repository import AutomationRepository
    from .availability_repository import AvailabilityRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for users and their profiles."""
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for weekly availability templates."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        """Create repository for appointment queries."""
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

    @staticmethod
    def create_automation_repository(db: Session) -> "AutomationRepository":
        """Create repository for automation records."""
        from .automation_repository import AutomationRepository

        return AutomationRepository(db)
