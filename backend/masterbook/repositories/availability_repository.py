# backend/masterbook/repositories/availability_repository.py
"""
Availability Repository for the MasterBook platform.

The weekly template is stored as a JSON document on the master profile
and is always replaced wholesale.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.profiles import MasterProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[MasterProfile]):
    """Repository for the weekly template stored on master profiles."""

    def __init__(self, db: Session):
        super().__init__(db, MasterProfile)

    def get_profile(self, master_id: str) -> Optional[MasterProfile]:
        return self.find_one_by(user_id=master_id)

    def get_template_document(self, master_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored {"timeSlots", "notes"} document, or None when unset."""
        profile = self.get_profile(master_id)
        if profile is None:
            return None
        return profile.stored_template()

    def replace_template(self, master_id: str, document: Dict[str, Any]) -> MasterProfile:
        """
        Replace the stored template, creating the profile row if missing.

        Note: Does NOT commit.
        """
        try:
            profile = self.get_profile(master_id)
            if profile is None:
                profile = MasterProfile(user_id=master_id, specialties=[])
                self.db.add(profile)
            # Assign a fresh dict so the JSON column is flagged dirty
            profile.availability = dict(document)
            self.db.flush()
            return profile
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving availability for master {master_id}: {str(e)}")
            raise RepositoryException(f"Failed to save availability: {str(e)}")
