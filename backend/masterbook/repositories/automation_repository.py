# backend/masterbook/repositories/automation_repository.py
"""Automation Repository for the MasterBook platform."""

from typing import List

from sqlalchemy.orm import Session

from ..models.automation import Automation
from .base_repository import BaseRepository


class AutomationRepository(BaseRepository[Automation]):
    """Repository for append-only automation records."""

    def __init__(self, db: Session):
        super().__init__(db, Automation)

    def get_active_for_appointment(self, appointment_id: str, trigger: str) -> List[Automation]:
        query = (
            self._build_query()
            .filter(
                Automation.appointment_id == appointment_id,
                Automation.trigger == trigger,
                Automation.is_active.is_(True),
            )
            .order_by(Automation.created_at, Automation.id)
        )
        return self._execute_query(query)

    def get_for_appointment(self, appointment_id: str) -> List[Automation]:
        query = (
            self._build_query()
            .filter(Automation.appointment_id == appointment_id)
            .order_by(Automation.created_at, Automation.id)
        )
        return self._execute_query(query)

    def deactivate_pending(self, appointment_id: str, types: List[str]) -> int:
        """
        Switch off active records of the given types for an appointment.

        Returns:
            Number of records deactivated
        """
        records = self._execute_query(
            self._build_query().filter(
                Automation.appointment_id == appointment_id,
                Automation.type.in_(types),
                Automation.is_active.is_(True),
            )
        )
        for record in records:
            record.is_active = False
        self.db.flush()
        return len(records)
