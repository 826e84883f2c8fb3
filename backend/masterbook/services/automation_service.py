# backend/masterbook/services/automation_service.py
"""
Automation Service for the MasterBook platform.

Automation records are an append-only log of triggered work around an
appointment:
- CANCELLATION_NOTIFICATION: written once per cancellation, already executed
- REMINDER / FOLLOW_UP: written on confirmation, executed later by the
  background tasks and switched off after they ran (one notice each)
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.enums import AutomationTrigger, AutomationType
from ..core.timezone_utils import utc_now
from ..models.appointment import Appointment
from ..models.automation import Automation
from ..models.user import User
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.automation_repository import AutomationRepository
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

_SCHEDULED_TYPES = [AutomationType.REMINDER.value, AutomationType.FOLLOW_UP.value]


class AutomationService(BaseService):
    """Writes and executes automation records."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        repository: Optional[AutomationRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
    ):
        super().__init__(db)
        self.notification_service = notification_service
        self.repository = repository or RepositoryFactory.create_automation_repository(db)
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )

    @BaseService.measure_operation("record_cancellation")
    def record_cancellation(
        self,
        appointment: Appointment,
        cancelled_by: str,
        reason: Optional[str],
        replacements: Sequence[User],
    ) -> Automation:
        """
        Append the audit record of a cancellation and stop pending reminders.

        Note: commits its own transaction; the cancellation itself is already
        committed when this runs.
        """
        with self.transaction():
            record = self.repository.create(
                user_id=appointment.master_id,
                appointment_id=appointment.id,
                type=AutomationType.CANCELLATION_NOTIFICATION.value,
                trigger=AutomationTrigger.ON_CANCELLATION.value,
                conditions={
                    "cancelledBy": cancelled_by,
                    "reason": reason,
                    "hasReplacements": len(replacements) > 0,
                },
                actions={
                    # Master's notice plus one per candidate
                    "notificationsSent": 1 + len(replacements),
                    "replacementsFound": len(replacements),
                },
                is_active=False,
                execution_count=1,
                last_triggered=utc_now(),
            )
            deactivated = self.repository.deactivate_pending(appointment.id, _SCHEDULED_TYPES)

        self.logger.info(
            f"Recorded cancellation automation for appointment {appointment.id}",
            extra={"appointment_id": appointment.id, "deactivated": deactivated},
        )
        return record

    @BaseService.measure_operation("schedule_follow_ups")
    def schedule_follow_ups(self, appointment: Appointment) -> List[Automation]:
        """Append active REMINDER and FOLLOW_UP records for a confirmed appointment."""
        with self.transaction():
            reminder = self.repository.create(
                user_id=appointment.master_id,
                appointment_id=appointment.id,
                type=AutomationType.REMINDER.value,
                trigger=AutomationTrigger.BEFORE_APPOINTMENT.value,
                conditions={"startsAt": appointment.start_utc.isoformat()},
                actions={"sendReminder": True},
            )
            follow_up = self.repository.create(
                user_id=appointment.master_id,
                appointment_id=appointment.id,
                type=AutomationType.FOLLOW_UP.value,
                trigger=AutomationTrigger.AFTER_APPOINTMENT.value,
                conditions={"endsAt": appointment.end_utc.isoformat()},
                actions={"sendFollowUp": True},
            )
        return [reminder, follow_up]

    @BaseService.measure_operation("trigger_automation")
    def trigger_automation(self, appointment_id: str, trigger: AutomationTrigger) -> int:
        """
        Execute every active record of ``appointment_id`` with ``trigger``.

        A failing record is logged and skipped; the others still run.

        Returns:
            Number of records executed
        """
        records = self.repository.get_active_for_appointment(appointment_id, trigger.value)
        if not records:
            return 0
        appointment = self.appointment_repository.get_with_parties(appointment_id)
        if appointment is None:
            return 0

        executed = 0
        for record in records:
            try:
                self._execute(record, appointment)
                executed += 1
            except Exception as exc:
                self.logger.error(
                    f"Automation {record.id} failed: {exc}",
                    extra={"automation_id": record.id, "appointment_id": appointment_id},
                )
        return executed

    def _execute(self, record: Automation, appointment: Appointment) -> None:
        actions = record.actions or {}
        if self.notification_service is not None:
            if actions.get("sendReminder"):
                self.notification_service.send_reminder(appointment)
            if actions.get("sendFollowUp"):
                self.notification_service.send_follow_up(appointment)

        with self.transaction():
            self.repository.update(
                record,
                execution_count=(record.execution_count or 0) + 1,
                last_triggered=utc_now(),
                is_active=False,
            )
