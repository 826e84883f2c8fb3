# backend/masterbook/tasks/automation_tasks.py
"""
Periodic automation tasks.

The ``run_*`` functions hold the logic and take an explicit session so
they can be exercised without a broker; the Celery tasks wrap them in a
session scope.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AutomationTrigger
from ..core.timezone_utils import utc_now
from ..database import SessionLocal
from ..models.appointment import AppointmentStatus
from ..repositories import RepositoryFactory
from ..services.automation_service import AutomationService
from ..services.notification_service import NotificationService
from .celery_app import celery_app

logger = get_task_logger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Provide transactional scope for use in tasks."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def run_due_reminders(
    db: Session,
    now: Optional[datetime] = None,
    notification_service: Optional[NotificationService] = None,
) -> int:
    """Fire BEFORE_APPOINTMENT automations of confirmed sessions starting within the lead time."""
    now = now or utc_now()
    appointments = RepositoryFactory.create_appointment_repository(db).get_starting_between(
        now, now + timedelta(hours=settings.reminder_lead_hours), AppointmentStatus.CONFIRMED
    )
    service = AutomationService(db, notification_service=notification_service or NotificationService())
    executed = sum(
        service.trigger_automation(a.id, AutomationTrigger.BEFORE_APPOINTMENT) for a in appointments
    )
    logger.info(f"Reminder run: {len(appointments)} upcoming appointment(s), {executed} automation(s) executed")
    return executed


def run_due_follow_ups(
    db: Session,
    now: Optional[datetime] = None,
    notification_service: Optional[NotificationService] = None,
) -> int:
    """Fire AFTER_APPOINTMENT automations of sessions completed within the look-back window."""
    now = now or utc_now()
    appointments = RepositoryFactory.create_appointment_repository(db).get_completed_between(
        now - timedelta(hours=settings.follow_up_lookback_hours), now
    )
    service = AutomationService(db, notification_service=notification_service or NotificationService())
    executed = sum(
        service.trigger_automation(a.id, AutomationTrigger.AFTER_APPOINTMENT) for a in appointments
    )
    logger.info(f"Follow-up run: {len(appointments)} completed appointment(s), {executed} automation(s) executed")
    return executed


@celery_app.task(name="masterbook.tasks.automation_tasks.send_due_reminders", max_retries=0)
def send_due_reminders() -> int:
    with _session_scope() as db:
        return run_due_reminders(db)


@celery_app.task(name="masterbook.tasks.automation_tasks.send_due_follow_ups", max_retries=0)
def send_due_follow_ups() -> int:
    with _session_scope() as db:
        return run_due_follow_ups(db)
