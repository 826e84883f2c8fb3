"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. One session per
request flows into every service built here.
"""

from functools import lru_cache
import logging

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...events.publisher import EventPublisher
from ...services.appointment_service import AppointmentService
from ...services.availability_service import AvailabilityService
from ...services.master_service import MasterService
from ...services.notification_service import NotificationService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Process-wide notification service (the provider holds no request state)."""
    return NotificationService()


def get_event_publisher(
    background_tasks: BackgroundTasks,
    notification_service: NotificationService = Depends(get_notification_service),
) -> EventPublisher:
    """Publisher whose handlers run as background tasks after the response."""
    return notification_service.register(EventPublisher(dispatch=background_tasks.add_task))


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_appointment_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> AppointmentService:
    return AppointmentService(db, publisher=publisher)


def get_master_service(db: Session = Depends(get_db)) -> MasterService:
    return MasterService(db)
