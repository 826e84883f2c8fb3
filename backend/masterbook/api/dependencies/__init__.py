from .auth import get_current_actor, get_current_user, require_master
from .database import get_db
from .services import (
    get_appointment_service,
    get_availability_service,
    get_event_publisher,
    get_master_service,
    get_notification_service,
)

__all__ = [
    "get_appointment_service",
    "get_availability_service",
    "get_current_actor",
    "get_current_user",
    "get_db",
    "get_event_publisher",
    "get_master_service",
    "get_notification_service",
    "require_master",
]
