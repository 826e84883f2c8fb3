# backend/masterbook/models/__init__.py
"""
Database models for the MasterBook platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .appointment import ALLOWED_TRANSITIONS, BLOCKING_STATUSES, Appointment, AppointmentStatus
from .automation import Automation
from .profiles import MasterProfile, StudentProfile
from .user import User

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BLOCKING_STATUSES",
    "Appointment",
    "AppointmentStatus",
    "Automation",
    "MasterProfile",
    "StudentProfile",
    "User",
]
