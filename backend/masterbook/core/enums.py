# backend/masterbook/core/enums.py
"""
Core enums for the MasterBook platform.

Role names are the only enumeration shared across layers; appointment
statuses live next to the Appointment model.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a verified identity can carry."""

    MASTER = "master"
    STUDENT = "student"


class AutomationType(str, Enum):
    CANCELLATION_NOTIFICATION = "CANCELLATION_NOTIFICATION"
    REMINDER = "REMINDER"
    FOLLOW_UP = "FOLLOW_UP"


class AutomationTrigger(str, Enum):
    ON_CANCELLATION = "ON_CANCELLATION"
    BEFORE_APPOINTMENT = "BEFORE_APPOINTMENT"
    AFTER_APPOINTMENT = "AFTER_APPOINTMENT"
