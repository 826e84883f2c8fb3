from .appointment_events import AppointmentCancelled, AppointmentCreated, AppointmentStatusChanged, Recipient
from .publisher import EventPublisher

__all__ = [
    "AppointmentCancelled",
    "AppointmentCreated",
    "AppointmentStatusChanged",
    "EventPublisher",
    "Recipient",
]
