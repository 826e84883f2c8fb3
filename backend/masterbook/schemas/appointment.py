# backend/masterbook/schemas/appointment.py
"""
Appointment schemas for the MasterBook platform.

``date`` and ``time`` on requests are wall-clock values in the business
timezone; responses carry both the UTC instant and the wall-clock view.
"""

import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.timezone_utils import ensure_utc, format_instant
from ..models.appointment import Appointment, AppointmentStatus
from ..utils.time_helpers import is_valid_hhmm
from .base import Money, RequestModel, StandardizedModel


def _check_hhmm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not is_valid_hhmm(value):
        raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return value


class AppointmentCreate(RequestModel):
    """Body of POST /appointments."""

    provider_id: str = Field(..., description="Master to book")
    date: dt.date = Field(..., description="Wall-clock date of the session")
    time: str = Field(..., description="Wall-clock start time, HH:MM")
    duration_minutes: int = Field(..., ge=1, le=480)
    notes: str = Field("", max_length=2000)
    price: Optional[Money] = Field(None, ge=0, description="Defaults to the master's hourly rate")

    @field_validator("time")
    @classmethod
    def _validate_time(cls, v: str) -> str:
        return _check_hhmm(v)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: str) -> str:
        return v.strip()


class AppointmentUpdate(RequestModel):
    """
    Body of PATCH /appointments/{id}.

    A reschedule is expressed by ``date`` + ``time`` (and optionally a new
    duration); a status change goes through the lifecycle state machine.
    """

    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    date: Optional[dt.date] = None
    time: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=480)
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")

    @field_validator("time")
    @classmethod
    def _validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_hhmm(v)

    @model_validator(mode="after")
    def _check_field_combinations(self) -> "AppointmentUpdate":
        if (self.date is None) != (self.time is None):
            raise ValueError("date and time must be provided together to reschedule")
        if self.status == AppointmentStatus.CANCELLED and (self.is_reschedule or self.notes is not None):
            raise ValueError("a cancellation cannot be combined with notes or a reschedule")
        return self

    @property
    def is_reschedule(self) -> bool:
        return self.date is not None or self.duration_minutes is not None


class AppointmentResponse(StandardizedModel):
    """Appointment as returned by the API."""

    id: str
    provider_id: str
    client_id: str
    provider_name: Optional[str] = None
    client_name: Optional[str] = None
    start_at: datetime
    end_at: datetime
    date: str
    time: str
    timezone: str
    duration_minutes: int
    status: AppointmentStatus
    price: Money
    notes: str = ""
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        start = format_instant(appointment.start_utc)
        return cls(
            id=appointment.id,
            provider_id=appointment.master_id,
            client_id=appointment.student_id,
            provider_name=appointment.master.full_name if appointment.master else None,
            client_name=appointment.student.full_name if appointment.student else None,
            start_at=appointment.start_utc,
            end_at=appointment.end_utc,
            date=start["date"],
            time=start["time"],
            timezone=start["timezone"],
            duration_minutes=appointment.duration_minutes,
            status=appointment.status_enum,
            price=appointment.price or 0,
            notes=appointment.notes or "",
            created_at=ensure_utc(appointment.created_at) if appointment.created_at else None,
            confirmed_at=ensure_utc(appointment.confirmed_at) if appointment.confirmed_at else None,
            completed_at=ensure_utc(appointment.completed_at) if appointment.completed_at else None,
            cancelled_at=ensure_utc(appointment.cancelled_at) if appointment.cancelled_at else None,
            cancelled_by=appointment.cancelled_by_id,
            cancellation_reason=appointment.cancellation_reason,
        )


class AppointmentListResponse(StandardizedModel):
    appointments: List[AppointmentResponse]
    total: int


class CancellationResponse(StandardizedModel):
    """Result of DELETE /appointments/{id}."""

    success: bool = True
    potential_replacements: int = Field(..., description="Number of replacement students notified")
    appointment: AppointmentResponse
