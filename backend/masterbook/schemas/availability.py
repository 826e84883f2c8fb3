# backend/masterbook/schemas/availability.py
"""
Availability schemas for the MasterBook platform.

Rule fields are deliberately loose here: the availability service validates
each rule and reports the index and the failed check, which a field-level
pydantic error could not do for the batch as a whole.
"""

from datetime import date
from typing import List, Optional

from pydantic import Field

from .base import RequestModel, StandardizedModel


class WeeklyRule(StandardizedModel):
    """One day of the weekly template (Sunday = 0)."""

    day_of_week: Optional[int] = Field(None, description="0-6, Sunday = 0")
    is_active: bool = False
    start_time: Optional[str] = Field(None, description="HH:MM, 24h")
    end_time: Optional[str] = Field(None, description="HH:MM, 24h")


class WeeklyTemplateSave(RequestModel):
    """Body of POST /availability/template."""

    time_slots: List[WeeklyRule] = Field(default_factory=list)
    notes: str = ""


class WeeklyTemplate(StandardizedModel):
    """A provider's weekly template."""

    provider_id: str
    time_slots: List[WeeklyRule]
    notes: str = ""
    is_default: bool = Field(False, description="True when nothing has been saved yet")


class Slot(StandardizedModel):
    """A 30-minute candidate window on a date, in provider wall-clock."""

    time: str
    available_by_template: bool
    booked: bool = False
    available: bool = False


class DayAvailability(StandardizedModel):
    """Response of GET /availability/day."""

    date: date
    provider_id: str
    timezone: str
    time_slots: List[Slot]
