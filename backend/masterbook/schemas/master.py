# backend/masterbook/schemas/master.py
"""Discovery schemas: public master profiles and a master's student list."""

from typing import List, Optional

from .base import Money, StandardizedModel


class MasterSummary(StandardizedModel):
    id: str
    full_name: str
    bio: str = ""
    specialties: List[str] = []
    hourly_rate: Money
    location: str = ""
    availability_notes: Optional[str] = None


class MasterSearchResponse(StandardizedModel):
    masters: List[MasterSummary]
    total: int


class MasterStudent(StandardizedModel):
    id: str
    full_name: str
    email: str
    skill_level: Optional[str] = None
    preferred_sports: List[str] = []
    appointment_count: int


class MasterStudentsResponse(StandardizedModel):
    students: List[MasterStudent]
    total: int
