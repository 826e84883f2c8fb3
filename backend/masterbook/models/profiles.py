# backend/masterbook/models/profiles.py
"""
Master and student profile models.

Profiles are maintained by the profile screens of the application; the
scheduling core only reads them, except for the master's weekly
availability template which is owned by the availability store.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class MasterProfile(Base):
    """
    Provider-specific attributes.

    Attributes:
        specialties: Sports/disciplines taught, e.g. ["Tennis", "Padel"]
        hourly_rate: Default price per hour
        availability: Weekly template as {"timeSlots": [...], "notes": str},
            replaced wholesale on every save
    """

    __tablename__ = "master_profiles"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    bio = Column(Text, nullable=False, default="")
    specialties = Column(JSON, nullable=False, default=list)
    hourly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    location = Column(String(255), nullable=False, default="")
    phone_number = Column(String(30), nullable=False, default="")
    # Use generic JSON for cross-dialect compatibility (SQLite in tests)
    availability = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="master_profile")

    @property
    def specialty_set(self) -> set[str]:
        return {str(s).strip().lower() for s in (self.specialties or []) if str(s).strip()}

    def stored_template(self) -> Optional[Dict[str, Any]]:
        data = self.availability
        if isinstance(data, dict) and isinstance(data.get("timeSlots"), list):
            return data
        return None


class StudentProfile(Base):
    """Client-specific attributes used for replacement matching."""

    __tablename__ = "student_profiles"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    skill_level = Column(String(20), nullable=False, default="BEGINNER")
    preferred_sports = Column(JSON, nullable=False, default=list)
    goals = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="student_profile")

    @property
    def interest_set(self) -> set[str]:
        sports: List[Any] = self.preferred_sports or []
        return {str(s).strip().lower() for s in sports if str(s).strip()}
