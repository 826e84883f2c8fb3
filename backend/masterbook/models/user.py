# backend/masterbook/models/user.py
"""
User model for the MasterBook platform.

Both masters (providers) and students (clients) are represented by this
model, differentiated by the role field. Authentication itself happens
outside this service; a User row is the verified identity tokens refer to.
"""

import logging

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import RoleName
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    Main user model.

    Attributes:
        id: ULID primary key
        email: Unique email address
        full_name: Display name
        role: "master" or "student"
        is_active: Whether the account may act on the platform

    Relationships:
        master_profile: One-to-one with MasterProfile (masters only)
        student_profile: One-to-one with StudentProfile (students only)
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    master_profile = relationship(
        "MasterProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    student_profile = relationship(
        "StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("role IN ('master', 'student')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"

    @property
    def is_master(self) -> bool:
        return self.role == RoleName.MASTER.value

    @property
    def is_student(self) -> bool:
        return self.role == RoleName.STUDENT.value
