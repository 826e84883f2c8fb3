# backend/masterbook/models/automation.py
"""
Automation records.

An automation is an append-only audit/trigger entry attached to an
appointment: cancellation notifications are recorded as already executed,
reminders and follow-ups wait for their trigger to fire.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Automation(Base):
    __tablename__ = "automations"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    appointment_id = Column(String(26), ForeignKey("appointments.id"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    trigger = Column(String(40), nullable=False, index=True)
    conditions = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    execution_count = Column(Integer, nullable=False, default=0)
    last_triggered = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    appointment = relationship("Appointment", backref="automations")

    def __repr__(self) -> str:
        return (
            f"<Automation {self.id}: {self.type}/{self.trigger} "
            f"appointment={self.appointment_id} runs={self.execution_count}>"
        )
