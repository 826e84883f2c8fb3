# backend/masterbook/services/availability_service.py
"""
Availability Service for the MasterBook platform.

Owns the weekly recurring template of each master: seven rules
(day-of-week, active flag, start/end wall-clock times) plus free-text
notes. Saving validates every rule and replaces the stored template as a
whole; a single bad rule rejects the batch.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundException, TemplateValidationException
from ..core.timezone_utils import local_day_bounds_utc
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.user_repository import UserRepository
from ..schemas.availability import DayAvailability, WeeklyRule, WeeklyTemplate
from ..utils.time_helpers import hhmm_to_minutes, is_valid_hhmm
from .base import BaseService
from .conflict_checker import annotate_booked
from .slot_generator import generate_day_slots

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NOTES = "Available Monday to Friday, 09:00-18:00"

# Failed-check identifiers reported with TemplateValidationException
CHECK_MISSING_DAY = "missing_day_of_week"
CHECK_DAY_RANGE = "day_of_week_out_of_range"
CHECK_MISSING_TIME = "missing_time"
CHECK_TIME_FORMAT = "invalid_time_format"
CHECK_END_AFTER_START = "end_not_after_start"


def default_rules() -> List[WeeklyRule]:
    """Business default: Monday-Friday 09:00-18:00, weekend off."""
    return [
        WeeklyRule(
            day_of_week=day,
            is_active=1 <= day <= 5,
            start_time="09:00",
            end_time="18:00",
        )
        for day in range(7)
    ]


def validate_rules(rules: Sequence[WeeklyRule]) -> None:
    """
    Validate every rule, stopping at the first offending one.

    Raises:
        TemplateValidationException: naming the rule index and the failed check
    """
    for index, rule in enumerate(rules):
        if rule.day_of_week is None:
            raise TemplateValidationException(index, CHECK_MISSING_DAY, f"Rule {index}: dayOfWeek is required")
        if not 0 <= rule.day_of_week <= 6:
            raise TemplateValidationException(
                index,
                CHECK_DAY_RANGE,
                f"Rule {index}: dayOfWeek must be between 0 and 6, got {rule.day_of_week}",
            )
        if not rule.is_active:
            continue
        if not rule.start_time or not rule.end_time:
            raise TemplateValidationException(
                index, CHECK_MISSING_TIME, f"Rule {index}: active rules need startTime and endTime"
            )
        for value in (rule.start_time, rule.end_time):
            if not is_valid_hhmm(value):
                raise TemplateValidationException(
                    index, CHECK_TIME_FORMAT, f"Rule {index}: invalid time format {value!r} (expected HH:MM)"
                )
        if hhmm_to_minutes(rule.end_time) <= hhmm_to_minutes(rule.start_time):
            raise TemplateValidationException(
                index,
                CHECK_END_AFTER_START,
                f"Rule {index}: endTime {rule.end_time} must be after startTime {rule.start_time}",
            )


class AvailabilityService(BaseService):
    """Reads and replaces masters' weekly availability templates."""

    def __init__(
        self,
        db: Session,
        repository: Optional[AvailabilityRepository] = None,
        user_repository: Optional[UserRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )

    def _require_master(self, provider_id: str) -> None:
        if self.user_repository.get_master(provider_id) is None:
            raise NotFoundException(f"Master {provider_id} not found", code="MASTER_NOT_FOUND")

    @BaseService.measure_operation("get_weekly_template")
    def get_weekly_template(self, provider_id: str) -> WeeklyTemplate:
        """
        Return the stored template, or the business default when none is saved.

        Raises:
            NotFoundException: If the master does not exist
        """
        self._require_master(provider_id)
        document = self.repository.get_template_document(provider_id)
        if document is None:
            return WeeklyTemplate(
                provider_id=provider_id,
                time_slots=default_rules(),
                notes=DEFAULT_TEMPLATE_NOTES,
                is_default=True,
            )
        return WeeklyTemplate(
            provider_id=provider_id,
            time_slots=[WeeklyRule.model_validate(r) for r in document.get("timeSlots", [])],
            notes=document.get("notes") or "",
        )

    @BaseService.measure_operation("save_weekly_template")
    def save_weekly_template(self, provider_id: str, rules: Sequence[WeeklyRule], notes: str = "") -> WeeklyTemplate:
        """
        Validate and replace the whole weekly template.

        Nothing is written unless every rule passes.
        """
        self._require_master(provider_id)
        validate_rules(rules)

        document: Dict[str, Any] = {
            "timeSlots": [rule.model_dump(by_alias=True) for rule in rules],
            "notes": notes or "",
        }
        with self.transaction():
            self.repository.replace_template(provider_id, document)

        self.logger.info(
            "Weekly template saved",
            extra={
                "provider_id": provider_id,
                "active_days": sorted(r.day_of_week for r in rules if r.is_active),
            },
        )
        return WeeklyTemplate(provider_id=provider_id, time_slots=list(rules), notes=notes or "")

    @BaseService.measure_operation("get_day_availability")
    def get_day_availability(self, provider_id: str, target_date: date) -> DayAvailability:
        """
        Slot grid for one date: template slots annotated with live bookings.

        Read-only and lock-free; the grid can be stale by the time a booking
        lands, booking validation remains the authoritative check.
        """
        template = self.get_weekly_template(provider_id)
        slots = generate_day_slots(template.time_slots, target_date)

        day_start, day_end = local_day_bounds_utc(target_date)
        appointments = self.appointment_repository.get_blocking_overlapping(provider_id, day_start, day_end)

        return DayAvailability(
            date=target_date,
            provider_id=provider_id,
            timezone=settings.business_timezone,
            time_slots=annotate_booked(slots, target_date, appointments, settings.slot_minutes),
        )
