# backend/masterbook/services/conflict_checker.py
"""
Conflict Checker Service for the MasterBook platform.

Handles all booking conflict detection:
- Marking generated slots as booked against live appointments
- Validating a proposed booking against a master's calendar
- Gating bookings by the master's weekly template

Every interval test is half-open, [start, end): an appointment ending at
11:00 does not conflict with one starting at 11:00. All comparisons happen
on UTC instants; wall-clock slot times are converted through
core.timezone_utils only.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import AppointmentConflictException, ValidationException
from ..core.timezone_utils import ensure_utc, local_to_utc
from ..models.appointment import Appointment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from ..schemas.availability import Slot, WeeklyRule
from ..utils.time_helpers import minutes_to_hhmm, string_to_time
from .base import BaseService
from .slot_generator import active_window, rule_for_date

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap: touching boundaries do not overlap."""
    return a_start < b_end and b_start < a_end


def annotate_booked(
    slots: Sequence[Slot],
    target_date: date,
    appointments: Iterable[Appointment],
    slot_minutes: int = 30,
) -> List[Slot]:
    """
    Mark each slot booked when it overlaps a PENDING/CONFIRMED appointment.

    Args:
        slots: Slots generated for ``target_date`` (wall-clock times)
        target_date: The business-calendar date the slots belong to
        appointments: The master's appointments around that date

    Returns:
        New Slot objects with ``booked`` and ``available`` filled in
    """
    blocking = [(a.start_utc, a.end_utc) for a in appointments if a.is_blocking]
    step = timedelta(minutes=slot_minutes)

    annotated = []
    for slot in slots:
        slot_start = local_to_utc(target_date, string_to_time(slot.time))
        slot_end = slot_start + step
        booked = any(intervals_overlap(slot_start, slot_end, s, e) for s, e in blocking)
        annotated.append(
            slot.model_copy(
                update={"booked": booked, "available": slot.available_by_template and not booked}
            )
        )
    return annotated


def check_template_window(
    rules: Iterable[WeeklyRule], local_date: date, local_start_minutes: int, duration_minutes: int
) -> None:
    """
    Reject a booking that is not fully inside the active window of its weekday.

    Raises:
        ValidationException: OUTSIDE_AVAILABILITY
    """
    window = active_window(rule_for_date(rules, local_date))
    local_end_minutes = local_start_minutes + duration_minutes
    if window is None or local_start_minutes < window[0] or local_end_minutes > window[1]:
        requested = f"{minutes_to_hhmm(local_start_minutes)}-{minutes_to_hhmm(local_end_minutes % 1440)}"
        raise ValidationException(
            f"Requested time {requested} on {local_date.isoformat()} is outside the master's availability",
            code="OUTSIDE_AVAILABILITY",
            details={
                "date": local_date.isoformat(),
                "requested": requested,
                "window": None if window is None else [minutes_to_hhmm(window[0]), minutes_to_hhmm(window[1])],
            },
        )


def classify_conflict(
    proposed_start: datetime, proposed_end: datetime, candidates: Sequence[Appointment]
) -> Optional[AppointmentConflictException]:
    """
    Decide whether a proposal conflicts with any candidate, and why.

    ``exact_overlap`` wins over ``spans_into_slot``: first look for an
    appointment containing the proposed start (including one that started
    earlier and runs long), then for one that starts inside the proposal.
    """
    for appt in candidates:
        if appt.start_utc <= proposed_start < appt.end_utc:
            return AppointmentConflictException(
                AppointmentConflictException.EXACT_OVERLAP, conflicting_appointment_id=appt.id
            )
    for appt in candidates:
        if proposed_start < appt.start_utc < proposed_end:
            return AppointmentConflictException(
                AppointmentConflictException.SPANS_INTO_SLOT, conflicting_appointment_id=appt.id
            )
    return None


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts.

    Centralizes conflict detection so slot grids and booking validation
    use the same overlap rule.
    """

    def __init__(self, db: Session, repository: Optional[AppointmentRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_appointment_repository(db)

    @BaseService.measure_operation("validate_booking_request")
    def validate_booking_request(
        self,
        provider_id: str,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[str] = None,
    ) -> None:
        """
        Validate a proposed booking against the master's live appointments.

        Must be called while holding the master's booking lock when the
        result gates a write.

        Raises:
            AppointmentConflictException: reason exact_overlap or spans_into_slot
        """
        proposed_start = ensure_utc(proposed_start)
        proposed_end = proposed_start + timedelta(minutes=duration_minutes)
        candidates = self.repository.get_blocking_overlapping(
            provider_id, proposed_start, proposed_end, exclude_appointment_id=exclude_appointment_id
        )

        conflict = classify_conflict(proposed_start, proposed_end, candidates)
        if conflict is not None:
            prometheus_metrics.inc_booking_conflict(conflict.reason)
            self.logger.warning(
                f"Booking conflict for master {provider_id} at {proposed_start.isoformat()} "
                f"({duration_minutes} min): {conflict.reason}",
                extra={
                    "provider_id": provider_id,
                    "reason": conflict.reason,
                    "conflicting_appointment_id": conflict.details.get("conflicting_appointment_id"),
                },
            )
            raise conflict
