# backend/masterbook/services/slot_generator.py
"""
Slot generation.

Expands a weekly template into the fixed 30-minute candidate slots of one
calendar date. Slots cover the operating window (08:00 up to the last
slot starting at 19:30) in the provider's wall-clock; they are decoupled
from appointment durations, which may span several slots.
"""

from datetime import date
from typing import Iterable, List, Optional

from ..core.config import settings
from ..schemas.availability import Slot, WeeklyRule
from ..utils.time_helpers import hhmm_to_minutes, is_valid_hhmm, minutes_to_hhmm


def python_weekday_to_day_of_week(target_date: date) -> int:
    """Day index with Sunday = 0 (Python's weekday() has Monday = 0)."""
    return (target_date.weekday() + 1) % 7


def rule_for_date(rules: Iterable[WeeklyRule], target_date: date) -> Optional[WeeklyRule]:
    day = python_weekday_to_day_of_week(target_date)
    for rule in rules:
        if rule.day_of_week == day:
            return rule
    return None


def active_window(rule: Optional[WeeklyRule]) -> Optional[tuple[int, int]]:
    """(start, end) minutes of an active, well-formed rule, else None."""
    if rule is None or not rule.is_active:
        return None
    if not (is_valid_hhmm(rule.start_time) and is_valid_hhmm(rule.end_time)):
        return None
    start, end = hhmm_to_minutes(rule.start_time), hhmm_to_minutes(rule.end_time)
    if end <= start:
        return None
    return start, end


def generate_day_slots(
    rules: Iterable[WeeklyRule],
    target_date: date,
    slot_minutes: Optional[int] = None,
) -> List[Slot]:
    """
    Generate the candidate slots of ``target_date``.

    A slot is available by template iff the date's rule is active and
    [slot_start, slot_start + slot_minutes) lies inside [rule_start, rule_end).
    ``booked`` is left False; the conflict checker fills it in.
    """
    step = slot_minutes or settings.slot_minutes
    day_start = hhmm_to_minutes(settings.operating_day_start)
    day_end = hhmm_to_minutes(settings.operating_day_end)
    window = active_window(rule_for_date(rules, target_date))

    slots = []
    for start in range(day_start, day_end, step):
        in_template = window is not None and window[0] <= start and start + step <= window[1]
        slots.append(
            Slot(
                time=minutes_to_hhmm(start),
                available_by_template=in_template,
                booked=False,
                available=in_template,
            )
        )
    return slots
