from datetime import time
import re
from typing import Optional

HHMM_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def is_valid_hhmm(value: Optional[str]) -> bool:
    """Check a 24h ``HH:MM`` string (hour 0-23, minute 0-59)."""
    return isinstance(value, str) and HHMM_PATTERN.match(value) is not None


def hhmm_to_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_hhmm(total_minutes: int) -> str:
    """Always return zero-padded HH:MM"""
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def string_to_time(value: str) -> time:
    """Parse ``HH:MM`` into a ``time``."""
    if not is_valid_hhmm(value):
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute
