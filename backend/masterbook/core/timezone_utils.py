"""
Timezone utilities for the MasterBook platform.

The platform runs on a single canonical clock: every appointment instant is
stored and compared in UTC, while weekly templates and booking inputs are
expressed as wall-clock date/time in the configured business timezone.
This module is the only place where the two are converted.
"""

from datetime import date, datetime, time, timedelta
from typing import Tuple

import pytz

from .config import settings


def get_business_timezone() -> pytz.BaseTzInfo:
    """Return the configured business timezone."""
    return pytz.timezone(settings.business_timezone)


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC (SQLite drops tzinfo on read).
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def local_to_utc(local_date: date, local_time: time) -> datetime:
    """
    Convert a business wall-clock date/time to an aware UTC datetime.

    Args:
        local_date: Calendar date in the business timezone
        local_time: Wall-clock time in the business timezone

    Returns:
        The same instant in UTC
    """
    tz = get_business_timezone()
    local_dt = tz.localize(datetime.combine(local_date, local_time))
    return local_dt.astimezone(pytz.UTC)


def utc_to_local(dt: datetime) -> datetime:
    """Convert an instant to the business timezone."""
    return ensure_utc(dt).astimezone(get_business_timezone())


def local_day_bounds_utc(local_date: date) -> Tuple[datetime, datetime]:
    """
    Return the UTC instants bounding a business calendar day.

    The range is half-open: [start of ``local_date``, start of the next day).
    """
    start = local_to_utc(local_date, time(0, 0))
    end = local_to_utc(local_date + timedelta(days=1), time(0, 0))
    return start, end


def format_instant(dt: datetime) -> dict:
    """
    Format an instant with both UTC and business wall-clock representations.

    Returns:
        Dictionary with ISO UTC timestamp plus local date and HH:MM time
    """
    local_dt = utc_to_local(dt)
    return {
        "iso": ensure_utc(dt).isoformat(),
        "timezone": settings.business_timezone,
        "date": local_dt.date().isoformat(),
        "time": local_dt.strftime("%H:%M"),
    }
