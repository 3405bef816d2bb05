"""
Timestamp formatting for agent memory prompts.
Recent times render relative ("3 hours ago"), older ones as Eastern time.
"""
from datetime import datetime, timedelta
from typing import Optional

import pytz

# Eastern timezone (handles EST/EDT automatically)
EASTERN = pytz.timezone('America/New_York')

RELATIVE_THRESHOLD_DAYS = 7


def now_est_iso() -> str:
    """
    Current Eastern time as an ISO string.

    Examples:
        >>> now_est_iso()
        '2025-11-28T18:30:00-05:00'
    """
    return datetime.now(EASTERN).isoformat()


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Args:
        dt: Datetime (naive values are assumed to be UTC)

    Returns:
        datetime: UTC-aware datetime
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def utc_to_est(utc_dt: datetime) -> datetime:
    """
    Convert UTC datetime to Eastern timezone.

    Examples:
        >>> utc_to_est(datetime(2025, 11, 28, 23, 30, 0)).strftime('%H:%M %Z')
        '18:30 EST'
    """
    return to_utc(utc_dt).astimezone(EASTERN)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_time(dt: datetime, reference: Optional[datetime] = None) -> str:
    """
    Examples:
        'just now', '5 minutes ago', '2 hours ago', '3 days ago'
    """
    reference = to_utc(reference) if reference else datetime.now(pytz.UTC)
    delta: timedelta = reference - to_utc(dt)
    minutes = int(delta.total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


def format_absolute_time(dt: datetime) -> str:
    """
    Examples:
        >>> format_absolute_time(datetime(2024, 1, 15, 20, 30))
        'January 15, 2024 at 3:30 PM EST'
    """
    est = utc_to_est(dt)
    hour = est.strftime('%I').lstrip('0') or '12'
    return f"{est.strftime('%B')} {est.day}, {est.year} at {hour}:{est.strftime('%M %p %Z')}"


def format_timestamp(
    dt: datetime,
    reference: Optional[datetime] = None,
    threshold_days: int = RELATIVE_THRESHOLD_DAYS
) -> str:
    """Relative format for timestamps younger than threshold_days, absolute otherwise."""
    reference = to_utc(reference) if reference else datetime.now(pytz.UTC)
    age = reference - to_utc(dt)
    if timedelta(0) <= age < timedelta(days=threshold_days):
        return format_relative_time(dt, reference)
    return format_absolute_time(dt)
