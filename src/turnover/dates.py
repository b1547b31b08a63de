"""Local calendar-day helpers.

Bookings carry full timestamps, but all turnover logic works on calendar days
in the device's local timezone.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Callable, Union

Clock = Callable[[], datetime]
DayLike = Union[date, datetime]


def local_now() -> datetime:
    """Return the current time as a timezone-aware local datetime."""
    return datetime.now().astimezone()


def day_of(value: DayLike) -> date:
    """Reduce a date or datetime to its local calendar day."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def at_time(day: date, moment: time) -> datetime:
    """Local aware datetime for ``day`` at ``moment``."""
    return datetime.combine(day, moment).astimezone()


def local_midnight(day: date) -> datetime:
    return at_time(day, time())
