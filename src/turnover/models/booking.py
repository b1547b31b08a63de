"""Booking model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from turnover.dates import DayLike, day_of


class Platform(str, Enum):
    AIRBNB = "AirBnB"
    VRBO = "VRBO"
    BOOKING_COM = "Booking.com"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def short_name(self) -> str:
        if self is Platform.BOOKING_COM:
            return "Booking"
        return self.value

    @classmethod
    def parse(cls, value: str | Platform) -> Platform:
        """Look up a platform by value or member name, case-insensitively."""
        if isinstance(value, Platform):
            return value
        needle = str(value).strip().lower()
        for member in cls:
            if needle in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown booking platform {value!r}")


@dataclass(frozen=True)
class Booking:
    """One reservation as exported by a platform's calendar feed.

    ``start``/``end`` keep the feed's original timestamps; ``end`` is the
    checkout and is exclusive. Day-level logic uses ``start_date``/``end_date``.
    """

    id: str
    start: datetime
    end: datetime
    platform: Platform
    property_id: str
    guest_name: str | None = None

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(
                f"Booking {self.id!r} starts at {self.start.isoformat()} "
                f"but ends at {self.end.isoformat()}"
            )

    def __repr__(self) -> str:
        return (
            f"<Booking id={self.id!r} property_id={self.property_id!r} "
            f"guest={self.guest_name!r} {self.start_date}..{self.end_date}>"
        )

    @property
    def start_date(self) -> date:
        return day_of(self.start)

    @property
    def end_date(self) -> date:
        return day_of(self.end)

    @property
    def duration(self) -> int:
        """Number of nights."""
        return (self.end_date - self.start_date).days

    @property
    def display_name(self) -> str:
        if self.guest_name:
            return self.guest_name
        return self.platform.short_name

    def overlaps_date(self, day: DayLike) -> bool:
        """True while the guest occupies ``day`` (check-in day up to, not including, checkout)."""
        return self.start_date <= day_of(day) < self.end_date

    def is_first_day(self, day: DayLike) -> bool:
        return self.start_date == day_of(day)

    def is_last_day(self, day: DayLike) -> bool:
        """True on the last night, the day before checkout."""
        return self.end_date - timedelta(days=1) == day_of(day)
