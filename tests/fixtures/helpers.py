"""Builders and fakes shared across tests."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta

from turnover.dates import local_midnight
from turnover.models.booking import Booking, Platform
from turnover.modules.alerts.notifier import AlertContent

TODAY = date(2026, 1, 12)


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeNotifier:
    """In-memory notifier; identifiers listed in ``fail``/``reject`` misbehave."""

    def __init__(self) -> None:
        self.pending: dict[str, tuple[AlertContent, datetime]] = {}
        self.fail: set[str] = set()
        self.reject: set[str] = set()
        self.schedule_calls = 0
        # Seconds to stall inside cancel_by_prefix, letting other runs queue up
        self.delay = 0.0

    async def schedule(self, identifier: str, content: AlertContent, trigger_at: datetime) -> bool:
        self.schedule_calls += 1
        if identifier in self.fail:
            raise RuntimeError(f"notifier down for {identifier}")
        if identifier in self.reject:
            return False
        self.pending[identifier] = (content, trigger_at)
        return True

    async def cancel_by_prefix(self, prefix: str) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        doomed = [i for i in self.pending if i.startswith(prefix)]
        for identifier in doomed:
            del self.pending[identifier]
        return len(doomed)

    async def pending_count(self, prefix: str) -> int:
        return sum(1 for i in self.pending if i.startswith(prefix))


def make_booking(
    uid: str,
    start: date,
    end: date,
    property_id: str = "kawama-c2",
    platform: Platform = Platform.AIRBNB,
    guest_name: str | None = None,
) -> Booking:
    """Whole-day booking, the way date-only feed entries are parsed."""
    return Booking(
        id=uid,
        start=local_midnight(start),
        end=local_midnight(end),
        platform=platform,
        property_id=property_id,
        guest_name=guest_name,
    )


def day(offset: int) -> date:
    """TODAY shifted by ``offset`` days."""
    return TODAY + timedelta(days=offset)


def feed(*events: tuple[str, str, str, str]) -> str:
    """Minimal feed document from (uid, dtstart, dtend, summary) tuples."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//Feed//EN"]
    for uid, start, end, summary in events:
        lines += [
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"DTSTART;VALUE=DATE:{start}",
            f"DTEND;VALUE=DATE:{end}",
            f"SUMMARY:{summary}",
            "END:VEVENT",
        ]
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"
