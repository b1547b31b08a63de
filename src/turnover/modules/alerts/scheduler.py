"""Cleaning-day alert planning and (re)scheduling."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, Iterable, Optional

from turnover.dates import Clock, at_time, day_of, local_midnight, local_now
from turnover.events import Event, EventBus, EventType
from turnover.models.booking import Booking
from turnover.models.property import Property
from turnover.modules.alerts.notifier import AlertContent, Notifier

logger = logging.getLogger(__name__)

ALERT_PREFIX = "cleaning_"

PropertyLookup = Callable[[str], Optional[Property]]


def alert_identifier(property_id: str, checkout_date: date) -> str:
    """Stable identifier for one property's alert on one checkout day."""
    checkout_ts = int(local_midnight(checkout_date).timestamp())
    return f"{ALERT_PREFIX}{property_id}_{checkout_ts}"


def alert_content(label: str, urgent: bool, sound: bool = True) -> AlertContent:
    if urgent:
        return AlertContent(
            title="\U0001F6A8 URGENT: Same-Day Turnover",
            body=f"{label} needs cleaning TODAY - checkout AND checkin scheduled!",
            sound=sound,
        )
    return AlertContent(
        title="\U0001F9F9 Cleaning Day",
        body=f"{label} checkout today - ready for cleaning",
        sound=sound,
    )


@dataclass(frozen=True)
class PlannedAlert:
    identifier: str
    property_id: str
    checkout_date: date
    trigger_at: datetime
    urgent: bool
    content: AlertContent
    booking_ids: tuple[str, ...]


@dataclass
class SchedulingReport:
    cancelled: int = 0
    scheduled: int = 0
    skipped_past: int = 0
    skipped_unknown: int = 0
    failed: int = 0
    superseded: bool = False


class CleaningAlertScheduler:
    """Schedules one alert per property and checkout day.

    Each run cancels every alert carrying the owned prefix and schedules the
    current set again, so alerts for bookings that vanished from a feed do not
    linger and repeated runs with the same input end in the same state. Runs
    are serialized; a run still waiting when a newer one is requested is
    skipped in favour of the newer one.
    """

    def __init__(
        self,
        notifier: Notifier,
        *,
        property_lookup: PropertyLookup | None = None,
        bus: EventBus | None = None,
        clock: Clock = local_now,
        sound_enabled: bool = True,
    ) -> None:
        self._notifier = notifier
        self._lookup = property_lookup
        self._bus = bus or EventBus()
        self._clock = clock
        self.sound_enabled = sound_enabled
        self._lock = asyncio.Lock()
        self._generation = 0

    def plan_alerts(self, bookings: Iterable[Booking], alert_time: time) -> list[PlannedAlert]:
        """Alerts for today's and future checkouts, without touching the notifier.

        Checkouts whose alert moment already passed are left out; so are
        properties the lookup does not know.
        """
        plan, _, _ = self._plan(list(bookings), alert_time)
        return plan

    async def schedule_cleaning_alerts(
        self,
        bookings: Iterable[Booking],
        alert_time: time,
        enabled: bool = True,
    ) -> SchedulingReport:
        bookings = list(bookings)
        self._generation += 1
        generation = self._generation

        async with self._lock:
            if generation != self._generation:
                logger.debug("Alert run %d superseded by run %d", generation, self._generation)
                return SchedulingReport(superseded=True)

            report = SchedulingReport()
            report.cancelled = await self._cancel_owned()
            if not enabled:
                logger.info("Cleaning alerts disabled; cancelled %d", report.cancelled)
                self._publish(report)
                return report

            plan, report.skipped_past, report.skipped_unknown = self._plan(bookings, alert_time)
            for alert in plan:
                if await self._schedule_one(alert):
                    report.scheduled += 1
                else:
                    report.failed += 1

            logger.info(
                "Scheduled %d cleaning alerts (%d past, %d failed, %d cancelled)",
                report.scheduled, report.skipped_past, report.failed, report.cancelled,
            )
            self._publish(report)
            return report

    async def cancel_all_cleaning_alerts(self) -> int:
        async with self._lock:
            cancelled = await self._cancel_owned()
        logger.info("Cancelled %d cleaning alerts", cancelled)
        return cancelled

    async def pending_alerts_count(self) -> int:
        return await self._notifier.pending_count(ALERT_PREFIX)

    def _plan(
        self, bookings: list[Booking], alert_time: time
    ) -> tuple[list[PlannedAlert], int, int]:
        now = self._clock()
        today = day_of(now)
        skipped_past = skipped_unknown = 0

        groups: dict[tuple[str, date], list[Booking]] = defaultdict(list)
        for booking in bookings:
            groups[(booking.property_id, booking.end_date)].append(booking)

        checkins: dict[tuple[str, date], set[str]] = defaultdict(set)
        for booking in bookings:
            checkins[(booking.property_id, booking.start_date)].add(booking.id)

        plan: list[PlannedAlert] = []
        for (property_id, checkout_date), group in sorted(groups.items()):
            if checkout_date < today:
                continue

            label = property_id
            if self._lookup is not None:
                prop = self._lookup(property_id)
                if prop is None:
                    logger.warning("No property %s for cleaning alert, skipping", property_id)
                    skipped_unknown += 1
                    continue
                label = prop.short_name

            trigger_at = at_time(checkout_date, alert_time)
            if trigger_at <= now:
                skipped_past += 1
                continue

            # Only a different booking arriving that day makes it a turnover
            urgent = bool(checkins.get((property_id, checkout_date), set()) - {b.id for b in group})
            plan.append(PlannedAlert(
                identifier=alert_identifier(property_id, checkout_date),
                property_id=property_id,
                checkout_date=checkout_date,
                trigger_at=trigger_at,
                urgent=urgent,
                content=alert_content(label, urgent, self.sound_enabled),
                booking_ids=tuple(b.id for b in group),
            ))
        return plan, skipped_past, skipped_unknown

    async def _schedule_one(self, alert: PlannedAlert) -> bool:
        try:
            accepted = await self._notifier.schedule(alert.identifier, alert.content, alert.trigger_at)
        except Exception:
            logger.exception("Error scheduling cleaning alert %s", alert.identifier)
            return False
        if not accepted:
            logger.error("Notifier rejected cleaning alert %s", alert.identifier)
            return False
        logger.debug("Scheduled cleaning alert %s at %s", alert.identifier, alert.trigger_at)
        return True

    async def _cancel_owned(self) -> int:
        try:
            return await self._notifier.cancel_by_prefix(ALERT_PREFIX)
        except Exception:
            logger.exception("Error cancelling cleaning alerts")
            return 0

    def _publish(self, report: SchedulingReport) -> None:
        self._bus.publish(Event(
            event_type=EventType.ALERTS_RESCHEDULED,
            data={
                "scheduled": report.scheduled,
                "cancelled": report.cancelled,
                "failed": report.failed,
            },
        ))
