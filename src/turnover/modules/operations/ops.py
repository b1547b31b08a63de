"""Daily cleaning task bootstrap from checkouts."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import time
from typing import Iterable

from turnover.dates import Clock, at_time, day_of, local_now
from turnover.events import Event, EventBus, EventType
from turnover.models.booking import Booking
from turnover.models.cleaning_status import CleaningState, CleaningStatus
from turnover.modules.cleaning_status.store import CleaningStatusStore

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_DEADLINE = time(10, 0)


class OperationsManager:
    """Seeds to-do cleaning tasks once today's checkouts are past their deadline.

    Only today's checkouts are considered. Existing progress (to do, in
    progress, done) is never touched; only a missing or pending entry is
    promoted to to-do.
    """

    def __init__(
        self,
        store: CleaningStatusStore,
        bus: EventBus,
        *,
        clock: Clock = local_now,
        checkout_deadline: time = DEFAULT_CHECKOUT_DEADLINE,
    ) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock
        self.checkout_deadline = checkout_deadline
        self._background: set[asyncio.Task] = set()

    def setup_event_handlers(self) -> None:
        """Re-run task seeding whenever a property's bookings are refreshed."""
        self._bus.subscribe(EventType.BOOKINGS_REFRESHED, self._on_bookings_refreshed)

    def _on_bookings_refreshed(self, event: Event) -> None:
        bookings = event.data.get("bookings") or []
        if not bookings:
            return
        task = asyncio.get_running_loop().create_task(self.auto_create_cleaning_tasks(bookings))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_idle(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background))

    async def auto_create_cleaning_tasks(self, bookings: Iterable[Booking]) -> list[CleaningStatus]:
        """Create or promote to-do entries for today's passed checkouts."""
        now = self._clock()
        today = day_of(now)

        checkouts: dict[str, list[Booking]] = defaultdict(list)
        for booking in bookings:
            if booking.end_date == today:
                checkouts[booking.property_id].append(booking)

        deadline = at_time(today, self.checkout_deadline)
        if not checkouts or now < deadline:
            return []

        created: list[CleaningStatus] = []
        for property_id, group in sorted(checkouts.items()):
            existing = self._store.get(property_id, today)
            if existing is not None and existing.status is not CleaningState.PENDING:
                continue

            status = await self._store.set(property_id, today, group[0].id, CleaningState.TODO)
            created.append(status)
            logger.info("Created cleaning task for %s on %s", property_id, today)
            self._bus.publish(Event(
                event_type=EventType.CLEANING_TASK_CREATED,
                data={"property_id": property_id, "date": today, "booking_id": group[0].id},
            ))
        return created

    async def start_of_day(self, bookings: Iterable[Booking]) -> list[CleaningStatus]:
        """Startup routine: wipe the status table, then reseed today's tasks.

        Backlog from earlier days is not regenerated.
        """
        bookings = list(bookings)
        await self._store.clear_all()
        return await self.auto_create_cleaning_tasks(bookings)
