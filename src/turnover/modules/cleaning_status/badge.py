"""Debounced pending-task badge count."""

from __future__ import annotations

import logging

from turnover.debounce import Debouncer
from turnover.events import Event, EventBus, EventType
from turnover.modules.cleaning_status.store import CleaningStatusStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.15

_TRIGGERS = (
    EventType.CLEANING_STATUS_CHANGED,
    EventType.CLEANING_STATUSES_CLEARED,
    EventType.CLEANING_STATUSES_PURGED,
)


class BadgeCounter:
    """Keeps the count of cleaning tasks needing attention.

    Bursts of status events collapse into a single recount, published as
    ``badge_updated`` when the count changes.
    """

    def __init__(
        self,
        store: CleaningStatusStore,
        bus: EventBus,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._store = store
        self._bus = bus
        self._debouncer = Debouncer(debounce_seconds, self.recount, name="badge-recount")
        self.count = len(store.get_pending())

    def setup_event_handlers(self) -> None:
        for event_type in _TRIGGERS:
            self._bus.subscribe(event_type, self._on_status_event)

    def teardown(self) -> None:
        for event_type in _TRIGGERS:
            self._bus.unsubscribe(event_type, self._on_status_event)
        self._debouncer.cancel()

    def _on_status_event(self, event: Event) -> None:
        self._debouncer.trigger()

    async def wait(self) -> None:
        await self._debouncer.wait()

    def recount(self) -> int:
        count = len(self._store.get_pending())
        if count != self.count:
            logger.debug("Badge count %d -> %d", self.count, count)
            self.count = count
            self._bus.publish(Event(event_type=EventType.BADGE_UPDATED, data={"count": count}))
        return count

    def clear(self) -> None:
        self._debouncer.cancel()
        self.count = 0
        self._bus.publish(Event(event_type=EventType.BADGE_UPDATED, data={"count": 0}))
