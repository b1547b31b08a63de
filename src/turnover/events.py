"""Lightweight in-process pub/sub event bus."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    BOOKINGS_REFRESHED = "bookings_refreshed"
    CLEANING_STATUS_CHANGED = "cleaning_status_changed"
    CLEANING_STATUSES_CLEARED = "cleaning_statuses_cleared"
    CLEANING_STATUSES_PURGED = "cleaning_statuses_purged"
    CLEANING_TASK_CREATED = "cleaning_task_created"
    ALERTS_RESCHEDULED = "alerts_rescheduled"
    ALERT_SETTINGS_CHANGED = "alert_settings_changed"
    BADGE_UPDATED = "badge_updated"


@dataclass
class Event:
    event_type: EventType
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Type for subscriber callbacks
Subscriber = Callable[[Event], None]


class EventBus:
    """Simple synchronous pub/sub event bus.

    Subscribers run inline in ``publish``, so state that was updated before
    publishing is visible to every subscriber.
    """

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: EventType, callback: Subscriber) -> None:
        """Register a callback for an event type."""
        self._subscribers[event_type].append(callback)
        logger.debug("Subscribed %s to %s", _name(callback), event_type.value)

    def unsubscribe(self, event_type: EventType, callback: Subscriber) -> None:
        """Remove a previously registered callback; unknown callbacks are ignored."""
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        logger.debug("Publishing event: %s", event.event_type.value)
        for callback in list(self._subscribers.get(event.event_type, [])):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Error in subscriber %s for event %s",
                    _name(callback),
                    event.event_type.value,
                )


def _name(callback: Subscriber) -> str:
    return getattr(callback, "__name__", repr(callback))


# Global event bus instance, used by the host bootstrap only
event_bus = EventBus()
