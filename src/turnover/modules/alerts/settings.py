"""User-adjustable cleaning alert settings."""

from __future__ import annotations

import logging
from datetime import time
from typing import Any

from turnover.config import parse_clock_time
from turnover.events import Event, EventBus, EventType

logger = logging.getLogger(__name__)

DEFAULT_ALERT_TIME = time(8, 0)
_FIELDS = ("enabled", "alert_time", "sound_enabled", "new_booking_alerts_enabled")


class AlertSettings:
    """Alert preferences; every effective change publishes ``alert_settings_changed``.

    ``new_booking_alerts_enabled`` is a stored preference only. Nothing here
    sends new-booking alerts; it is kept so a front end can read and persist it.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        enabled: bool = True,
        alert_time: time = DEFAULT_ALERT_TIME,
        sound_enabled: bool = True,
        new_booking_alerts_enabled: bool = True,
    ) -> None:
        self._bus = bus
        self.enabled = enabled
        self.alert_time = alert_time
        self.sound_enabled = sound_enabled
        self.new_booking_alerts_enabled = new_booking_alerts_enabled

    @classmethod
    def from_config(cls, bus: EventBus, alerts_config: dict[str, Any]) -> AlertSettings:
        return cls(
            bus,
            enabled=bool(alerts_config.get("enabled", True)),
            alert_time=parse_clock_time(alerts_config.get("alert_time"), DEFAULT_ALERT_TIME),
            sound_enabled=bool(alerts_config.get("sound_enabled", True)),
            new_booking_alerts_enabled=bool(alerts_config.get("new_booking_alerts_enabled", True)),
        )

    def update(self, **changes: Any) -> dict[str, Any]:
        """Apply changes; returns the fields whose value actually changed."""
        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise TypeError(f"Unknown alert settings: {', '.join(sorted(unknown))}")
        if "alert_time" in changes:
            changes["alert_time"] = parse_clock_time(changes["alert_time"], self.alert_time)

        changed = {
            name: value for name, value in changes.items() if getattr(self, name) != value
        }
        for name, value in changed.items():
            setattr(self, name, value)

        if changed:
            logger.info("Alert settings changed: %s", ", ".join(sorted(changed)))
            self._bus.publish(Event(
                event_type=EventType.ALERT_SETTINGS_CHANGED,
                data={"changed": changed},
            ))
        return changed
