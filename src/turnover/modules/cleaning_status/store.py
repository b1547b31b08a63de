"""Authoritative per-property, per-day cleaning status state."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from turnover.database import SessionFactory, SessionLocal
from turnover.dates import Clock, DayLike, day_of, local_now
from turnover.events import Event, EventBus, EventType
from turnover.models.cleaning_status import (
    CleaningState,
    CleaningStatus,
    CleaningStatusRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


class CleaningStatusStore:
    """In-memory status table with fire-and-forget persistence.

    Every mutation updates the in-memory table and publishes its event before
    returning; the durable copy is written afterwards on a single writer
    thread, in mutation order. A failed write is logged and the in-memory
    state stays authoritative for the rest of the session.
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        *,
        bus: EventBus | None = None,
        clock: Clock = local_now,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._bus = bus or EventBus()
        self._clock = clock
        self.retention_days = retention_days
        self._statuses: dict[tuple[str, date], CleaningStatus] = {}
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="status-writer")
        self._pending_writes: set[asyncio.Future] = set()
        self.failed_writes = 0

    # --- Reads ---

    def get(self, property_key: str, day: DayLike) -> CleaningStatus | None:
        """Status for a property on a calendar day, if one was ever set."""
        status = self._statuses.get((property_key, day_of(day)))
        return replace(status) if status else None

    def all(self) -> list[CleaningStatus]:
        return sorted(
            (replace(s) for s in self._statuses.values()),
            key=lambda s: (s.date, s.property_key),
        )

    def get_pending(self) -> list[CleaningStatus]:
        """Entries needing attention (to do or in progress), earliest first."""
        return [s for s in self.all() if s.status.needs_attention]

    def __len__(self) -> int:
        return len(self._statuses)

    # --- Writes ---

    async def set(
        self,
        property_key: str,
        day: DayLike,
        booking_id: str,
        status: CleaningState,
    ) -> CleaningStatus:
        """Create or update the status for a property on a day. Last write wins."""
        status = CleaningState(status)
        key = (property_key, day_of(day))
        now = self._clock()

        entry = self._statuses.get(key)
        previous = entry.status if entry else None
        if entry is None:
            entry = CleaningStatus(
                property_key=property_key,
                date=key[1],
                booking_id=booking_id,
                status=status,
                last_updated=now,
            )
            self._statuses[key] = entry
        else:
            entry.update_status(status, now)

        logger.debug("Cleaning status %s %s: %s -> %s", property_key, key[1], previous, status.value)
        self._bus.publish(Event(
            event_type=EventType.CLEANING_STATUS_CHANGED,
            data={
                "property_key": property_key,
                "date": key[1],
                "booking_id": entry.booking_id,
                "status": status,
                "previous": previous,
            },
        ))
        self._schedule_save()
        return replace(entry)

    async def clear_all(self) -> int:
        """Drop every entry. Callers should regenerate tasks right after."""
        removed = len(self._statuses)
        self._statuses.clear()
        logger.info("Cleared %d cleaning statuses", removed)
        self._bus.publish(Event(
            event_type=EventType.CLEANING_STATUSES_CLEARED,
            data={"removed": removed},
        ))
        self._schedule_save()
        return removed

    async def cleanup_old(self) -> int:
        """Purge entries dated more than ``retention_days`` before today."""
        cutoff = day_of(self._clock()) - timedelta(days=self.retention_days)
        stale = [key for key, s in self._statuses.items() if s.date < cutoff]
        for key in stale:
            del self._statuses[key]

        if stale:
            logger.info("Removed %d cleaning statuses older than %s", len(stale), cutoff)
            self._bus.publish(Event(
                event_type=EventType.CLEANING_STATUSES_PURGED,
                data={"removed": len(stale), "cutoff": cutoff},
            ))
            self._schedule_save()
        return len(stale)

    # --- Persistence ---

    def load(self) -> int:
        """Replace the in-memory table with the persisted one."""
        session = self._session_factory()
        try:
            records = session.scalars(select(CleaningStatusRecord)).all()
            self._statuses = {s.key: s for s in (r.to_status() for r in records)}
            logger.info("Loaded %d cleaning statuses", len(self._statuses))
        except SQLAlchemyError:
            logger.warning("Could not load cleaning statuses; starting empty", exc_info=True)
            self._statuses = {}
        finally:
            session.close()
        return len(self._statuses)

    async def flush(self) -> None:
        """Wait until every queued durable write has completed."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def close(self) -> None:
        self._writer.shutdown(wait=True)

    def _schedule_save(self) -> None:
        snapshot = [replace(s) for s in self._statuses.values()]
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._writer, self._save, snapshot)
        self._pending_writes.add(future)
        future.add_done_callback(self._pending_writes.discard)

    def _save(self, snapshot: list[CleaningStatus]) -> bool:
        session = self._session_factory()
        try:
            session.execute(delete(CleaningStatusRecord))
            session.add_all(CleaningStatusRecord.from_status(s) for s in snapshot)
            session.commit()
            return True
        except SQLAlchemyError:
            session.rollback()
            self.failed_writes += 1
            logger.warning(
                "Failed to persist %d cleaning statuses; keeping in-memory state",
                len(snapshot), exc_info=True,
            )
            return False
        finally:
            session.close()
