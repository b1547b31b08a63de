"""Concurrent feed fetching, merging, and per-property booking cache."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import httpx

from turnover.dates import DayLike, day_of
from turnover.events import Event, EventBus, EventType
from turnover.models.booking import Booking
from turnover.models.property import CalendarSource, Property
from turnover.modules.calendar_sync.parser import FeedParser

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_TIMEOUT_SECONDS = 30.0


class FeedFetchError(Exception):
    """A feed was retrieved but could not be used."""


@dataclass
class CacheEntry:
    bookings: list[Booking]
    fetched_at: float


def merge_bookings(batches: Iterable[list[Booking]]) -> list[Booking]:
    """Deduplicate by booking id (later batches win) and sort by start."""
    merged: dict[str, Booking] = {}
    for batch in batches:
        for booking in batch:
            merged[booking.id] = booking
    return sorted(merged.values(), key=lambda b: (b.start, b.id))


def bookings_on(day: DayLike, bookings: Iterable[Booking]) -> list[Booking]:
    """Bookings occupying ``day``."""
    return [b for b in bookings if b.overlaps_date(day)]


def bookings_between(start: DayLike, end: DayLike, bookings: Iterable[Booking]) -> list[Booking]:
    """Bookings whose stay touches the inclusive day range ``start..end``."""
    first, last = day_of(start), day_of(end)
    return [b for b in bookings if b.start_date <= last and b.end_date >= first]


class BookingAggregator:
    """Fetches every source of a property, merges the results, and caches them.

    ``get_bookings`` returns cached data while it is younger than ``ttl_seconds``
    and refetches otherwise. ``get_cached`` never touches the network. At most
    one refresh per property is in flight; concurrent callers share it.
    """

    def __init__(
        self,
        parser: FeedParser | None = None,
        client: httpx.AsyncClient | None = None,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._parser = parser or FeedParser()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.ttl_seconds = ttl_seconds
        self._bus = bus or EventBus()
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[list[Booking]]] = {}

    @property
    def parser(self) -> FeedParser:
        return self._parser

    async def get_bookings(self, prop: Property, *, force_refresh: bool = False) -> list[Booking]:
        """Return the property's bookings, refetching when the cache is stale."""
        if not force_refresh and self.is_fresh(prop.id):
            return list(self._cache[prop.id].bookings)

        task = self._in_flight.get(prop.id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._refresh(prop))
            self._in_flight[prop.id] = task
            task.add_done_callback(lambda _t, key=prop.id: self._in_flight.pop(key, None))
        return list(await asyncio.shield(task))

    async def get_all_bookings(
        self, properties: Iterable[Property], *, force_refresh: bool = False
    ) -> list[Booking]:
        """Bookings for every property, fetched concurrently, sorted by start."""
        results = await asyncio.gather(
            *(self.get_bookings(prop, force_refresh=force_refresh) for prop in properties)
        )
        return sorted((b for batch in results for b in batch), key=lambda b: (b.start, b.id))

    def get_cached(self, prop: Property | str) -> list[Booking]:
        """Last fetched bookings for a property, stale or not; empty if never fetched."""
        entry = self._cache.get(_key(prop))
        return list(entry.bookings) if entry else []

    def all_cached(self) -> list[Booking]:
        return sorted(
            (b for entry in self._cache.values() for b in entry.bookings),
            key=lambda b: (b.start, b.id),
        )

    def is_fresh(self, property_id: str) -> bool:
        entry = self._cache.get(property_id)
        return entry is not None and self._clock() - entry.fetched_at < self.ttl_seconds

    def invalidate(self, property_id: str) -> None:
        self._cache.pop(property_id, None)

    def invalidate_all(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _refresh(self, prop: Property) -> list[Booking]:
        sources = list(prop.sources)
        logger.info("Refreshing %d calendar sources for property %s", len(sources), prop.name)
        batches = await asyncio.gather(*(self._fetch_source(prop, src) for src in sources))
        bookings = merge_bookings(batches)

        self._cache[prop.id] = CacheEntry(bookings=bookings, fetched_at=self._clock())
        self._bus.publish(Event(
            event_type=EventType.BOOKINGS_REFRESHED,
            data={"property_id": prop.id, "count": len(bookings), "bookings": list(bookings)},
        ))
        return bookings

    async def _fetch_source(self, prop: Property, source: CalendarSource) -> list[Booking]:
        """One source's bookings; any transport failure yields an empty list."""
        try:
            ical_text = await self.fetch_feed(source.url)
        except (httpx.HTTPError, httpx.InvalidURL, FeedFetchError):
            logger.exception(
                "Failed to fetch %s calendar for property %s",
                source.platform.display_name, prop.name,
            )
            return []
        return self._parser.parse(ical_text, source.platform, prop.id)

    async def fetch_feed(self, url: str) -> str:
        """Fetch one feed document as text."""
        resp = await self._client.get(url)
        resp.raise_for_status()
        try:
            return resp.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FeedFetchError(f"Feed at {url} is not valid UTF-8") from exc


def _key(prop: Property | str) -> str:
    return prop if isinstance(prop, str) else prop.id
