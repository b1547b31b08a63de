"""Turnover gap detection: which days of a property need cleaning attention."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Iterable

from turnover.dates import Clock, DayLike, day_of, local_now
from turnover.models.booking import Booking
from turnover.models.cleaning_status import CleaningState
from turnover.models.property import Property
from turnover.modules.calendar_sync.aggregator import BookingAggregator
from turnover.modules.cleaning_status.store import CleaningStatusStore


class DayActivity(str, Enum):
    NONE = "none"
    CHECKOUT_ONLY = "checkout_only"
    CHECKIN_ONLY = "checkin_only"
    BOTH = "both"


def _by_checkout(property_id: str, bookings: Iterable[Booking]) -> list[Booking]:
    return sorted(
        (b for b in bookings if b.property_id == property_id),
        key=lambda b: (b.end, b.start),
    )


def gap_checkout_date(
    property_id: str,
    day: DayLike,
    bookings: Iterable[Booking],
    today: DayLike | None = None,
) -> date | None:
    """Checkout date of the gap that makes ``day`` active, or None.

    Bookings are walked in checkout order. A checkout later than today opens
    no gap yet. With a successor, the gap runs from checkout through the next
    check-in (both inclusive) and is dropped once that check-in is in the
    past. The last booking opens a gap with no end. When overlapping feed data
    produces several matches, the last one wins.
    """
    target = day_of(day)
    today = day_of(today if today is not None else local_now())
    ordered = _by_checkout(property_id, bookings)

    match: date | None = None
    for index, booking in enumerate(ordered):
        checkout = booking.end_date
        if checkout > today:
            continue

        if index + 1 < len(ordered):
            next_checkin = ordered[index + 1].start_date
            if checkout <= target <= next_checkin and next_checkin >= today:
                match = checkout
        elif target >= checkout:
            match = checkout
    return match


def is_cleaning_active(
    property_id: str,
    day: DayLike,
    bookings: Iterable[Booking],
    today: DayLike | None = None,
) -> bool:
    """True when ``day`` falls inside an actionable turnover gap."""
    return gap_checkout_date(property_id, day, bookings, today) is not None


def day_activity(property_id: str, day: DayLike, bookings: Iterable[Booking]) -> DayActivity:
    """Whether the day sees a checkout, a check-in, or both on the property."""
    target = day_of(day)
    checkout = checkin = False
    for booking in bookings:
        if booking.property_id != property_id:
            continue
        checkout = checkout or booking.end_date == target
        checkin = checkin or booking.start_date == target

    if checkout and checkin:
        return DayActivity.BOTH
    if checkin:
        return DayActivity.CHECKIN_ONLY
    if checkout:
        return DayActivity.CHECKOUT_ONLY
    return DayActivity.NONE


class TurnoverGapDetector:
    """Gap queries over already-fetched bookings; never triggers a fetch."""

    def __init__(
        self,
        aggregator: BookingAggregator,
        store: CleaningStatusStore,
        clock: Clock = local_now,
    ) -> None:
        self._aggregator = aggregator
        self._store = store
        self._clock = clock

    def is_active(self, prop: Property, day: DayLike) -> bool:
        return is_cleaning_active(prop.id, day, self._aggregator.get_cached(prop), self._clock())

    def indicator(self, prop: Property, day: DayLike) -> CleaningState | None:
        """State to show for a day: the gap's checkout status, ``todo`` when unset.

        None means the day is outside any active gap and shows nothing.
        """
        checkout = gap_checkout_date(
            prop.id, day, self._aggregator.get_cached(prop), self._clock()
        )
        if checkout is None:
            return None
        status = self._store.get(prop.id, checkout)
        return status.status if status else CleaningState.TODO

    def activity(self, prop: Property, day: DayLike) -> DayActivity:
        return day_activity(prop.id, day, self._aggregator.get_cached(prop))
