"""iCal feed parsing into normalized bookings.

Feeds from the booking platforms are loosely conforming, so events are
extracted line by line rather than through a strict calendar parser: an
event missing its dates or UID, or carrying a date we cannot read, is
skipped and counted instead of failing the whole feed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from icalendar.parser import Contentline, Contentlines, Parameters
from icalendar.prop import vDate, vDatetime

from turnover.dates import local_midnight
from turnover.models.booking import Booking, Platform

logger = logging.getLogger(__name__)

DATE_ONLY = re.compile(r"\d{8}")
REQUIRED_FIELDS = ("DTSTART", "DTEND", "UID")
# Summaries that carry no guest information
PLACEHOLDER_SUMMARIES = {"reserved"}
MAX_SKIP_DETAILS = 3
# Marks an event whose END:VEVENT never arrived; not a legal property name
UNTERMINATED = "!UNTERMINATED"

# Property name -> (parameters, value)
RawEvent = dict[str, tuple[Parameters, str]]


@dataclass
class ParseResult:
    bookings: list[Booking] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.bookings) + self.skipped


def extract_events(ical_text: str) -> list[RawEvent]:
    """Split a feed into VEVENT property maps.

    Folded lines are joined first. Property names are keyed without their
    parameters; the parameters are kept alongside the value. Components nested
    inside an event (alarms) are ignored. An event cut off by the next
    ``BEGIN:VEVENT`` or by the end of the calendar is still returned, marked
    as unterminated, so that it is counted as skipped.
    """
    events: list[RawEvent] = []
    current: RawEvent | None = None
    nested = 0

    for line in Contentlines.from_ical(ical_text):
        if not line.strip():
            continue
        try:
            name, params, value = Contentline(line).parts()
        except ValueError:
            logger.debug("Ignoring unparseable content line: %r", str(line)[:80])
            continue

        name = name.upper()
        value = value.strip()

        if name == "BEGIN":
            if value.upper() == "VEVENT":
                if current is not None:
                    events.append(_unterminated(current))
                current = {}
                nested = 0
            elif current is not None:
                nested += 1
            continue

        if name == "END":
            if current is None:
                continue
            if value.upper() == "VEVENT":
                events.append(current)
                current = None
                nested = 0
            elif value.upper() == "VCALENDAR":
                events.append(_unterminated(current))
                current = None
                nested = 0
            elif nested:
                nested -= 1
            continue

        if current is not None and not nested:
            current[name] = (params, value)

    if current is not None:
        events.append(_unterminated(current))
    return events


def _unterminated(event: RawEvent) -> RawEvent:
    event[UNTERMINATED] = (Parameters(), "")
    return event


def parse_date(value: str | None, params: Parameters | None = None) -> datetime | None:
    """Parse a DTSTART/DTEND value.

    Date-only values become local midnight so that the calendar day never
    shifts; date-times are read as UTC whether or not they end in ``Z``.
    Returns None for anything unreadable.
    """
    if not value:
        return None
    value = value.strip()
    value_type = str((params or {}).get("VALUE", "")).upper()

    if DATE_ONLY.fullmatch(value) or value_type == "DATE":
        try:
            return local_midnight(vDate.from_ical(value[:8]))
        except ValueError:
            return None

    try:
        parsed = vDatetime.from_ical(value)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def extract_guest_name(summary: str | None, platform: Platform) -> str | None:
    """Pull a guest name out of an event summary.

    VRBO exports "Reserved - Jane Doe"; the other platforms mostly export a
    bare "Reserved". Anything else is taken as the name as-is.
    """
    if summary is None or not summary.strip():
        return None

    if platform is Platform.VRBO and "-" in summary:
        name = summary.split("-", 1)[1].strip()
        return name or None

    if summary.strip().lower() in PLACEHOLDER_SUMMARIES:
        return None

    return summary


class FeedParser:
    """Turns raw feed documents into bookings and keeps skip statistics."""

    def __init__(self) -> None:
        self.skipped_total = 0
        self.last_result: ParseResult | None = None

    def parse(self, ical_text: str, platform: Platform, property_id: str) -> list[Booking]:
        return self.parse_feed(ical_text, platform, property_id).bookings

    def parse_feed(self, ical_text: str, platform: Platform, property_id: str) -> ParseResult:
        result = ParseResult()
        events = extract_events(ical_text)
        logger.debug("Parsing %d events from %s feed", len(events), platform.display_name)

        for event in events:
            booking = self._to_booking(event, platform, property_id)
            if booking is None:
                result.skipped += 1
                if result.skipped <= MAX_SKIP_DETAILS:
                    logger.debug(
                        "Skipping event: DTSTART=%s DTEND=%s UID=%s",
                        _raw(event, "DTSTART"), _raw(event, "DTEND"), _raw(event, "UID"),
                    )
                continue
            result.bookings.append(booking)

        if result.skipped:
            logger.warning(
                "Skipped %d of %d %s events with missing or invalid fields",
                result.skipped, result.total, platform.display_name,
            )
        logger.info(
            "Parsed %d bookings from %s for property %s",
            len(result.bookings), platform.display_name, property_id,
        )

        self.skipped_total += result.skipped
        self.last_result = result
        return result

    def _to_booking(self, event: RawEvent, platform: Platform, property_id: str) -> Booking | None:
        if UNTERMINATED in event:
            return None
        if any(name not in event for name in REQUIRED_FIELDS):
            return None

        start = parse_date(event["DTSTART"][1], event["DTSTART"][0])
        end = parse_date(event["DTEND"][1], event["DTEND"][0])
        uid = event["UID"][1]
        if start is None or end is None or not uid:
            return None

        summary = event["SUMMARY"][1] if "SUMMARY" in event else None
        try:
            return Booking(
                id=uid,
                start=start,
                end=end,
                guest_name=extract_guest_name(summary, platform),
                platform=platform,
                property_id=property_id,
            )
        except ValueError:
            # Feeds occasionally contain zero-length or inverted blocks
            return None


def _raw(event: RawEvent, name: str) -> str | None:
    entry = event.get(name)
    return entry[1] if entry else None
