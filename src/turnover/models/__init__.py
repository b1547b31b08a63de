"""Domain and database models."""

from turnover.models.booking import Booking, Platform
from turnover.models.cleaning_status import (
    CleaningState,
    CleaningStatus,
    CleaningStatusRecord,
)
from turnover.models.property import CalendarSource, Property

__all__ = [
    "Booking",
    "CalendarSource",
    "CleaningState",
    "CleaningStatus",
    "CleaningStatusRecord",
    "Platform",
    "Property",
]
