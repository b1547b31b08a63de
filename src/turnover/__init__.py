"""Booking calendar sync and cleaning turnover tracking."""

__version__ = "0.1.0"
