from turnover.modules.calendar_sync.aggregator import BookingAggregator, FeedFetchError
from turnover.modules.calendar_sync.parser import FeedParser, ParseResult

__all__ = ["BookingAggregator", "FeedFetchError", "FeedParser", "ParseResult"]
