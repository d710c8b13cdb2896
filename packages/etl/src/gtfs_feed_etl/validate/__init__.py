from .base import FeedValidator, TripValidator
from .calendar import BlockInterval, expand_service_dates, find_block_overlaps
from .config import ValidateConfig
from .driver import DEFAULT_FEED_VALIDATORS, DEFAULT_TRIP_VALIDATORS, validate_feed
from .feed import Feed
from .results import GeographicBounds, ValidationResult

__all__ = [
    "FeedValidator",
    "TripValidator",
    "BlockInterval",
    "expand_service_dates",
    "find_block_overlaps",
    "ValidateConfig",
    "DEFAULT_FEED_VALIDATORS",
    "DEFAULT_TRIP_VALIDATORS",
    "validate_feed",
    "Feed",
    "ValidationResult",
    "GeographicBounds",
]
