from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gtfs_feed_etl.issues import ErrorStorage, ErrorType

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed
from .results import ValidationResult


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


class TimeZoneValidator:
    """agency_timezone and stop_timezone must name IANA zones."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors

    def validate(self) -> None:
        for agency in self.feed.rows("agency"):
            tz = agency.get("agency_timezone")
            if tz and not is_valid_timezone(tz):
                self.errors.store(issue_for("agency", agency, ErrorType.TIME_ZONE_FORMAT, tz))
        for stop in self.feed.stops.values():
            tz = stop.get("stop_timezone")
            if tz and not is_valid_timezone(tz):
                self.errors.store(issue_for("stops", stop, ErrorType.TIME_ZONE_FORMAT, tz))

    def complete(self, result: ValidationResult) -> None:
        return None
