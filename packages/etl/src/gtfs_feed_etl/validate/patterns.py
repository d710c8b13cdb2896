from __future__ import annotations

from typing import Optional, Sequence

from gtfs_feed_etl.issues import ErrorStorage
from gtfs_feed_etl.patterns import PatternBuilder, PatternFinder

from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult


class PatternFinderValidator:
    """Feeds every usable trip to a PatternFinder and persists the patterns."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.config = config
        self.finder = PatternFinder()

    def validate_trip(
        self,
        trip: Row,
        route: Optional[Row],
        stop_times: Sequence[Row],
        stops: Sequence[Row],
    ) -> None:
        self.finder.process_trip(trip, stop_times)

    def complete(self, result: ValidationResult) -> None:
        patterns = self.finder.create_patterns(self.feed.stops, self.errors)
        self.errors.flush()
        PatternBuilder(
            self.feed.conn, self.feed.namespace, batch_size=self.config.error_batch_size
        ).create(patterns)
