from __future__ import annotations

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed
from .results import ValidationResult

log = get_logger(__name__)


class FaresValidator:
    """A fare allowing no transfers cannot give transfers a duration."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors

    def validate(self) -> None:
        n_before = self.errors.error_count
        for fare in self.feed.rows("fare_attributes"):
            duration = fare.get("transfer_duration")
            if fare.get("transfers") == 0 and duration is not None and duration > 0:
                self.errors.store(
                    issue_for("fare_attributes", fare, ErrorType.FARE_TRANSFER_MISMATCH, duration)
                )
        log.info("Fares checked", errors=self.errors.error_count - n_before)

    def complete(self, result: ValidationResult) -> None:
        return None
