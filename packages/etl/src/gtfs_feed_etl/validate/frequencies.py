from __future__ import annotations

from collections import defaultdict

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType
from gtfs_feed_etl.schema.fields import format_time

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult

log = get_logger(__name__)


def periods_overlap(period: Row, other: Row) -> bool:
    """
    True when `period` lies within `other`, or starts or ends inside it.
    Windows are half-open, so one ending as the next starts is fine.
    """
    start, end = period["start_time"], period["end_time"]
    other_start, other_end = other["start_time"], other["end_time"]
    return (
        (other_start <= start and end <= other_end)
        or (other_start <= start < other_end)
        or (other_start < end <= other_end)
    )


class FrequencyValidator:
    """Headway periods of one trip must not overlap."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors

    def validate(self) -> None:
        by_trip: dict[str, list[Row]] = defaultdict(list)
        for freq in self.feed.rows("frequencies"):
            if freq.get("start_time") is None or freq.get("end_time") is None:
                continue
            by_trip[freq["trip_id"]].append(freq)

        n_overlaps = 0
        for periods in by_trip.values():
            for i, period in enumerate(periods):
                others = (p for j, p in enumerate(periods) if j != i)
                if any(periods_overlap(period, other) for other in others):
                    n_overlaps += 1
                    window = f"{format_time(period['start_time'])}-{format_time(period['end_time'])}"
                    self.errors.store(
                        issue_for("frequencies", period, ErrorType.FREQUENCY_PERIOD_OVERLAP, window)
                    )
        log.info("Frequencies checked", trips=len(by_trip), overlaps=n_overlaps)

    def complete(self, result: ValidationResult) -> None:
        return None
