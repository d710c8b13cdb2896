from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue
from gtfs_feed_etl.schema.table import LINE_COLUMN
from gtfs_feed_etl.schema.tables import table_by_name

from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult


class FeedValidator(Protocol):
    def validate(self) -> None: ...
    def complete(self, result: ValidationResult) -> None: ...


class TripValidator(Protocol):
    def validate_trip(
        self,
        trip: Row,
        route: Optional[Row],
        stop_times: Sequence[Row],
        stops: Sequence[Row],
    ) -> None: ...
    def complete(self, result: ValidationResult) -> None: ...


FeedValidatorFactory = Callable[[Feed, ErrorStorage, ValidateConfig], FeedValidator]
TripValidatorFactory = Callable[[Feed, ErrorStorage, ValidateConfig], TripValidator]


def issue_for(
    table_name: str,
    row: Row,
    error_type: ErrorType,
    bad_value: Any = None,
) -> FeedIssue:
    """Issue pointing at one stored row: its line, key and sequence."""
    table = table_by_name(table_name)
    order = table.order_field
    sequence = row.get(order.name) if order is not None else None
    return FeedIssue(
        error_type=error_type,
        entity_type=table_name,
        line_number=row.get(LINE_COLUMN),
        entity_id=row.get(table.key_field.name),
        entity_sequence=sequence if isinstance(sequence, int) else None,
        bad_value=None if bad_value is None else str(bad_value),
    )


def feed_issue(error_type: ErrorType, bad_value: Any = None) -> FeedIssue:
    return FeedIssue(
        error_type=error_type,
        bad_value=None if bad_value is None else str(bad_value),
    )
