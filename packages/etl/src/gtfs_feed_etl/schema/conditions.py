from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol, Sequence

from gtfs_feed_etl.issues.types import ErrorType, FeedIssue

FIRST_ROW = 2
SECOND_ROW = 3


@dataclass(frozen=True, slots=True)
class RowContext:
    """
    One CSV row as the loader saw it: raw cell text by column name, "" for
    empty or absent columns.

    `key_values(table)` returns every key value loaded so far for `table`,
    empty ones included, in file order.
    """

    table_name: str
    line_number: int
    entity_id: Optional[str]
    values: Mapping[str, str]
    key_values: Callable[[str], Sequence[str]]

    def value(self, name: str) -> str:
        return self.values.get(name, "")

    def issue(self, error_type: ErrorType, bad_value: Optional[str], line_number: Optional[int] = None) -> FeedIssue:
        return FeedIssue(
            error_type,
            entity_type=self.table_name,
            line_number=self.line_number if line_number is None else line_number,
            entity_id=self.entity_id,
            bad_value=bad_value,
        )


class Condition(Protocol):
    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]: ...


@dataclass(frozen=True, slots=True)
class AgencyHasMultipleRows:
    """agency_id is required on every agency row once there are two or more."""

    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]:
        ids = row.key_values("agency")
        if len(ids) < 2:
            return []
        issues: list[FeedIssue] = []
        # The first row could not know it needed an id until the second arrived.
        if row.line_number == SECOND_ROW and ids[0] == "":
            issues.append(
                row.issue(ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS, field_name, FIRST_ROW)
            )
        if row.value(field_name) == "":
            issues.append(row.issue(ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS, field_name))
        return issues


@dataclass(frozen=True, slots=True)
class ReferenceFieldShouldBeProvided:
    """The field is required when the referenced table holds more than one row."""

    table_name: str

    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]:
        if len(row.key_values(self.table_name)) > 1 and row.value(field_name) == "":
            return [row.issue(ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS, field_name)]
        return []


@dataclass(frozen=True, slots=True)
class FieldInRange:
    """When this field holds an integer in [min_value, max_value], `dependent` must not be empty."""

    min_value: int
    max_value: int
    dependent: str

    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]:
        try:
            value = int(row.value(field_name).strip())
        except ValueError:
            return []
        if not self.min_value <= value <= self.max_value or row.value(self.dependent) != "":
            return []
        return [
            row.issue(
                ErrorType.CONDITIONALLY_REQUIRED,
                f"{self.dependent} is required when {field_name} value is between "
                f"{self.min_value} and {self.max_value}.",
            )
        ]


@dataclass(frozen=True, slots=True)
class FieldIsEmpty:
    """This field is required when `dependent` is empty."""

    dependent: str

    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]:
        if row.value(self.dependent) == "" and row.value(field_name) == "":
            return [
                row.issue(
                    ErrorType.CONDITIONALLY_REQUIRED,
                    f"{field_name} is required when {self.dependent} is empty.",
                )
            ]
        return []


@dataclass(frozen=True, slots=True)
class FieldNotEmptyAndMatchesValue:
    """This field is required when `dependent` equals `expected`."""

    dependent: str
    expected: str

    def check(self, field_name: str, row: RowContext) -> list[FeedIssue]:
        if row.value(self.dependent) == self.expected and row.value(field_name) == "":
            return [
                row.issue(
                    ErrorType.CONDITIONALLY_REQUIRED,
                    f"{field_name} is required when {self.dependent} is {self.expected}.",
                )
            ]
        return []
