from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from gtfs_feed_etl.issues.types import ErrorType, FeedIssue
from gtfs_feed_etl.schema.fields import Field
from gtfs_feed_etl.schema.table import Table
from gtfs_feed_etl.schema.tables import table_by_name


def _as_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


# Tables whose full list of key values the conditional checks read.
KEY_VALUE_TABLES = frozenset({"agency"})

_Undo = tuple[Union[set[str], list[str]], str]


@dataclass(slots=True)
class ReferenceTracker:
    """
    Identifiers seen so far in one load.

    seen_keys holds "keyfield:value", seen_sequenced_keys holds
    "fieldname:key:sequence". One tracker per load, never shared.

    Additions made since the last checkpoint() are journaled so that a table
    whose load is rolled back can be forgotten with restore().
    """

    seen_keys: set[str] = field(default_factory=set)
    seen_sequenced_keys: set[str] = field(default_factory=set)
    key_values_by_table: dict[str, list[str]] = field(default_factory=dict)
    _journal: list[_Undo] = field(default_factory=list, repr=False)

    def checkpoint(self) -> None:
        self._journal.clear()

    def restore(self) -> None:
        """Undo every addition since the last checkpoint()."""
        for collection, value in reversed(self._journal):
            if isinstance(collection, set):
                collection.discard(value)
            else:
                collection.pop()
        self._journal.clear()

    def record_row(self, table_name: str, key_value: Optional[str]) -> None:
        """Note one accepted row; "" stands for a missing or absent key."""
        if table_name not in KEY_VALUE_TABLES:
            return
        values = self.key_values_by_table.setdefault(table_name, [])
        values.append(key_value or "")
        self._journal.append((values, key_value or ""))

    def key_values(self, table_name: str) -> list[str]:
        return self.key_values_by_table.get(table_name, [])

    def _add(self, seen: set[str], key: str) -> None:
        if key not in seen:
            seen.add(key)
            self._journal.append((seen, key))

    def check_references_and_uniqueness(
        self,
        key_value: Optional[str],
        line_number: int,
        field: Field,
        value: str,
        table: Table,
    ) -> list[FeedIssue]:
        issues: list[FeedIssue] = []
        if value == "" and not field.is_required:
            return issues

        order_field = table.order_field
        is_order_field = order_field is not None and field.name == order_field.name

        for ref_name in field.references:
            ref_key = f"{table_by_name(ref_name).key_field.name}:{value}"
            if ref_key not in self.seen_keys:
                issues.append(
                    FeedIssue(
                        error_type=ErrorType.REFERENTIAL_INTEGRITY,
                        entity_type=table.name,
                        line_number=line_number,
                        entity_id=key_value,
                        entity_sequence=_as_int(value) if is_order_field else None,
                        bad_value=ref_key,
                    )
                )

        unique_field = table.unique_key_field
        if unique_field is not None and field.name == unique_field.name:
            if is_order_field:
                unique_key = f"{field.name}:{key_value}:{value}"
                seen = self.seen_sequenced_keys
            else:
                unique_key = f"{field.name}:{value}"
                seen = self.seen_keys
            if unique_key in seen:
                issues.append(
                    FeedIssue(
                        error_type=ErrorType.DUPLICATE_ID,
                        entity_type=table.name,
                        line_number=line_number,
                        entity_id=key_value,
                        entity_sequence=_as_int(value) if is_order_field else None,
                        bad_value=unique_key,
                    )
                )
            else:
                self._add(seen, unique_key)

        # Services defined only through calendar_dates still have to be
        # referenceable from trips.
        if field.name == table.key_field.name and (
            not field.is_foreign_reference or table.name == "calendar_dates"
        ):
            self._add(self.seen_keys, f"{field.name}:{value}")

        return issues
