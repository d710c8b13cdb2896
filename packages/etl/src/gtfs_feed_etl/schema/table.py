from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from gtfs_feed_etl.issues.types import ErrorType, FeedIssue
from gtfs_feed_etl.storage.namespace import Namespace
from gtfs_feed_etl.storage.sqlite import quote_ident

from .fields import Field, FieldKind, Requirement

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")

ID_COLUMN = "id"
LINE_COLUMN = "csv_line"

# Small tables where an index only costs write time.
_UNINDEXED_TABLES = frozenset({"agency", "feed_info"})


def sanitize(name: str) -> str:
    return _UNSAFE_CHARS.sub("", name)


@dataclass(frozen=True, slots=True)
class Table:
    name: str
    requirement: Requirement
    fields: tuple[Field, ...]
    has_unique_key_field: bool = True
    compound_key: bool = False
    primary_key: bool = False
    cascade_delete_restricted: bool = False
    parent_table: Optional[str] = None

    @property
    def file_name(self) -> str:
        return f"{self.name}.txt"

    @property
    def is_required(self) -> bool:
        return self.requirement == Requirement.REQUIRED

    @property
    def key_field(self) -> Field:
        return self.fields[0]

    @property
    def order_field(self) -> Optional[Field]:
        if len(self.fields) < 2:
            return None
        second = self.fields[1]
        if "_sequence" in second.name or self.compound_key:
            return second
        return None

    @property
    def unique_key_field(self) -> Optional[Field]:
        order = self.order_field
        if order is not None:
            return order
        if self.has_unique_key_field:
            return self.key_field
        return None

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def field_for_name(self, name: str) -> Field:
        for f in self.fields:
            if f.name == name:
                return f
        return Field(name, Requirement.UNKNOWN, FieldKind.STRING)

    def required_fields(self) -> list[Field]:
        return [f for f in self.fields if f.is_required]

    def fields_from_headers(
        self, headers: Sequence[str]
    ) -> tuple[list[Optional[Field]], list[FeedIssue]]:
        """
        Map a file's header row onto fields. Columns that cannot be stored
        (duplicates, the reserved id column, nothing left after sanitizing) map
        to None and are skipped by the loader.
        """
        issues: list[FeedIssue] = []
        fields: list[Optional[Field]] = []
        seen: set[str] = set()
        for header in headers:
            name = sanitize(header)
            if name != header:
                issues.append(self._header_issue(ErrorType.COLUMN_NAME_UNSAFE, header))
            if not name or name in seen or name == ID_COLUMN or name == LINE_COLUMN:
                issues.append(self._header_issue(ErrorType.DUPLICATE_HEADER, header))
                fields.append(None)
                continue
            seen.add(name)
            fields.append(self.field_for_name(name))

        for f in self.required_fields():
            if f.name not in seen:
                issues.append(self._header_issue(ErrorType.MISSING_COLUMN, f.name))
        return fields, issues

    def _header_issue(self, error_type: ErrorType, bad_value: str) -> FeedIssue:
        return FeedIssue(
            error_type=error_type,
            entity_type=self.name,
            line_number=1,
            bad_value=bad_value,
        )

    # SQL

    def create_sql(self, ns: Namespace, fields: Iterable[Field]) -> str:
        cols = [f"{ID_COLUMN} INTEGER PRIMARY KEY", f"{LINE_COLUMN} INTEGER"]
        cols.extend(f"{quote_ident(f.name)} {f.sql_type}" for f in fields)
        return f"CREATE TABLE {ns.quoted(self.name)} ({', '.join(cols)});"

    def drop_sql(self, ns: Namespace) -> str:
        return f"DROP TABLE IF EXISTS {ns.quoted(self.name)};"

    def insert_sql(self, ns: Namespace, fields: Sequence[Field]) -> str:
        names = [LINE_COLUMN] + [f.name for f in fields]
        cols = ", ".join(quote_ident(n) for n in names)
        placeholders = ", ".join("?" for _ in names)
        return f"INSERT INTO {ns.quoted(self.name)} ({cols}) VALUES ({placeholders});"

    def update_sql(self, ns: Namespace, fields: Sequence[Field]) -> str:
        sets = ", ".join(f"{quote_ident(f.name)} = ?" for f in fields)
        return f"UPDATE {ns.quoted(self.name)} SET {sets} WHERE {ID_COLUMN} = ?;"

    def select_sql(self, ns: Namespace, *, columns: Optional[Sequence[str]] = None) -> str:
        cols = "*" if not columns else ", ".join(quote_ident(c) for c in columns)
        order = [self.key_field.name]
        if self.order_field is not None:
            order.append(self.order_field.name)
        order_by = ", ".join(quote_ident(c) for c in order)
        return f"SELECT {cols} FROM {ns.quoted(self.name)} ORDER BY {order_by}, {ID_COLUMN};"

    def delete_sql(self, ns: Namespace) -> str:
        return f"DELETE FROM {ns.quoted(self.name)} WHERE {ID_COLUMN} = ?;"

    def index_sql(self, ns: Namespace, present: Iterable[str]) -> list[str]:
        """
        Index statements for the key (and order) columns plus every field
        flagged for indexing, restricted to columns that exist.
        """
        if self.name in _UNINDEXED_TABLES:
            return []
        cols = set(present)
        stmts: list[str] = []
        key_cols = [self.key_field.name]
        if self.order_field is not None:
            key_cols.append(self.order_field.name)
        key_cols = [c for c in key_cols if c in cols]
        if key_cols:
            stmts.append(self._index_stmt(ns, key_cols))
        for f in self.fields:
            if f.index and f.name in cols and [f.name] != key_cols:
                stmts.append(self._index_stmt(ns, [f.name]))
        return stmts

    def _index_stmt(self, ns: Namespace, columns: list[str]) -> str:
        index_name = quote_ident(ns.qualified(f"{self.name}_{'_'.join(columns)}_idx"))
        cols = ", ".join(quote_ident(c) for c in columns)
        return f"CREATE INDEX IF NOT EXISTS {index_name} ON {ns.quoted(self.name)} ({cols});"
