from __future__ import annotations

import sqlite3
from functools import cached_property
from typing import Any, Iterator

from gtfs_feed_etl.schema.table import ID_COLUMN
from gtfs_feed_etl.schema.tables import table_by_name
from gtfs_feed_etl.storage import Namespace, dict_rows, quote_ident, table_columns, table_exists

Row = dict[str, Any]


class Feed:
    """
    Read access to one loaded namespace. Rows come back as plain dicts keyed
    by column name; columns absent from the source file are absent here too.
    """

    def __init__(self, conn: sqlite3.Connection, namespace: Namespace) -> None:
        self.conn = conn
        self.namespace = namespace

    def has_table(self, table_name: str) -> bool:
        return table_exists(self.conn, self.namespace.qualified(table_name))

    def columns(self, table_name: str) -> list[str]:
        return table_columns(self.conn, self.namespace.qualified(table_name))

    def rows(self, table_name: str) -> Iterator[Row]:
        if not self.has_table(table_name):
            return iter(())
        table = table_by_name(table_name)
        return dict_rows(self.conn, table.select_sql(self.namespace))

    def count(self, table_name: str) -> int:
        if not self.has_table(table_name):
            return 0
        row = self.conn.execute(
            f"SELECT COUNT(*) FROM {self.namespace.quoted(table_name)};"
        ).fetchone()
        return int(row[0])

    def _by_key(self, table_name: str) -> dict[str, Row]:
        key = table_by_name(table_name).key_field.name
        out: dict[str, Row] = {}
        for row in self.rows(table_name):
            value = row.get(key)
            if value is not None and value not in out:
                out[value] = row
        return out

    @cached_property
    def stops(self) -> dict[str, Row]:
        return self._by_key("stops")

    @cached_property
    def routes(self) -> dict[str, Row]:
        return self._by_key("routes")

    @cached_property
    def trips(self) -> dict[str, Row]:
        return self._by_key("trips")

    def stop_times_by_trip(self) -> Iterator[tuple[str, list[Row]]]:
        """
        One ordered scan of stop_times, grouping consecutive rows of a trip.
        """
        if not self.has_table("stop_times"):
            return
        sql = (
            f"SELECT * FROM {self.namespace.quoted('stop_times')} "
            f"ORDER BY {quote_ident('trip_id')}, {quote_ident('stop_sequence')}, {ID_COLUMN};"
        )
        current: Any = None
        group: list[Row] = []
        for row in dict_rows(self.conn, sql):
            trip_id = row.get("trip_id")
            if trip_id != current and group:
                yield current, group
                group = []
            current = trip_id
            group.append(row)
        if group:
            yield current, group
