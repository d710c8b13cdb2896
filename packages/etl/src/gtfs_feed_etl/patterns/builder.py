from __future__ import annotations

import sqlite3
from typing import Any, Iterator, Optional, Sequence

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.schema.table import Table
from gtfs_feed_etl.schema.tables import PATTERN_STOPS, PATTERNS, TRIPS
from gtfs_feed_etl.storage import Namespace, chunked, quote_ident, table_columns, transaction

from .finder import Pattern

log = get_logger(__name__)


def travel_and_dwell_times(
    arrivals: Sequence[Optional[int]],
    departures: Sequence[Optional[int]],
) -> list[tuple[Optional[int], Optional[int]]]:
    """
    (travel, dwell) per stop position. Travel time runs from the last known
    departure before this stop; missing inputs give None, never a guess.
    """
    out: list[tuple[Optional[int], Optional[int]]] = []
    prev_departure: Optional[int] = None
    for i, (arrival, departure) in enumerate(zip(arrivals, departures)):
        if i == 0:
            travel = 0 if arrival is not None else None
        elif arrival is None or prev_departure is None:
            travel = None
        else:
            travel = arrival - prev_departure
        dwell = departure - arrival if arrival is not None and departure is not None else None
        out.append((travel, dwell))
        if departure is not None:
            prev_departure = departure
    return out


class PatternBuilder:
    """
    Rewrites the derived patterns and pattern_stops tables and points every
    trip at its pattern. Always a full rewrite, in one transaction.
    """

    def __init__(self, conn: sqlite3.Connection, namespace: Namespace, *, batch_size: int = 500) -> None:
        self.conn = conn
        self.ns = namespace
        self.batch_size = batch_size

    def create(self, patterns: Sequence[Pattern]) -> None:
        log.info("Creating pattern and pattern stops tables", patterns=len(patterns))
        with transaction(self.conn):
            self._create_tables()
            self._insert(PATTERNS, self._pattern_rows(patterns))
            self._insert(PATTERN_STOPS, self._pattern_stop_rows(patterns))
            self._update_trips(patterns)
            self._create_indexes()
        log.info("Patterns stored", patterns=len(patterns))

    def _create_tables(self) -> None:
        for table in (PATTERNS, PATTERN_STOPS):
            self.conn.execute(table.drop_sql(self.ns))
            self.conn.execute(table.create_sql(self.ns, table.fields))

    def _insert(self, table: Table, rows: Iterator[tuple[Any, ...]]) -> None:
        sql = table.insert_sql(self.ns, table.fields)
        for batch in chunked(rows, self.batch_size):
            self.conn.executemany(sql, batch)

    @staticmethod
    def _pattern_rows(patterns: Sequence[Pattern]) -> Iterator[tuple[Any, ...]]:
        # (csv_line, pattern_id, route_id, name, direction_id, shape_id)
        for p in patterns:
            yield (None, p.pattern_id, p.route_id, p.name, p.direction_id, p.shape_id)

    @staticmethod
    def _pattern_stop_rows(patterns: Sequence[Pattern]) -> Iterator[tuple[Any, ...]]:
        for p in patterns:
            key = p.key
            times = travel_and_dwell_times(key.arrival_offsets, key.departure_offsets)
            distances = p.shape_distances or tuple(None for _ in key.stops)
            for seq, stop_id in enumerate(key.stops):
                travel, dwell = times[seq]
                yield (
                    None,
                    p.pattern_id,
                    seq,
                    stop_id,
                    travel,
                    dwell,
                    key.drop_off_types[seq],
                    key.pickup_types[seq],
                    distances[seq],
                    key.timepoints[seq],
                )

    def _update_trips(self, patterns: Sequence[Pattern]) -> None:
        trips = self.ns.quoted(TRIPS.name)
        if "pattern_id" not in table_columns(self.conn, self.ns.qualified(TRIPS.name)):
            self.conn.execute(f"ALTER TABLE {trips} ADD COLUMN pattern_id TEXT;")
        self.conn.execute(f"UPDATE {trips} SET pattern_id = NULL;")
        rows = ((p.pattern_id, trip_id) for p in patterns for trip_id in p.trip_ids)
        sql = f"UPDATE {trips} SET pattern_id = ? WHERE trip_id = ?;"
        for batch in chunked(rows, self.batch_size):
            self.conn.executemany(sql, batch)

    def _create_indexes(self) -> None:
        patterns = self.ns.quoted(PATTERNS.name)
        pattern_stops = self.ns.quoted(PATTERN_STOPS.name)
        self.conn.execute(
            f"CREATE UNIQUE INDEX {quote_ident(self.ns.qualified('patterns_pattern_id_pk'))} "
            f"ON {patterns} (pattern_id);"
        )
        self.conn.execute(
            f"CREATE UNIQUE INDEX {quote_ident(self.ns.qualified('pattern_stops_pattern_id_stop_sequence_pk'))} "
            f"ON {pattern_stops} (pattern_id, stop_sequence);"
        )
        present = table_columns(self.conn, self.ns.qualified(TRIPS.name))
        for stmt in TRIPS.index_sql(self.ns, present):
            self.conn.execute(stmt)
