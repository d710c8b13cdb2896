from __future__ import annotations

import sqlite3
from typing import Iterable

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.storage.namespace import Namespace
from gtfs_feed_etl.storage.sqlite import table_exists, transaction

from .types import FeedIssue

log = get_logger(__name__)

ERRORS_TABLE = "errors"
INSERT_BATCH_SIZE = 500


class ErrorStorage:
    """
    Buffers issues and writes them to the namespace's errors table in batches.

    `error_count` is a running total over everything stored through this
    object plus whatever the table already held when it was opened, so a
    validation pass continues counting from the load.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        namespace: Namespace,
        *,
        batch_size: int = INSERT_BATCH_SIZE,
    ) -> None:
        self._conn = conn
        self._ns = namespace
        self._batch_size = batch_size
        self._pending: list[tuple[object, ...]] = []
        self._table = namespace.quoted(ERRORS_TABLE)
        self._create_table()
        self._count = int(
            conn.execute(f"SELECT COUNT(*) FROM {self._table};").fetchone()[0]
        )

    @property
    def error_count(self) -> int:
        return self._count

    def _create_table(self) -> None:
        if table_exists(self._conn, self._ns.qualified(ERRORS_TABLE)):
            return
        self._conn.execute(
            f"CREATE TABLE {self._table} ("
            "error_id INTEGER PRIMARY KEY, "
            "error_type TEXT NOT NULL, "
            "entity_type TEXT, "
            "line_number INTEGER, "
            "entity_id TEXT, "
            "entity_sequence INTEGER, "
            "bad_value TEXT"
            ");"
        )

    def store(self, issue: FeedIssue) -> None:
        self._pending.append(issue.as_row())
        self._count += 1
        if len(self._pending) >= self._batch_size:
            self.flush()

    def store_all(self, issues: Iterable[FeedIssue]) -> None:
        for issue in issues:
            self.store(issue)

    def flush(self) -> None:
        if not self._pending:
            return
        sql = (
            f"INSERT INTO {self._table} "
            "(error_type, entity_type, line_number, entity_id, entity_sequence, bad_value) "
            "VALUES (?, ?, ?, ?, ?, ?);"
        )
        if self._conn.in_transaction:
            self._conn.executemany(sql, self._pending)
        else:
            with transaction(self._conn):
                self._conn.executemany(sql, self._pending)
        self._pending = []

    def mark(self) -> int:
        """Checkpoint for `reset_to`, taken before work that may be rolled back."""
        self.flush()
        return self._count

    def reset_to(self, mark: int) -> None:
        """
        Forget issues recorded after `mark`. Call after rolling back the
        transaction they were flushed in.
        """
        dropped = self._count - mark
        self._pending = []
        self._count = mark
        if dropped:
            log.debug("Discarded issues after rollback", dropped=dropped)

    def counts_by_type(self) -> dict[str, int]:
        self.flush()
        rows = self._conn.execute(
            f"SELECT error_type, COUNT(*) FROM {self._table} "
            "GROUP BY error_type ORDER BY COUNT(*) DESC, error_type;"
        ).fetchall()
        return {r[0]: int(r[1]) for r in rows}
