from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from gtfs_feed_etl.core import FileDigest, get_logger, utc_now_iso

from .sqlite import dict_rows, quote_ident, transaction

log = get_logger(__name__)

FEEDS_TABLE = "feeds"


@dataclass(frozen=True, slots=True)
class Namespace:
    """
    An isolated group of tables holding one loaded feed version.

    SQLite has no schemas, so tables are prefixed with the namespace id.
    """

    id: str

    def qualified(self, table_name: str) -> str:
        return f"{self.id}_{table_name}"

    def quoted(self, table_name: str) -> str:
        return quote_ident(self.qualified(table_name))


@dataclass(frozen=True, slots=True)
class FeedRecord:
    namespace: str
    md5: Optional[str]
    sha1: Optional[str]
    feed_id: Optional[str]
    feed_version: Optional[str]
    filename: Optional[str]
    loaded_date: str
    snapshot_of: Optional[str]
    deleted: bool


def ensure_feeds_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {quote_ident(FEEDS_TABLE)} ("
        "namespace TEXT PRIMARY KEY, "
        "md5 TEXT, "
        "sha1 TEXT, "
        "feed_id TEXT, "
        "feed_version TEXT, "
        "filename TEXT, "
        "loaded_date TEXT, "
        "snapshot_of TEXT, "
        "deleted INTEGER NOT NULL DEFAULT 0"
        ");"
    )


def register_feed(
    conn: sqlite3.Connection,
    namespace: Namespace,
    *,
    digest: Optional[FileDigest],
    filename: Optional[str],
    feed_id: Optional[str],
    feed_version: Optional[str],
) -> FeedRecord:
    record = FeedRecord(
        namespace=namespace.id,
        md5=digest.md5 if digest else None,
        sha1=digest.sha1 if digest else None,
        feed_id=feed_id,
        feed_version=feed_version,
        filename=filename,
        loaded_date=utc_now_iso(),
        snapshot_of=None,
        deleted=False,
    )
    ensure_feeds_table(conn)
    conn.execute(
        f"INSERT INTO {quote_ident(FEEDS_TABLE)} "
        "(namespace, md5, sha1, feed_id, feed_version, filename, loaded_date, snapshot_of, deleted) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
        (
            record.namespace,
            record.md5,
            record.sha1,
            record.feed_id,
            record.feed_version,
            record.filename,
            record.loaded_date,
            record.snapshot_of,
            0,
        ),
    )
    return record


def _record(row: dict[str, Any]) -> FeedRecord:
    return FeedRecord(
        namespace=row["namespace"],
        md5=row["md5"],
        sha1=row["sha1"],
        feed_id=row["feed_id"],
        feed_version=row["feed_version"],
        filename=row["filename"],
        loaded_date=row["loaded_date"],
        snapshot_of=row["snapshot_of"],
        deleted=bool(row["deleted"]),
    )


def list_feeds(
    conn: sqlite3.Connection, *, include_deleted: bool = False
) -> list[FeedRecord]:
    ensure_feeds_table(conn)
    sql = f"SELECT * FROM {quote_ident(FEEDS_TABLE)}"
    if not include_deleted:
        sql += " WHERE deleted = 0"
    sql += " ORDER BY loaded_date, namespace;"
    return [_record(r) for r in dict_rows(conn, sql)]


def get_feed(conn: sqlite3.Connection, namespace_id: str) -> Optional[FeedRecord]:
    ensure_feeds_table(conn)
    rows = list(
        dict_rows(
            conn,
            f"SELECT * FROM {quote_ident(FEEDS_TABLE)} WHERE namespace = ?;",
            (namespace_id,),
        )
    )
    return _record(rows[0]) if rows else None


def namespace_tables(conn: sqlite3.Connection, namespace: Namespace) -> list[str]:
    prefix = namespace.qualified("")
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND substr(name, 1, ?) = ? ORDER BY name;",
        (len(prefix), prefix),
    ).fetchall()
    return [r[0] for r in rows]


def delete_namespace(conn: sqlite3.Connection, namespace: Namespace) -> int:
    """
    Drop every table of the namespace and mark it deleted in the registry.

    Returns the number of dropped tables.
    """
    tables = namespace_tables(conn, namespace)
    with transaction(conn):
        for name in tables:
            conn.execute(f"DROP TABLE IF EXISTS {quote_ident(name)};")
        ensure_feeds_table(conn)
        conn.execute(
            f"UPDATE {quote_ident(FEEDS_TABLE)} SET deleted = 1 WHERE namespace = ?;",
            (namespace.id,),
        )
    log.info("Namespace deleted", namespace=namespace.id, tables=len(tables))
    return len(tables)
