from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Literal

from gtfs_feed_etl.core import StorageError, get_logger

log = get_logger(__name__)

JournalMode = Literal["DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"]
SyncMode = Literal["OFF", "NORMAL", "FULL", "EXTRA"]


@dataclass(frozen=True, slots=True)
class StoreConfig:
    cache_size_kb: int = 200_000
    journal_mode: JournalMode = "WAL"
    synchronous: SyncMode = "NORMAL"
    busy_timeout_ms: int = 5000


def connect(
    path: Path | str,
    *,
    cfg: StoreConfig | None = None,
    log_sql: bool = False,
) -> sqlite3.Connection:
    """
    Open the relational store in autocommit mode; transactions are explicit.
    """
    cfg = cfg or StoreConfig()
    conn = sqlite3.connect(str(path), isolation_level=None)
    _apply_pragmas(conn, cfg)
    if log_sql:
        conn.set_trace_callback(_trace_sql)
    return conn


def _apply_pragmas(conn: sqlite3.Connection, cfg: StoreConfig) -> None:
    conn.execute(f"PRAGMA journal_mode = {cfg.journal_mode};")
    conn.execute(f"PRAGMA synchronous = {cfg.synchronous};")
    conn.execute("PRAGMA temp_store = MEMORY;")
    conn.execute(f"PRAGMA cache_size = {-int(cfg.cache_size_kb)};")
    conn.execute(f"PRAGMA busy_timeout = {int(cfg.busy_timeout_ms)};")
    conn.execute("PRAGMA foreign_keys = OFF;")


def _trace_sql(statement: str) -> None:
    log.debug("SQL", statement=statement)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN;")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK;")
        raise
    conn.execute("COMMIT;")


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def chunked(it: Iterable[tuple[Any, ...]], n: int) -> Iterator[list[tuple[Any, ...]]]:
    if n <= 0:
        raise ValueError("chunk size must be > 0")
    batch: list[tuple[Any, ...]] = []
    for row in it:
        batch.append(row)
        if len(batch) >= n:
            yield batch
            batch = []
    if batch:
        yield batch


def table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?;",
        (table_name,),
    ).fetchone()
    return row is not None


def table_columns(conn: sqlite3.Connection, table_name: str) -> list[str]:
    rows = conn.execute(f"PRAGMA table_info({quote_ident(table_name)});").fetchall()
    if not rows:
        raise StorageError(f"table '{table_name}' does not exist")
    return [r[1] for r in rows]


def dict_rows(
    conn: sqlite3.Connection, sql: str, params: tuple[Any, ...] = ()
) -> Iterator[dict[str, Any]]:
    cur = conn.execute(sql, params)
    names = [d[0] for d in cur.description]
    for row in cur:
        yield dict(zip(names, row))
