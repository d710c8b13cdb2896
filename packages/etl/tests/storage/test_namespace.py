from __future__ import annotations

import sqlite3

from gtfs_feed_etl.loader import load_feed
from gtfs_feed_etl.storage import (
    Namespace,
    delete_namespace,
    get_feed,
    list_feeds,
    namespace_tables,
    transaction,
)
from gtfs_feed_etl.validate import validate_feed


def test_namespaces_are_isolated(make_feed, conn: sqlite3.Connection) -> None:
    first = load_feed(make_feed(), conn)
    second = load_feed(make_feed(name="again.zip"), conn)
    assert first.namespace != second.namespace

    loaded = [f.namespace for f in list_feeds(conn)]
    assert sorted(loaded) == sorted([first.namespace, second.namespace])
    a = conn.execute(f"SELECT COUNT(*) FROM {Namespace(first.namespace).quoted('stops')};").fetchone()
    b = conn.execute(f"SELECT COUNT(*) FROM {Namespace(second.namespace).quoted('stops')};").fetchone()
    assert a == b == (3,)


def test_delete_namespace_drops_everything(make_feed, conn: sqlite3.Connection) -> None:
    keep = Namespace(load_feed(make_feed(), conn).namespace)
    gone = Namespace(load_feed(make_feed(name="other.zip"), conn).namespace)
    validate_feed(conn, gone)

    tables = namespace_tables(conn, gone)
    assert gone.qualified("errors") in tables
    assert gone.qualified("patterns") in tables
    assert gone.qualified("service_dates") in tables

    dropped = delete_namespace(conn, gone)
    assert dropped == len(tables)
    assert namespace_tables(conn, gone) == []
    assert namespace_tables(conn, keep) != []

    record = get_feed(conn, gone.id)
    assert record is not None and record.deleted
    assert [f.namespace for f in list_feeds(conn)] == [keep.id]
    assert gone.id in [f.namespace for f in list_feeds(conn, include_deleted=True)]


def test_transaction_rolls_back(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE t (x INTEGER);")
    try:
        with transaction(conn):
            conn.execute("INSERT INTO t VALUES (1);")
            raise RuntimeError("abort")
    except RuntimeError:
        pass
    assert conn.execute("SELECT COUNT(*) FROM t;").fetchone() == (0,)
    assert not conn.in_transaction
