from __future__ import annotations

import argparse
import sqlite3
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gtfs_feed_etl.core import (
    Settings,
    bind,
    clear_bindings,
    configure_logging,
    format_duration_ms,
    get_logger,
    human_count,
    load_settings,
)
from gtfs_feed_etl.export import export_feed
from gtfs_feed_etl.fetch import download_feed
from gtfs_feed_etl.issues import ErrorStorage
from gtfs_feed_etl.loader import FeedLoadResult, load_feed
from gtfs_feed_etl.storage import Namespace, connect, delete_namespace, get_feed, list_feeds
from gtfs_feed_etl.validate import ValidationResult, validate_feed

console = Console()
log = get_logger("gtfs_feed_etl")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gtfs-feed-etl")
    p.add_argument(
        "--database",
        default=None,
        help="SQLite database file. If omitted: uses GTFS_FEED_ETL_DATABASE or ./gtfs.sqlite.",
    )
    p.add_argument("--log-sql", action="store_true", help="Log every SQL statement at debug level")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("load", help="Load a GTFS zip into a new namespace")
    sp.add_argument("feed", help="Path or http(s) URL of the GTFS zip")

    sp = sub.add_parser("validate", help="Validate a loaded namespace")
    sp.add_argument("namespace")

    sp = sub.add_parser("run", help="Load then validate a GTFS zip")
    sp.add_argument("feed", help="Path or http(s) URL of the GTFS zip")

    sp = sub.add_parser("export", help="Write a namespace back out as a GTFS zip")
    sp.add_argument("namespace")
    sp.add_argument("out", help="Destination zip path")

    sub.add_parser("feeds", help="List loaded feeds")

    sp = sub.add_parser("delete", help="Drop every table of a namespace")
    sp.add_argument("namespace")
    return p


def _resolve_feed(feed: str, settings: Settings) -> Path:
    """
    Local paths are used as-is; URLs are downloaded under data_root/downloads.
    """
    parsed = urlparse(feed)
    if parsed.scheme not in ("http", "https"):
        return Path(feed)
    name = Path(parsed.path).name or "feed.zip"
    dest = Path(settings.data_root) / "downloads" / name
    with console.status(f"[bold]fetch[/] {feed}", spinner="dots"):
        download_feed(feed, dest)
    return dest


def _load_table(result: FeedLoadResult) -> Table:
    tbl = Table(title="Load", show_header=True)
    tbl.add_column("table")
    tbl.add_column("rows", justify="right")
    tbl.add_column("errors", justify="right")
    tbl.add_column("fatal")
    for name, t in result.tables.items():
        if t.row_count == 0 and t.error_count == 0 and t.fatal_exception is None:
            continue
        tbl.add_row(
            name,
            human_count(t.row_count),
            human_count(t.error_count),
            f"[red]{t.fatal_exception}[/red]" if t.fatal_exception else "",
        )
    return tbl


def _errors_table(conn: sqlite3.Connection, ns: Namespace) -> Table:
    tbl = Table(title="Errors by type", show_header=True)
    tbl.add_column("error_type")
    tbl.add_column("count", justify="right")
    for error_type, count in ErrorStorage(conn, ns).counts_by_type().items():
        tbl.add_row(error_type, human_count(count))
    return tbl


def _summary(rows: list[tuple[str, str]], *, ok: bool) -> Table:
    tbl = Table(title="Result", show_header=False, box=None)
    tbl.add_row("status", "[green]ok[/green]" if ok else "[red]failed[/red]")
    for k, v in rows:
        tbl.add_row(k, v)
    return tbl


def _do_load(conn: sqlite3.Connection, feed: str, settings: Settings) -> FeedLoadResult:
    path = _resolve_feed(feed, settings)
    with console.status(f"[bold]load[/] {path.name}", spinner="dots"):
        result = load_feed(path, conn)
    console.print(_load_table(result))
    console.print(
        _summary(
            [
                ("namespace", str(result.namespace)),
                ("errors", human_count(result.error_count)),
                ("duration", format_duration_ms(result.load_time_ms)),
                ("fatal", result.fatal_exception or "-"),
            ],
            ok=result.fatal_exception is None,
        )
    )
    return result


def _do_validate(conn: sqlite3.Connection, ns: Namespace) -> ValidationResult:
    bind(namespace=ns.id)
    with console.status(f"[bold]validate[/] {ns.id}", spinner="dots"):
        result = validate_feed(conn, ns)
    if result.fatal_exception is None:
        console.print(_errors_table(conn, ns))
    console.print(
        _summary(
            [
                ("namespace", ns.id),
                ("errors", human_count(result.error_count)),
                ("service", f"{result.first_calendar_date or '-'} .. {result.last_calendar_date or '-'}"),
                ("duration", format_duration_ms(result.validation_time_ms)),
                ("fatal", result.fatal_exception or "-"),
            ],
            ok=result.fatal_exception is None,
        )
    )
    return result


def _cmd_load(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    result = _do_load(conn, args.feed, s)
    return 0 if result.fatal_exception is None else 1


def _cmd_validate(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    if get_feed(conn, args.namespace) is None:
        console.print(f"[red]unknown namespace[/red] {args.namespace}")
        return 1
    result = _do_validate(conn, Namespace(args.namespace))
    return 0 if result.fatal_exception is None else 1


def _cmd_run(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    loaded = _do_load(conn, args.feed, s)
    if loaded.fatal_exception is not None or loaded.namespace is None:
        return 1
    result = _do_validate(conn, Namespace(loaded.namespace))
    return 0 if result.fatal_exception is None else 1


def _cmd_export(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    ns = Namespace(args.namespace)
    bind(namespace=ns.id)
    written = export_feed(conn, ns, Path(args.out))
    tbl = Table(title="Export", show_header=True)
    tbl.add_column("file")
    tbl.add_column("rows", justify="right")
    for name, rows in written.items():
        tbl.add_row(f"{name}.txt", human_count(rows))
    console.print(tbl)
    return 0


def _cmd_feeds(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    tbl = Table(title="Feeds", show_header=True)
    for col in ("namespace", "feed_id", "feed_version", "filename", "loaded"):
        tbl.add_column(col)
    for r in list_feeds(conn):
        tbl.add_row(r.namespace, r.feed_id or "", r.feed_version or "", r.filename or "", r.loaded_date)
    console.print(tbl)
    return 0


def _cmd_delete(conn: sqlite3.Connection, args: argparse.Namespace, s: Settings) -> int:
    if get_feed(conn, args.namespace) is None:
        console.print(f"[red]unknown namespace[/red] {args.namespace}")
        return 1
    dropped = delete_namespace(conn, Namespace(args.namespace))
    console.print(_summary([("namespace", args.namespace), ("tables dropped", str(dropped))], ok=True))
    return 0


_COMMANDS: dict[str, Callable[[sqlite3.Connection, argparse.Namespace, Settings], int]] = {
    "load": _cmd_load,
    "validate": _cmd_validate,
    "run": _cmd_run,
    "export": _cmd_export,
    "feeds": _cmd_feeds,
    "delete": _cmd_delete,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    s = load_settings()
    configure_logging(level="DEBUG" if args.log_sql else s.log_level, fmt=s.log_format)
    database = Path(args.database) if args.database else Path(s.database)
    bind(command=args.cmd)

    console.print(
        Panel.fit(
            Text(f"gtfs-feed-etl - {args.cmd}\ndatabase={database}", style="bold"),
            title="Run",
        )
    )

    conn = connect(database, log_sql=args.log_sql or s.log_sql)
    try:
        return _COMMANDS[args.cmd](conn, args, s)
    except Exception as e:
        log.exception("Command failed", command=args.cmd)
        console.print(f"[red]{type(e).__name__}[/red]: {e}")
        return 1
    finally:
        conn.close()
        clear_bindings()


if __name__ == "__main__":
    raise SystemExit(main())
