from __future__ import annotations

import io
import sqlite3
import zipfile
from pathlib import Path

import polars as pl

from gtfs_feed_etl.core import (
    ExportError,
    atomic_replace,
    get_logger,
    make_tmp_path_for,
    safe_unlink,
)
from gtfs_feed_etl.schema import ID_COLUMN, LINE_COLUMN, LOAD_ORDER, Field, Requirement, Table
from gtfs_feed_etl.storage import Namespace, quote_ident, table_columns, table_exists

log = get_logger(__name__)

_FETCH_ROWS = 100_000


def export_columns(table: Table, stored: list[str]) -> list[Field]:
    """
    Columns written for a table: declared GTFS fields in declared order, then
    any extra columns carried over from the source file in storage order.
    """
    present = set(stored)
    declared = [
        f
        for f in table.fields
        if f.name in present and f.requirement != Requirement.EDITOR
    ]
    extra = [
        table.field_for_name(name)
        for name in stored
        if name not in (ID_COLUMN, LINE_COLUMN) and not table.has_field(name)
    ]
    return declared + extra


def table_frame(conn: sqlite3.Connection, ns: Namespace, table: Table) -> pl.DataFrame:
    stored = table_columns(conn, ns.qualified(table.name))
    fields = export_columns(table, stored)
    schema = [(f.name, pl.Utf8) for f in fields]
    if not fields:
        return pl.DataFrame(schema=schema)

    cols = ", ".join(quote_ident(f.name) for f in fields)
    cur = conn.execute(
        f"SELECT {cols} FROM {ns.quoted(table.name)} ORDER BY {ID_COLUMN};"
    )
    chunks: list[pl.DataFrame] = []
    while True:
        rows = cur.fetchmany(_FETCH_ROWS)
        if not rows:
            break
        # Empty output is written as null so the CSV cell stays unquoted.
        text_rows = [
            tuple(f.to_text(v) or None for f, v in zip(fields, row)) for row in rows
        ]
        chunks.append(pl.DataFrame(text_rows, schema=schema, orient="row"))
    return pl.concat(chunks, how="vertical") if chunks else pl.DataFrame(schema=schema)


def export_feed(
    conn: sqlite3.Connection, namespace: Namespace, out_path: Path
) -> dict[str, int]:
    """
    Write every loaded GTFS table of a namespace to a zip of CSV files.

    Tables that are absent or empty are skipped. The archive is written to a
    temp file beside out_path and renamed into place once complete.
    """
    out_path = Path(out_path)
    tmp_path = make_tmp_path_for(out_path)
    written: dict[str, int] = {}
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for table in LOAD_ORDER:
                if not table_exists(conn, namespace.qualified(table.name)):
                    continue
                df = table_frame(conn, namespace, table)
                if df.height == 0:
                    continue
                buf = io.BytesIO()
                df.write_csv(buf)
                zf.writestr(table.file_name, buf.getvalue())
                written[table.name] = df.height
                log.info("export.table", table=table.name, rows=df.height)
        atomic_replace(tmp_path, out_path)
    except (sqlite3.Error, OSError, pl.exceptions.PolarsError) as e:
        safe_unlink(tmp_path)
        raise ExportError(f"export of namespace {namespace.id} failed: {e}") from e
    except BaseException:
        safe_unlink(tmp_path)
        raise

    log.info("export.done", path=str(out_path), tables=len(written))
    return written
