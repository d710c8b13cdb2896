from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterator, Optional

from gtfs_feed_etl.core import (
    Timer,
    bind,
    digest_file,
    fatal_error_from_exc,
    get_logger,
    new_namespace_id,
    utc_now_iso,
)
from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue
from gtfs_feed_etl.schema.conditions import RowContext
from gtfs_feed_etl.schema.fields import Field
from gtfs_feed_etl.schema.table import Table
from gtfs_feed_etl.schema.tables import LOAD_ORDER
from gtfs_feed_etl.storage import Namespace, chunked, register_feed, transaction

from .config import LoadConfig
from .reference_tracker import ReferenceTracker
from .results import FeedLoadResult, TableLoadResult
from .source import REPLACEMENT_CHAR, FeedSource, TableEntry

log = get_logger(__name__)


def load_feed(
    path: Path,
    conn: sqlite3.Connection,
    *,
    config: Optional[LoadConfig] = None,
) -> FeedLoadResult:
    """
    Load every GTFS table of the archive at `path` into a fresh namespace.

    Problems with the data are stored in the namespace's errors table. A
    failure inside one table is recorded on that table's result and the
    remaining tables still load.
    """
    cfg = config or LoadConfig()
    namespace = Namespace(new_namespace_id())
    bind(namespace=namespace.id)
    result = FeedLoadResult(namespace=namespace.id, filename=str(path))
    log.info("Loading feed", path=str(path))

    with Timer() as timer:
        try:
            source = FeedSource(path)
        except Exception as e:
            log.error("Cannot open feed", error=str(e))
            result.fatal_exception = str(fatal_error_from_exc(e))
            source = None

        if source is not None:
            with source:
                _load_all(source, path, conn, namespace, cfg, result)

    result.load_time_ms = int(timer.duration_ms or 0)
    result.completion_time = utc_now_iso()
    log.info(
        "Feed loaded",
        errors=result.error_count,
        duration_ms=result.load_time_ms,
        fatal=result.fatal_exception,
    )
    return result


def _load_all(
    source: FeedSource,
    path: Path,
    conn: sqlite3.Connection,
    namespace: Namespace,
    cfg: LoadConfig,
    result: FeedLoadResult,
) -> None:
    try:
        feed_info = source.read_table("feed_info.txt")
        first = feed_info[0] if feed_info else {}
        with transaction(conn):
            register_feed(
                conn,
                namespace,
                digest=digest_file(path),
                filename=path.name,
                feed_id=first.get("feed_id") or None,
                feed_version=first.get("feed_version") or None,
            )
            errors = ErrorStorage(conn, namespace, batch_size=cfg.insert_batch_size)
    except Exception as e:
        log.exception("Feed registration failed")
        result.fatal_exception = str(fatal_error_from_exc(e))
        return

    tracker = ReferenceTracker()
    for table in LOAD_ORDER:
        result.tables[table.name] = _load_table_guarded(
            source, conn, namespace, table, tracker, errors, cfg
        )
    errors.flush()
    result.error_count = errors.error_count


def _load_table_guarded(
    source: FeedSource,
    conn: sqlite3.Connection,
    namespace: Namespace,
    table: Table,
    tracker: ReferenceTracker,
    errors: ErrorStorage,
    cfg: LoadConfig,
) -> TableLoadResult:
    mark = errors.mark()
    tracker.checkpoint()
    table_result = TableLoadResult()
    try:
        with transaction(conn):
            _load_table(source, conn, namespace, table, tracker, errors, cfg, table_result)
            errors.flush()
    except Exception as e:
        errors.reset_to(mark)
        # Forget the keys of the rolled-back rows.
        tracker.restore()
        fatal = fatal_error_from_exc(e)
        log.error("Table load failed", table=table.name, error_type=fatal.exc_type, message=fatal.message)
        log.exception("Table load failed (traceback)", table=table.name)
        table_result.fatal_exception = str(fatal)
    table_result.error_count = errors.error_count - mark
    return table_result


def _load_table(
    source: FeedSource,
    conn: sqlite3.Connection,
    namespace: Namespace,
    table: Table,
    tracker: ReferenceTracker,
    errors: ErrorStorage,
    cfg: LoadConfig,
    table_result: TableLoadResult,
) -> None:
    entry = source.locate(table.file_name)
    if entry is None:
        if table.is_required:
            errors.store(FeedIssue(ErrorType.MISSING_TABLE, entity_type=table.name, bad_value=table.file_name))
        # Empty table with the declared columns, so readers can still query it.
        conn.execute(table.create_sql(namespace, table.fields))
        return

    log.info("Loading table", table=table.name, file=entry.info.filename)
    table_result.file_size = entry.file_size
    if entry.in_subdirectory:
        errors.store(
            FeedIssue(ErrorType.TABLE_IN_SUBDIRECTORY, entity_type=table.name, bad_value=entry.info.filename)
        )

    rows = source.rows(entry)
    header = next(rows, None)
    if not header or all(not h.strip() for h in header):
        errors.store(FeedIssue(ErrorType.TABLE_MISSING_COLUMN_HEADERS, entity_type=table.name))
        conn.execute(table.create_sql(namespace, table.fields))
        return

    fields, header_issues = table.fields_from_headers(header)
    errors.store_all(header_issues)
    present = [f for f in fields if f is not None]
    conn.execute(table.create_sql(namespace, present))

    insert_sql = table.insert_sql(namespace, present)
    converted = _convert_rows(rows, header, fields, table, tracker, errors, cfg)
    row_count = 0
    for batch in chunked(converted, cfg.insert_batch_size):
        conn.executemany(insert_sql, batch)
        row_count += len(batch)
    table_result.row_count = row_count

    if row_count == 0 and table.is_required:
        errors.store(FeedIssue(ErrorType.REQUIRED_TABLE_EMPTY, entity_type=table.name))

    if cfg.create_indexes:
        for stmt in table.index_sql(namespace, (f.name for f in present)):
            conn.execute(stmt)

    log.info("Table loaded", table=table.name, rows=row_count)


def _convert_rows(
    rows: Iterator[list[str]],
    header: list[str],
    fields: list[Optional[Field]],
    table: Table,
    tracker: ReferenceTracker,
    errors: ErrorStorage,
    cfg: LoadConfig,
) -> Iterator[tuple[Any, ...]]:
    """
    Convert raw CSV records to insert tuples, recording every problem found.

    Header is line 1. Rows with the wrong number of fields are skipped; all
    other rows are kept, with None for cells that failed conversion.
    """
    n_columns = len(header)
    key_index = _column_index(fields, table.key_field.name)
    exception_index = (
        _column_index(fields, "exception_type") if table.name == "calendar_dates" else None
    )
    # Conditions run even when their own column is absent from the file.
    conditional = [f for f in table.fields if f.conditions]

    for line_number, record in enumerate(rows, start=2):
        if line_number % cfg.progress_interval == 0:
            log.info("Loading progress", table=table.name, lines=line_number)
        if not record:
            continue
        key_value = record[key_index] if key_index is not None and key_index < len(record) else None
        if len(record) != n_columns:
            errors.store(
                FeedIssue(
                    ErrorType.WRONG_NUMBER_OF_FIELDS,
                    entity_type=table.name,
                    line_number=line_number,
                    entity_id=key_value,
                    bad_value=f"expected={n_columns}; found={len(record)}",
                )
            )
            continue

        tracker.record_row(table.name, key_value)

        # Rows adding service may name services that only exist in calendar_dates.
        adds_service = exception_index is not None and record[exception_index].strip() == "1"

        values: list[Any] = [line_number]
        for column, field in enumerate(fields):
            if field is None:
                continue
            raw = record[column]
            if REPLACEMENT_CHAR in raw:
                errors.store(
                    FeedIssue(
                        ErrorType.ILLEGAL_FIELD_VALUE,
                        entity_type=table.name,
                        line_number=line_number,
                        entity_id=key_value,
                        bad_value=raw,
                    )
                )
            for issue in tracker.check_references_and_uniqueness(
                key_value, line_number, field, raw, table
            ):
                if adds_service and issue.error_type == ErrorType.REFERENTIAL_INTEGRITY:
                    continue
                errors.store(issue)

            if raw == "":
                if field.is_required and not field.empty_value_permitted:
                    errors.store(
                        FeedIssue(
                            ErrorType.MISSING_FIELD,
                            entity_type=table.name,
                            line_number=line_number,
                            entity_id=key_value,
                            bad_value=field.name,
                        )
                    )
                values.append(None)
                continue

            converted = field.convert(raw)
            for issue in converted.issues:
                errors.store(
                    FeedIssue(
                        issue.error_type,
                        entity_type=table.name,
                        line_number=line_number,
                        entity_id=key_value,
                        bad_value=issue.bad_value,
                    )
                )
            values.append(converted.value)

        if conditional:
            row = RowContext(
                table_name=table.name,
                line_number=line_number,
                entity_id=key_value,
                values={f.name: record[i] for i, f in enumerate(fields) if f is not None},
                key_values=tracker.key_values,
            )
            for field in conditional:
                for condition in field.conditions:
                    errors.store_all(condition.check(field.name, row))
        yield tuple(values)


def _column_index(fields: list[Optional[Field]], name: str) -> Optional[int]:
    for i, f in enumerate(fields):
        if f is not None and f.name == name:
            return i
    return None
