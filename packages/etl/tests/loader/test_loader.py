from __future__ import annotations

import sqlite3
import zipfile
from pathlib import Path

import pytest
from gtfs_feed_etl.loader import LoadConfig, load_feed
from gtfs_feed_etl.schema.table import Table
from gtfs_feed_etl.storage import Namespace, get_feed, table_columns, table_exists


def _count(conn: sqlite3.Connection, ns: str, table: str) -> int:
    return conn.execute(f'SELECT COUNT(*) FROM "{ns}_{table}";').fetchone()[0]


def test_load_basic_feed(make_feed, conn, read_errors) -> None:
    result = load_feed(make_feed(), conn)
    assert result.fatal_exception is None
    assert result.ok
    ns = result.namespace
    assert ns is not None and len(ns) == 22

    assert result.tables["stops"].row_count == 3
    assert result.tables["stop_times"].row_count == 6
    assert result.tables["stop_times"].file_size > 0
    assert read_errors(conn, ns) == []
    assert result.error_count == 0

    row = conn.execute(
        f'SELECT csv_line, arrival_time, departure_time FROM "{ns}_stop_times" WHERE trip_id = ? AND stop_sequence = 2;',
        ("T1",),
    ).fetchone()
    assert row == (3, 8 * 3600 + 190, 8 * 3600 + 210)

    record = get_feed(conn, ns)
    assert record is not None
    assert record.filename == "feed.zip"
    assert record.md5 is not None and not record.deleted


def test_missing_tables_still_created(make_feed, conn, read_errors) -> None:
    result = load_feed(make_feed({"agency.txt": None}), conn)
    ns = result.namespace
    missing = read_errors(conn, ns, "MISSING_TABLE")
    assert [e["entity_type"] for e in missing] == ["agency"]
    # Optional and missing tables exist with their declared columns.
    for table in ("agency", "shapes", "frequencies"):
        assert table_exists(conn, f"{ns}_{table}")
    assert "headway_secs" in table_columns(conn, f"{ns}_frequencies")


def test_duplicate_ids_keep_both_rows(make_feed, conn, read_errors) -> None:
    stops = "stop_id,stop_name,stop_lat,stop_lon\nS1,Alpha,40.0,-75.0\nS1,Again,40.0,-75.0\nS2,Beta,40.01,-75.0\nS3,Gamma,40.02,-75.0\n"
    result = load_feed(make_feed({"stops.txt": stops}), conn)
    ns = result.namespace
    dup = read_errors(conn, ns, "DUPLICATE_ID")
    assert [(e["entity_type"], e["line_number"], e["bad_value"]) for e in dup] == [("stops", 3, "stop_id:S1")]
    assert _count(conn, ns, "stops") == 4


def test_referential_integrity_per_row(make_feed, conn, read_errors) -> None:
    trips = "route_id,service_id,trip_id\nR1,WK,T1\nR9,WK,T2\nR9,WK,T3\n"
    result = load_feed(make_feed({"trips.txt": trips}), conn)
    ns = result.namespace
    bad = read_errors(conn, ns, "REFERENTIAL_INTEGRITY")
    assert [(e["entity_id"], e["line_number"], e["bad_value"]) for e in bad] == [
        ("T2", 3, "route_id:R9"),
        ("T3", 4, "route_id:R9"),
    ]
    assert _count(conn, ns, "trips") == 3


def test_wrong_number_of_fields_skips_row(make_feed, conn, read_errors) -> None:
    stops = "stop_id,stop_name,stop_lat,stop_lon\nS1,Alpha,40.0,-75.0\nS2,Beta,40.01\nS3,Gamma,40.02,-75.0\n"
    result = load_feed(make_feed({"stops.txt": stops}), conn)
    ns = result.namespace
    wrong = read_errors(conn, ns, "WRONG_NUMBER_OF_FIELDS")
    assert [(e["line_number"], e["entity_id"], e["bad_value"]) for e in wrong] == [(3, "S2", "expected=4; found=3")]
    assert result.tables["stops"].row_count == 2


def test_bad_values_are_null_and_reported(make_feed, conn, read_errors) -> None:
    routes = "route_id,agency_id,route_short_name,route_long_name,route_type\nR1,A1,10,Downtown Loop,bus\n"
    result = load_feed(make_feed({"routes.txt": routes}), conn)
    ns = result.namespace
    parsing = read_errors(conn, ns, "NUMBER_PARSING")
    assert [(e["entity_id"], e["bad_value"]) for e in parsing] == [("R1", "bus")]
    assert conn.execute(f'SELECT route_type FROM "{ns}_routes";').fetchone() == (None,)


def test_missing_required_value(make_feed, conn, read_errors) -> None:
    routes = "route_id,agency_id,route_short_name,route_long_name,route_type\nR1,A1,10,Downtown Loop,\n"
    ns = load_feed(make_feed({"routes.txt": routes}), conn).namespace
    missing = read_errors(conn, ns, "MISSING_FIELD")
    assert [(e["entity_id"], e["bad_value"]) for e in missing] == [("R1", "route_type")]


def test_calendar_dates_added_service_without_calendar(make_feed, conn, read_errors) -> None:
    calendar_dates = "service_id,date,exception_type\nHOL,20200101,1\nGONE,20200102,2\n"
    trips = "route_id,service_id,trip_id\nR1,WK,T1\nR1,HOL,T2\n"
    ns = load_feed(make_feed({"calendar_dates.txt": calendar_dates, "trips.txt": trips}), conn).namespace
    bad = read_errors(conn, ns, "REFERENTIAL_INTEGRITY")
    # Only the removal row for a service nobody defined is reported.
    assert [(e["entity_type"], e["bad_value"]) for e in bad] == [("calendar_dates", "service_id:GONE")]


def test_table_in_subdirectory_and_bom(tmp_path: Path, make_feed, conn, read_errors) -> None:
    path = make_feed()
    nested = tmp_path / "nested.zip"
    with zipfile.ZipFile(path) as src, zipfile.ZipFile(nested, "w") as dst:
        for info in src.infolist():
            data = src.read(info)
            if info.filename == "stops.txt":
                dst.writestr("gtfs/stops.txt", b"\xef\xbb\xbf" + data)
            else:
                dst.writestr(info.filename, data)
    result = load_feed(nested, conn)
    ns = result.namespace
    sub = read_errors(conn, ns, "TABLE_IN_SUBDIRECTORY")
    assert [(e["entity_type"], e["bad_value"]) for e in sub] == [("stops", "gtfs/stops.txt")]
    assert result.tables["stops"].row_count == 3
    assert "stop_id" in table_columns(conn, f"{ns}_stops")


def test_required_table_empty(make_feed, conn, read_errors) -> None:
    ns = load_feed(make_feed({"routes.txt": "route_id,route_type\n"}), conn).namespace
    assert [e["entity_type"] for e in read_errors(conn, ns, "REQUIRED_TABLE_EMPTY")] == ["routes"]


def test_unreadable_archive_is_fatal(tmp_path: Path, conn) -> None:
    bogus = tmp_path / "bogus.zip"
    bogus.write_text("not a zip")
    result = load_feed(bogus, conn)
    assert result.fatal_exception is not None
    assert result.fatal_exception.startswith("InputDataError: ")
    assert not result.ok


def test_small_batches_load_everything(make_feed, conn) -> None:
    result = load_feed(make_feed(), conn, config=LoadConfig(insert_batch_size=1, create_indexes=False))
    assert result.tables["stop_times"].row_count == 6
    ns = Namespace(result.namespace)
    assert conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'index' AND tbl_name = ?;",
        (ns.qualified("stop_times"),),
    ).fetchone() == (0,)


def test_invalid_utf8_flags_the_cell_and_keeps_the_table(make_feed, conn, read_errors) -> None:
    trips = b"route_id,service_id,trip_id,direction_id\nR1,WK,T1,0\nR1,WK,T2,0\nR1,WK,T\xff3,0\n"
    result = load_feed(make_feed({"trips.txt": trips}), conn)
    ns = result.namespace
    assert result.tables["trips"].fatal_exception is None
    assert result.tables["trips"].row_count == 3
    illegal = read_errors(conn, ns, "ILLEGAL_FIELD_VALUE")
    assert [(e["entity_type"], e["line_number"], e["entity_id"]) for e in illegal] == [
        ("trips", 4, "T\ufffd3")
    ]


def test_failed_table_leaves_no_keys_behind(make_feed, conn, read_errors, monkeypatch: pytest.MonkeyPatch) -> None:
    index_sql = Table.index_sql

    def failing(self: Table, ns: Namespace, present):
        if self.name == "trips":
            raise sqlite3.OperationalError("disk I/O error")
        return index_sql(self, ns, present)

    monkeypatch.setattr(Table, "index_sql", failing)
    result = load_feed(make_feed(), conn)
    ns = result.namespace

    trips = result.tables["trips"]
    assert trips.fatal_exception == "OperationalError: disk I/O error"
    assert not table_exists(conn, f"{ns}_trips")
    assert not result.ok
    # Sibling tables still load.
    assert result.tables["routes"].fatal_exception is None
    assert result.tables["stops"].row_count == 3
    assert result.tables["stop_times"].row_count == 6

    bad = [e for e in read_errors(conn, ns, "REFERENTIAL_INTEGRITY") if e["entity_type"] == "stop_times"]
    assert sorted(e["bad_value"] for e in bad) == ["trip_id:T1"] * 3 + ["trip_id:T2"] * 3


def test_agency_id_required_with_several_agencies(make_feed, conn, read_errors) -> None:
    agency = (
        "agency_id,agency_name,agency_url,agency_timezone\n"
        "A1,Metro Transit,https://example.com,America/New_York\n"
        ",Harbour Ferries,https://example.org,America/New_York\n"
    )
    routes = (
        "route_id,agency_id,route_short_name,route_long_name,route_type\n"
        "R1,A1,10,Downtown Loop,3\n"
        "R2,,20,Harbour Loop,4\n"
    )
    ns = load_feed(make_feed({"agency.txt": agency, "routes.txt": routes}), conn).namespace
    missing = read_errors(conn, ns, "AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS")
    assert [(e["entity_type"], e["line_number"], e["bad_value"]) for e in missing] == [
        ("agency", 3, "agency_id"),
        ("routes", 3, "agency_id"),
    ]


def test_single_agency_may_omit_agency_id(make_feed, conn, read_errors) -> None:
    agency = "agency_name,agency_url,agency_timezone\nMetro Transit,https://example.com,America/New_York\n"
    routes = "route_id,route_short_name,route_long_name,route_type\nR1,10,Downtown Loop,3\n"
    ns = load_feed(make_feed({"agency.txt": agency, "routes.txt": routes}), conn).namespace
    assert read_errors(conn, ns, "AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS") == []


def test_location_type_requires_parent_station(make_feed, conn, read_errors) -> None:
    stops = (
        "stop_id,stop_name,stop_lat,stop_lon,location_type\n"
        "S1,Alpha,40.0,-75.0,0\n"
        "S2,Beta,40.01,-75.0,\n"
        "S3,Gamma,40.02,-75.0,\n"
        "E1,Alpha Entrance,40.0,-75.001,2\n"
    )
    ns = load_feed(make_feed({"stops.txt": stops}), conn).namespace
    required = read_errors(conn, ns, "CONDITIONALLY_REQUIRED")
    assert [(e["entity_id"], e["bad_value"]) for e in required] == [
        ("E1", "parent_station is required when location_type value is between 2 and 4.")
    ]


def test_translation_of_stop_times_needs_sub_id(make_feed, conn, read_errors) -> None:
    translations = (
        "table_name,field_name,language,translation,record_id,record_sub_id\n"
        "stops,stop_name,fr,Alpha FR,S1,\n"
        "stop_times,stop_headsign,fr,Centre,T1,\n"
    )
    ns = load_feed(make_feed({"translations.txt": translations}), conn).namespace
    required = read_errors(conn, ns, "CONDITIONALLY_REQUIRED")
    assert [(e["line_number"], e["bad_value"]) for e in required] == [
        (3, "record_sub_id is required when table_name is stop_times.")
    ]
