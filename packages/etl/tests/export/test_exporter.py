from __future__ import annotations

import csv
import io
import sqlite3
import zipfile
from pathlib import Path

from gtfs_feed_etl.export import export_feed
from gtfs_feed_etl.loader import load_feed
from gtfs_feed_etl.storage import Namespace
from gtfs_feed_etl.validate import validate_feed


def _read(zf: zipfile.ZipFile, name: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(zf.read(name).decode("utf-8"))))


def test_export_round_trip(make_feed, conn: sqlite3.Connection, tmp_path: Path) -> None:
    stops = (
        "stop_id,stop_name,stop_lat,stop_lon,my_extra\n"
        'S1,"Alpha, North",40.0,-75.0,x\n'
        "S2,Beta,40.01,-75.0,\n"
        "S3,Gamma,40.02,-75.0,z\n"
    )
    stop_times = (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,8:00:00,8:00:00,S1,1\n"
        "T1,08:03:10,08:03:30,S2,2\n"
        "T1,25:06:15,25:06:15,S3,3\n"
    )
    trips = "route_id,service_id,trip_id,direction_id\nR1,WK,T1,0\n"
    ns = Namespace(load_feed(make_feed({"stops.txt": stops, "stop_times.txt": stop_times, "trips.txt": trips}), conn).namespace)
    # Validation adds trips.pattern_id, which must not leak into the export.
    validate_feed(conn, ns)

    out = tmp_path / "exported" / "gtfs.zip"
    written = export_feed(conn, ns, out)
    assert written["stops"] == 3
    assert "shapes" not in written

    with zipfile.ZipFile(out) as zf:
        names = set(zf.namelist())
        assert {"agency.txt", "calendar.txt", "routes.txt", "stops.txt", "trips.txt", "stop_times.txt"} == names

        stop_rows = _read(zf, "stops.txt")
        assert stop_rows[0] == ["stop_id", "stop_name", "stop_lat", "stop_lon", "my_extra"]
        assert stop_rows[1] == ["S1", "Alpha, North", "40", "-75", "x"]
        assert stop_rows[2] == ["S2", "Beta", "40.01", "-75", ""]

        times = _read(zf, "stop_times.txt")
        assert times[0] == ["trip_id", "stop_sequence", "stop_id", "arrival_time", "departure_time"]
        assert times[1] == ["T1", "1", "S1", "08:00:00", "08:00:00"]
        assert times[3] == ["T1", "3", "S3", "25:06:15", "25:06:15"]

        assert "pattern_id" not in _read(zf, "trips.txt")[0]

    # The exported archive loads back cleanly.
    reloaded = load_feed(out, conn)
    assert reloaded.fatal_exception is None
    assert reloaded.tables["stop_times"].row_count == 3
    assert reloaded.tables["stops"].row_count == 3
