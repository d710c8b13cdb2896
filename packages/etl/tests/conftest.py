from __future__ import annotations

import sqlite3
import zipfile
from pathlib import Path
from typing import Callable, Iterator

import pytest
from gtfs_feed_etl.storage import connect

FeedFactory = Callable[..., Path]

BASIC_FEED: dict[str, str] = {
    "agency.txt": (
        "agency_id,agency_name,agency_url,agency_timezone\n"
        "A1,Metro Transit,https://example.com,America/New_York\n"
    ),
    "calendar.txt": (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20200106,20200110\n"
    ),
    "routes.txt": (
        "route_id,agency_id,route_short_name,route_long_name,route_type\n"
        "R1,A1,10,Downtown Loop,3\n"
    ),
    "stops.txt": (
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "S1,Alpha,40.0,-75.0\n"
        "S2,Beta,40.01,-75.0\n"
        "S3,Gamma,40.02,-75.0\n"
    ),
    "trips.txt": (
        "route_id,service_id,trip_id,direction_id\n"
        "R1,WK,T1,0\n"
        "R1,WK,T2,0\n"
    ),
    "stop_times.txt": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:03:10,08:03:30,S2,2\n"
        "T1,08:06:15,08:06:15,S3,3\n"
        "T2,09:00:00,09:00:00,S1,1\n"
        "T2,09:03:10,09:03:30,S2,2\n"
        "T2,09:06:15,09:06:15,S3,3\n"
    ),
}


@pytest.fixture()
def make_feed(tmp_path: Path) -> FeedFactory:
    """Write a GTFS zip from {file name: CSV text}; None drops a file."""

    def _make(overrides: dict[str, str | bytes | None] | None = None, *, base: dict[str, str] | None = None, name: str = "feed.zip") -> Path:
        files: dict[str, str | bytes | None] = dict(BASIC_FEED if base is None else base)
        files.update(overrides or {})
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for file_name, text in files.items():
                if text is not None:
                    zf.writestr(file_name, text)
        return path

    return _make


@pytest.fixture()
def conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    c = connect(tmp_path / "gtfs.sqlite")
    try:
        yield c
    finally:
        c.close()


def errors_of(c: sqlite3.Connection, namespace: str, error_type: str | None = None) -> list[dict]:
    sql = f'SELECT * FROM "{namespace}_errors"'
    params: tuple = ()
    if error_type is not None:
        sql += " WHERE error_type = ?"
        params = (error_type,)
    cur = c.execute(sql + " ORDER BY error_id;", params)
    names = [d[0] for d in cur.description]
    return [dict(zip(names, r)) for r in cur.fetchall()]


@pytest.fixture()
def read_errors() -> Callable[..., list[dict]]:
    return errors_of
