from __future__ import annotations

from datetime import date

from gtfs_feed_etl.loader import load_feed
from gtfs_feed_etl.storage import Namespace, table_exists
from gtfs_feed_etl.validate import ValidationResult, validate_feed
from gtfs_feed_etl.validate.driver import fix_missing_times


def _load_and_validate(make_feed, conn, overrides=None, **kwargs) -> tuple[Namespace, ValidationResult]:
    loaded = load_feed(make_feed(overrides), conn)
    assert loaded.fatal_exception is None
    ns = Namespace(loaded.namespace)
    return ns, validate_feed(conn, ns, **kwargs)


def test_clean_feed_end_to_end(make_feed, conn, read_errors) -> None:
    ns, result = _load_and_validate(make_feed, conn)
    assert result.fatal_exception is None
    assert read_errors(conn, ns.id) == []
    assert result.error_count == 0

    assert result.first_calendar_date == date(2020, 1, 6)
    assert result.last_calendar_date == date(2020, 1, 10)
    # Two trips of 375 s each on every weekday, all bus.
    assert result.daily_bus_seconds == [750] * 5
    assert result.daily_total_seconds == [750] * 5
    assert result.daily_rail_seconds == [0] * 5
    assert result.daily_trip_counts == [2] * 5
    assert result.full_bounds.min_lat == 40.0
    assert result.full_bounds.max_lat == 40.02

    patterns = conn.execute(f"SELECT pattern_id, route_id, name FROM {ns.quoted('patterns')};").fetchall()
    assert patterns == [("1", "R1", "3 stops from Alpha to Gamma (2 trips)")]
    trip_patterns = conn.execute(
        f"SELECT trip_id, pattern_id FROM {ns.quoted('trips')} ORDER BY trip_id;"
    ).fetchall()
    assert trip_patterns == [("T1", "1"), ("T2", "1")]
    stops = conn.execute(
        f"SELECT stop_sequence, stop_id, default_travel_time, default_dwell_time "
        f"FROM {ns.quoted('pattern_stops')} ORDER BY stop_sequence;"
    ).fetchall()
    assert stops == [(0, "S1", 0, 0), (1, "S2", 190, 20), (2, "S3", 165, 0)]

    for table in ("services", "service_dates", "service_durations"):
        assert table_exists(conn, ns.qualified(table))
    assert conn.execute(f"SELECT COUNT(*) FROM {ns.quoted('service_dates')};").fetchone() == (5,)


def test_trip_with_one_stop_time(make_feed, conn, read_errors) -> None:
    trips = "route_id,service_id,trip_id\nR1,WK,T1\nR1,WK,T2\nR1,WK,T3\n"
    stop_times = (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:03:10,08:03:30,S2,2\n"
        "T2,09:00:00,09:00:00,S1,1\n"
        "T2,09:03:10,09:03:30,S9,2\n"
    )
    ns, result = _load_and_validate(make_feed, conn, {"trips.txt": trips, "stop_times.txt": stop_times})
    too_few = read_errors(conn, ns.id, "TRIP_TOO_FEW_STOP_TIMES")
    assert [(e["entity_id"], e["bad_value"]) for e in too_few] == [("T2", "1")]
    # T2 never reached the trip validators and T3 has no stop times at all.
    empty = read_errors(conn, ns.id, "TRIP_EMPTY")
    assert [e["entity_id"] for e in empty] == ["T2", "T3"]
    assert [e["bad_value"] for e in read_errors(conn, ns.id, "STOP_UNUSED")] == ["S3"]


def test_block_overlap_reported(make_feed, conn, read_errors) -> None:
    trips = "route_id,service_id,trip_id,block_id\nR1,WK,T1,B1\nR1,WK,T2,B1\n"
    stop_times = (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:06:15,08:06:15,S3,2\n"
        "T2,08:05:00,08:05:00,S3,1\n"
        "T2,08:11:15,08:11:15,S1,2\n"
    )
    ns, _ = _load_and_validate(make_feed, conn, {"trips.txt": trips, "stop_times.txt": stop_times})
    overlaps = read_errors(conn, ns.id, "TRIP_OVERLAP_IN_BLOCK")
    assert [(e["entity_id"], e["bad_value"]) for e in overlaps] == [("T1", "T2")]


def test_service_problems(make_feed, conn, read_errors) -> None:
    calendar = (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20200106,20200110\n"
        "NONE,0,0,0,0,0,0,0,20200106,20200110\n"
    )
    ns, _ = _load_and_validate(make_feed, conn, {"calendar.txt": calendar})
    assert [e["entity_id"] for e in read_errors(conn, ns.id, "SERVICE_WITHOUT_DAYS_OF_WEEK")] == ["NONE"]
    assert [e["bad_value"] for e in read_errors(conn, ns.id, "SERVICE_NEVER_ACTIVE")] == ["NONE"]
    assert [e["bad_value"] for e in read_errors(conn, ns.id, "SERVICE_UNUSED")] == ["NONE"]



def test_date_without_service(make_feed, conn, read_errors) -> None:
    calendar = (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,0,1,0,0,0,0,20200106,20200108\n"
    )
    ns, result = _load_and_validate(make_feed, conn, {"calendar.txt": calendar})
    assert [e["bad_value"] for e in read_errors(conn, ns.id, "DATE_NO_SERVICE")] == ["20200107"]
    assert result.daily_bus_seconds == [750, 0, 750]
    assert result.daily_trip_counts == [2, 0, 2]


def test_trip_on_service_that_never_runs(make_feed, conn, read_errors) -> None:
    calendar = (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20200106,20200110\n"
        "NONE,0,0,0,0,0,0,0,20200106,20200110\n"
    )
    trips = "route_id,service_id,trip_id\nR1,WK,T1\nR1,WK,T2\nR1,NONE,T3\n"
    stop_times = (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:03:10,08:03:30,S2,2\n"
        "T2,09:00:00,09:00:00,S1,1\n"
        "T2,09:03:10,09:03:30,S2,2\n"
        "T3,10:00:00,10:00:00,S1,1\n"
        "T3,10:03:10,10:03:30,S2,2\n"
    )
    ns, _ = _load_and_validate(
        make_feed, conn, {"calendar.txt": calendar, "trips.txt": trips, "stop_times.txt": stop_times}
    )
    never = read_errors(conn, ns.id, "TRIP_NEVER_ACTIVE")
    assert [(e["entity_id"], e["line_number"]) for e in never] == [("T3", 4)]
    assert [e["bad_value"] for e in read_errors(conn, ns.id, "SERVICE_NEVER_ACTIVE")] == ["NONE"]
    assert read_errors(conn, ns.id, "SERVICE_UNUSED") == []


def test_failing_validator_is_isolated(make_feed, conn, read_errors) -> None:
    class Exploding:
        def __init__(self, feed, errors, config) -> None:
            self.calls = 0

        def validate_trip(self, trip, route, stop_times, stops) -> None:
            raise RuntimeError("boom")

        def complete(self, result) -> None:
            raise AssertionError("not reached after a failure")

    ns, result = _load_and_validate(make_feed, conn, trip_validators=[Exploding])
    assert result.fatal_exception is None
    failed = read_errors(conn, ns.id, "VALIDATOR_FAILED")
    assert [e["bad_value"] for e in failed] == ["Exploding:boom"]


def test_fix_missing_times() -> None:
    assert fix_missing_times({"arrival_time": None, "departure_time": 10}) == {"arrival_time": 10, "departure_time": 10}
    assert fix_missing_times({"arrival_time": 5, "departure_time": None}) == {"arrival_time": 5, "departure_time": 5}
    both = {"arrival_time": None, "departure_time": None}
    assert fix_missing_times(both) is both
