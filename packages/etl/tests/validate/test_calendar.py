from __future__ import annotations

from datetime import date

from gtfs_feed_etl.validate import BlockInterval, expand_service_dates, find_block_overlaps
from gtfs_feed_etl.validate.calendar import calendar_active_dates, has_days_of_week


def _calendar(service_id: str, days: str, start: str, end: str) -> dict:
    names = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
    row = {name: int(flag) for name, flag in zip(names, days)}
    row.update(service_id=service_id, start_date=start, end_date=end)
    return row


def test_weekly_pattern_minus_removed_date() -> None:
    # Monday, Wednesday, Friday; 2020-01-06 is a Monday.
    mwf = _calendar("MWF", "1010100", "20200106", "20200110")
    removed = {"service_id": "MWF", "date": "20200108", "exception_type": 2}
    active = expand_service_dates([mwf], [removed])
    assert active == {"MWF": {date(2020, 1, 6), date(2020, 1, 10)}}


def test_added_dates_without_calendar() -> None:
    added = [
        {"service_id": "HOL", "date": "20201225", "exception_type": 1},
        {"service_id": "HOL", "date": "20201226", "exception_type": 1},
    ]
    active = expand_service_dates([], added)
    assert active == {"HOL": {date(2020, 12, 25), date(2020, 12, 26)}}


def test_days_of_week() -> None:
    assert has_days_of_week(_calendar("A", "0000001", "20200101", "20200131"))
    never = _calendar("B", "0000000", "20200101", "20200131")
    assert not has_days_of_week(never)
    assert calendar_active_dates(never) == set()


def _interval(trip_id: str, service_id: str, start: int, end: int, block_id: str = "B1") -> BlockInterval:
    return BlockInterval(block_id=block_id, trip_id=trip_id, service_id=service_id, start=start, end=end)


def test_block_overlap_same_service() -> None:
    a = _interval("T1", "WK", 8 * 3600, 9 * 3600)
    b = _interval("T2", "WK", 8 * 3600 + 1800, 10 * 3600)
    c = _interval("T3", "WK", 9 * 3600, 10 * 3600)
    pairs = find_block_overlaps([b, a], {"WK": {date(2020, 1, 6)}})
    assert [(x.trip_id, y.trip_id) for x, y in pairs] == [("T1", "T2")]
    # Touching intervals do not overlap.
    assert find_block_overlaps([a, c], {}) == []


def test_block_overlap_needs_shared_day() -> None:
    a = _interval("T1", "WKDAY", 8 * 3600, 9 * 3600)
    b = _interval("T2", "SAT", 8 * 3600, 9 * 3600)
    disjoint = {"WKDAY": {date(2020, 1, 6)}, "SAT": {date(2020, 1, 11)}}
    assert find_block_overlaps([a, b], disjoint) == []

    shared = {"WKDAY": {date(2020, 1, 6)}, "SAT": {date(2020, 1, 6), date(2020, 1, 11)}}
    pairs = find_block_overlaps([a, b], shared)
    assert [(x.trip_id, y.trip_id) for x, y in pairs] == [("T1", "T2")]


def test_blocks_are_independent() -> None:
    a = _interval("T1", "WK", 0, 100, block_id="B1")
    b = _interval("T2", "WK", 50, 150, block_id="B2")
    assert find_block_overlaps([a, b], {"WK": {date(2020, 1, 6)}}) == []
