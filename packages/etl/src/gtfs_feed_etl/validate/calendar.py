"""
Service calendar expansion and block overlap detection.

Pure functions over plain rows so they can be exercised without a database.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Mapping, Optional

from gtfs_feed_etl.schema.fields import parse_date

WEEKDAY_FIELDS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

EXCEPTION_ADDED = 1
EXCEPTION_REMOVED = 2


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if value is None:
        return None
    return parse_date(str(value))


def date_range(first: date, last: date) -> Iterator[date]:
    d = first
    while d <= last:
        yield d
        d += timedelta(days=1)


def has_days_of_week(calendar: Mapping[str, Any]) -> bool:
    return any((calendar.get(day) or 0) > 0 for day in WEEKDAY_FIELDS)


def calendar_active_dates(calendar: Mapping[str, Any]) -> set[date]:
    start = _as_date(calendar.get("start_date"))
    end = _as_date(calendar.get("end_date"))
    if start is None or end is None:
        return set()
    flags = [(calendar.get(day) or 0) > 0 for day in WEEKDAY_FIELDS]
    return {d for d in date_range(start, end) if flags[d.weekday()]}


def expand_service_dates(
    calendars: Iterable[Mapping[str, Any]],
    calendar_dates: Iterable[Mapping[str, Any]],
) -> dict[str, set[date]]:
    """
    Active dates per service id: weekly patterns first, then single-date
    exceptions adding or removing service.
    """
    active: dict[str, set[date]] = defaultdict(set)
    for cal in calendars:
        service_id = cal.get("service_id")
        if service_id is None:
            continue
        active[service_id] |= calendar_active_dates(cal)

    for exc in calendar_dates:
        service_id = exc.get("service_id")
        d = _as_date(exc.get("date"))
        if service_id is None or d is None:
            continue
        dates = active[service_id]
        kind = exc.get("exception_type")
        if kind == EXCEPTION_ADDED:
            dates.add(d)
        elif kind == EXCEPTION_REMOVED:
            dates.discard(d)
    return dict(active)


@dataclass(frozen=True, slots=True)
class BlockInterval:
    block_id: str
    trip_id: str
    service_id: Optional[str]
    start: int
    end: int

    def overlaps(self, other: "BlockInterval") -> bool:
        return not (self.end <= other.start or other.end <= self.start)


def find_block_overlaps(
    intervals: Iterable[BlockInterval],
    dates_by_service: Mapping[str, set[date]],
) -> list[tuple[BlockInterval, BlockInterval]]:
    """
    Pairs of trips in one block whose time intervals overlap on a shared
    service day. Each pair is reported once, earlier start first.
    """
    by_block: dict[str, list[BlockInterval]] = defaultdict(list)
    for interval in intervals:
        by_block[interval.block_id].append(interval)

    overlaps: list[tuple[BlockInterval, BlockInterval]] = []
    for block_id in sorted(by_block):
        overlaps.extend(_overlaps_in_block(by_block[block_id], dates_by_service))
    return overlaps


def _overlaps_in_block(
    intervals: list[BlockInterval],
    dates_by_service: Mapping[str, set[date]],
) -> Iterator[tuple[BlockInterval, BlockInterval]]:
    # Pairwise; blocks hold a handful of trips.
    ordered = sorted(intervals, key=lambda i: i.start)
    for n, first in enumerate(ordered[:-1]):
        for second in ordered[n + 1 :]:
            if not first.overlaps(second):
                continue
            if first.service_id == second.service_id:
                yield first, second
                continue
            dates1 = dates_by_service.get(first.service_id or "", set())
            dates2 = dates_by_service.get(second.service_id or "", set())
            if dates1 & dates2:
                yield first, second
