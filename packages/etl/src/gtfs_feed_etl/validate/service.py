from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Optional, Sequence

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue
from gtfs_feed_etl.schema.table import LINE_COLUMN
from gtfs_feed_etl.storage import chunked, transaction

from .base import feed_issue, issue_for
from .calendar import BlockInterval, date_range, expand_service_dates, find_block_overlaps, has_days_of_week
from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult

log = get_logger(__name__)

ROUTE_TYPE_TRAM = 0
ROUTE_TYPE_METRO = 1
ROUTE_TYPE_RAIL = 2
ROUTE_TYPE_BUS = 3


class ServiceValidator:
    """
    Merges calendars and calendar_dates into active dates per service, checks
    services and blocks against them, and writes the service summary tables.
    """

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.config = config
        self.block_intervals: list[BlockInterval] = []
        self.trip_ids_by_service: dict[str, set[str]] = defaultdict(set)
        self.duration_by_service: dict[str, dict[int, int]] = defaultdict(lambda: defaultdict(int))

    def validate_trip(
        self,
        trip: Row,
        route: Optional[Row],
        stop_times: Sequence[Row],
        stops: Sequence[Row],
    ) -> None:
        service_id = trip.get("service_id")
        if service_id is not None:
            self.trip_ids_by_service[service_id].add(trip["trip_id"])

        first_departure = stop_times[0].get("departure_time")
        last_arrival = stop_times[-1].get("arrival_time")
        if first_departure is None or last_arrival is None:
            return

        block_id = trip.get("block_id")
        if block_id:
            self.block_intervals.append(
                BlockInterval(
                    block_id=block_id,
                    trip_id=trip["trip_id"],
                    service_id=service_id,
                    start=first_departure,
                    end=last_arrival,
                )
            )

        duration = last_arrival - first_departure
        if duration <= 0 or service_id is None:
            return
        if route is not None and route.get("route_type") is not None:
            self.duration_by_service[service_id][route["route_type"]] += duration

    def complete(self, result: ValidationResult) -> None:
        dates_by_service = self._validate_services(result)
        self._validate_blocks(dates_by_service)

    def _validate_services(self, result: ValidationResult) -> dict[str, set[date]]:
        log.info("Merging calendars and calendar_dates")
        calendars = list(self.feed.rows("calendar"))
        for cal in calendars:
            if not has_days_of_week(cal):
                self.errors.store(issue_for("calendar", cal, ErrorType.SERVICE_WITHOUT_DAYS_OF_WEEK))

        dates_by_service = expand_service_dates(calendars, self.feed.rows("calendar_dates"))
        service_ids = sorted(
            set(dates_by_service) | set(self.trip_ids_by_service) | set(self.duration_by_service)
        )

        for service_id in service_ids:
            dates = dates_by_service.get(service_id, set())
            trip_ids = self.trip_ids_by_service.get(service_id, set())
            if not dates:
                self.errors.store(feed_issue(ErrorType.SERVICE_NEVER_ACTIVE, service_id))
                for trip_id in sorted(trip_ids):
                    trip = self.feed.trips.get(trip_id, {})
                    self.errors.store(
                        FeedIssue(
                            ErrorType.TRIP_NEVER_ACTIVE,
                            entity_type="trips",
                            line_number=trip.get(LINE_COLUMN),
                            entity_id=trip_id,
                            bad_value=trip_id,
                        )
                    )
            if not trip_ids:
                self.errors.store(feed_issue(ErrorType.SERVICE_UNUSED, service_id))

        self._fill_daily_totals(dates_by_service, result)
        self._write_tables(service_ids, dates_by_service)
        return dates_by_service

    def _fill_daily_totals(self, dates_by_service: dict[str, set[date]], result: ValidationResult) -> None:
        duration_by_date: dict[date, dict[int, int]] = defaultdict(lambda: defaultdict(int))
        trips_by_date: dict[date, int] = defaultdict(int)
        for service_id, dates in dates_by_service.items():
            durations = self.duration_by_service.get(service_id, {})
            n_trips = len(self.trip_ids_by_service.get(service_id, ()))
            for d in dates:
                per_type = duration_by_date[d]
                for route_type, seconds in durations.items():
                    per_type[route_type] += seconds
                trips_by_date[d] += n_trips

        if not duration_by_date:
            self.errors.store(feed_issue(ErrorType.NO_SERVICE))
            return

        first, last = min(duration_by_date), max(duration_by_date)
        result.first_calendar_date = first
        result.last_calendar_date = last
        for d in date_range(first, last):
            per_type = duration_by_date.get(d, {})
            total = sum(per_type.values())
            result.daily_bus_seconds.append(per_type.get(ROUTE_TYPE_BUS, 0))
            result.daily_tram_seconds.append(per_type.get(ROUTE_TYPE_TRAM, 0))
            result.daily_metro_seconds.append(per_type.get(ROUTE_TYPE_METRO, 0))
            result.daily_rail_seconds.append(per_type.get(ROUTE_TYPE_RAIL, 0))
            result.daily_total_seconds.append(total)
            result.daily_trip_counts.append(trips_by_date.get(d, 0))
            if total <= 0:
                self.errors.store(feed_issue(ErrorType.DATE_NO_SERVICE, d.strftime("%Y%m%d")))

    def _write_tables(self, service_ids: list[str], dates_by_service: dict[str, set[date]]) -> None:
        conn = self.feed.conn
        ns = self.feed.namespace
        services = ns.quoted("services")
        service_dates = ns.quoted("service_dates")
        service_durations = ns.quoted("service_durations")
        batch_size = self.config.error_batch_size

        service_rows = (
            (
                sid,
                len(dates_by_service.get(sid, ())),
                sum(self.duration_by_service.get(sid, {}).values()),
                len(self.trip_ids_by_service.get(sid, ())),
            )
            for sid in service_ids
        )
        date_rows = (
            (d.strftime("%Y%m%d"), sid)
            for sid in service_ids
            for d in sorted(dates_by_service.get(sid, ()))
        )
        duration_rows = (
            (sid, route_type, seconds)
            for sid in service_ids
            for route_type, seconds in sorted(self.duration_by_service.get(sid, {}).items())
        )

        self.errors.flush()
        with transaction(conn):
            for name in (services, service_dates, service_durations):
                conn.execute(f"DROP TABLE IF EXISTS {name};")
            conn.execute(
                f"CREATE TABLE {services} (service_id TEXT, n_days_active INTEGER, "
                "duration_seconds INTEGER, n_trips INTEGER);"
            )
            conn.execute(f"CREATE TABLE {service_dates} (service_date TEXT, service_id TEXT);")
            conn.execute(
                f"CREATE TABLE {service_durations} (service_id TEXT, route_type INTEGER, "
                "duration_seconds INTEGER, PRIMARY KEY (service_id, route_type));"
            )
            for batch in chunked(service_rows, batch_size):
                conn.executemany(f"INSERT INTO {services} VALUES (?, ?, ?, ?);", batch)
            for batch in chunked(date_rows, batch_size):
                conn.executemany(f"INSERT INTO {service_dates} VALUES (?, ?);", batch)
            for batch in chunked(duration_rows, batch_size):
                conn.executemany(f"INSERT INTO {service_durations} VALUES (?, ?, ?);", batch)
            conn.execute(
                f"CREATE INDEX {ns.quoted('service_dates_service_date_idx')} ON {service_dates} (service_date);"
            )
            conn.execute(
                f"CREATE INDEX {ns.quoted('service_dates_service_id_idx')} ON {service_dates} (service_id);"
            )
        log.info("Service tables written", services=len(service_ids))

    def _validate_blocks(self, dates_by_service: dict[str, set[date]]) -> None:
        overlaps = find_block_overlaps(self.block_intervals, dates_by_service)
        for first, second in overlaps:
            trip = self.feed.trips.get(first.trip_id, {"trip_id": first.trip_id})
            self.errors.store(issue_for("trips", trip, ErrorType.TRIP_OVERLAP_IN_BLOCK, second.trip_id))
        log.info("Block validation complete", overlaps=len(overlaps))
