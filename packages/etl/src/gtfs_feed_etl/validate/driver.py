from __future__ import annotations

import sqlite3
from typing import Optional, Sequence

from gtfs_feed_etl.core import Timer, fatal_error_from_exc, get_logger, human_count
from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue
from gtfs_feed_etl.schema.fields import parse_date
from gtfs_feed_etl.storage import Namespace

from .base import FeedValidatorFactory, TripValidatorFactory, feed_issue
from .config import ValidateConfig
from .fares import FaresValidator
from .feed import Feed, Row
from .frequencies import FrequencyValidator
from .names import NamesValidator
from .patterns import PatternFinderValidator
from .references import ReferencesTripValidator
from .results import ValidationResult
from .service import ServiceValidator
from .speed import SpeedTripValidator
from .stops import MisplacedStopValidator
from .timezone import TimeZoneValidator

log = get_logger(__name__)

DEFAULT_FEED_VALIDATORS: tuple[FeedValidatorFactory, ...] = (
    MisplacedStopValidator,
    NamesValidator,
    TimeZoneValidator,
    FaresValidator,
    FrequencyValidator,
)

DEFAULT_TRIP_VALIDATORS: tuple[TripValidatorFactory, ...] = (
    SpeedTripValidator,
    ReferencesTripValidator,
    ServiceValidator,
    PatternFinderValidator,
)


def fix_missing_times(stop_time: Row) -> Row:
    """A stop time with only one of arrival/departure uses it for both."""
    arrival, departure = stop_time.get("arrival_time"), stop_time.get("departure_time")
    if arrival is None and departure is not None:
        return {**stop_time, "arrival_time": departure}
    if departure is None and arrival is not None:
        return {**stop_time, "departure_time": arrival}
    return stop_time


def is_flex_stop_time(stop_time: Row) -> bool:
    return (
        stop_time.get("start_pickup_drop_off_window") is not None
        or stop_time.get("end_pickup_drop_off_window") is not None
    )


class _Guarded:
    """Runs one validator, turning exceptions into VALIDATOR_FAILED."""

    def __init__(self, validator: object, errors: ErrorStorage) -> None:
        self.validator = validator
        self.errors = errors
        self.name = type(validator).__name__
        self.failed: Optional[str] = None

    def call(self, method: str, *args: object) -> None:
        if self.failed is not None:
            return
        try:
            getattr(self.validator, method)(*args)
        except Exception as e:
            fatal = fatal_error_from_exc(e)
            self.failed = str(fatal)
            log.error("Validator failed", validator=self.name, method=method, error_type=fatal.exc_type, message=fatal.message)
            log.exception("Validator failed (traceback)", validator=self.name)
            self.errors.store(feed_issue(ErrorType.VALIDATOR_FAILED, f"{self.name}:{e}"))


def validate_feed(
    conn: sqlite3.Connection,
    namespace: Namespace,
    *,
    config: Optional[ValidateConfig] = None,
    feed_validators: Optional[Sequence[FeedValidatorFactory]] = None,
    trip_validators: Optional[Sequence[TripValidatorFactory]] = None,
) -> ValidationResult:
    """
    Run feed-wide validators, then one ordered pass over stop_times feeding
    each trip to the per-trip validators, then every validator's completion
    step in registration order.
    """
    cfg = config or ValidateConfig()
    result = ValidationResult(namespace=namespace.id)
    log.info("Validating feed")

    with Timer() as timer:
        try:
            feed = Feed(conn, namespace)
            errors = ErrorStorage(conn, namespace, batch_size=cfg.error_batch_size)
        except Exception as e:
            log.exception("Cannot open namespace for validation")
            result.fatal_exception = str(fatal_error_from_exc(e))
            return result

        try:
            _read_declared_dates(feed, result)
            feed_runs = [
                _Guarded(factory(feed, errors, cfg), errors)
                for factory in (DEFAULT_FEED_VALIDATORS if feed_validators is None else feed_validators)
            ]
            trip_runs = [
                _Guarded(factory(feed, errors, cfg), errors)
                for factory in (DEFAULT_TRIP_VALIDATORS if trip_validators is None else trip_validators)
            ]

            for run in feed_runs:
                run.call("validate")

            n_trips = _scan_trips(feed, errors, trip_runs)
            log.info("Trips validated", trips=human_count(n_trips))

            for run in feed_runs + trip_runs:
                run.call("complete", result)

            errors.flush()
        except Exception as e:
            log.exception("Validation failed")
            result.fatal_exception = str(fatal_error_from_exc(e))

    result.error_count = errors.error_count
    result.validation_time_ms = int(timer.duration_ms or 0)
    log.info("Validation complete", errors=result.error_count, duration_ms=result.validation_time_ms)
    return result


def _read_declared_dates(feed: Feed, result: ValidationResult) -> None:
    for info in feed.rows("feed_info"):
        start, end = info.get("feed_start_date"), info.get("feed_end_date")
        result.declared_start_date = parse_date(start) if start else None
        result.declared_end_date = parse_date(end) if end else None
        break


def _scan_trips(feed: Feed, errors: ErrorStorage, trip_runs: list[_Guarded]) -> int:
    n_trips = 0
    for trip_id, group in feed.stop_times_by_trip():
        trip = feed.trips.get(trip_id)
        if trip is None:
            # Already reported as a dangling reference during load.
            continue

        stop_times: list[Row] = []
        stops: list[Row] = []
        for st in group:
            stop = feed.stops.get(st.get("stop_id"))
            if stop is None:
                continue
            stop_times.append(fix_missing_times(st))
            stops.append(stop)

        if len(stop_times) < 2:
            if not (len(stop_times) == 1 and is_flex_stop_time(stop_times[0])):
                errors.store(
                    FeedIssue(
                        ErrorType.TRIP_TOO_FEW_STOP_TIMES,
                        entity_type="trips",
                        line_number=trip.get("csv_line"),
                        entity_id=trip_id,
                        bad_value=str(len(stop_times)),
                    )
                )
                continue

        n_trips += 1
        route = feed.routes.get(trip.get("route_id"))
        for run in trip_runs:
            run.call("validate_trip", trip, route, stop_times, stops)
    return n_trips
