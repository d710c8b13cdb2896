from __future__ import annotations

from typing import Optional, Sequence

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue

from .base import feed_issue, issue_for
from .config import ValidateConfig
from .feed import Feed, Row
from .geo import coordinates, fast_distance
from .results import ValidationResult

log = get_logger(__name__)

ROUNDING_SLACK_SECONDS = 60


def missing_both_times(stop_time: Row) -> bool:
    return stop_time.get("arrival_time") is None and stop_time.get("departure_time") is None


def _times_rounded(stop_time: Row) -> bool:
    return stop_time["arrival_time"] % 60 == 0 and stop_time["departure_time"] % 60 == 0


class SpeedTripValidator:
    """
    Checks travel between consecutive timed stop times. Distance accumulates
    across stop times without times.

    Feeds with every time on the minute make zero travel times unavoidable, so
    TRAVEL_TIME_ZERO is held back until an unrounded time has been seen.
    """

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.config = config
        self.all_travel_times_rounded = True
        self._held_zero_time: list[FeedIssue] = []

    def validate_trip(
        self,
        trip: Row,
        route: Optional[Row],
        stop_times: Sequence[Row],
        stops: Sequence[Row],
    ) -> None:
        route_type = route.get("route_type") if route else None
        max_speed = self.config.max_speed_for(route_type)

        begin = 0
        while missing_both_times(stop_times[begin]):
            begin += 1
            if begin == len(stop_times):
                return

        prev_stop_time = stop_times[begin]
        prev_stop = stops[begin]
        # None once a stop without coordinates makes the distance unknowable.
        distance_m: Optional[float] = 0.0
        for i in range(begin + 1, len(stop_times)):
            curr = stop_times[i]
            if curr.get("pickup_type") == 1 and curr.get("drop_off_type") == 1 and curr.get("timepoint") == 0:
                self._store(curr, ErrorType.STOP_TIME_UNUSED)

            curr_stop = stops[i]
            a, b = coordinates(prev_stop), coordinates(curr_stop)
            if a is None or b is None:
                distance_m = None
            elif distance_m is not None:
                distance_m += fast_distance(a[0], a[1], b[0], b[1])
            prev_stop = curr_stop

            # Leading shape_dist_traveled values are commonly omitted.
            if begin > 0:
                self._check_shape_dist(prev_stop_time, curr)

            if missing_both_times(curr):
                if curr.get("timepoint") == 1:
                    self._store(curr, ErrorType.TIMEPOINT_MISSING_TIMES)
                continue

            if curr["departure_time"] < curr["arrival_time"]:
                self._store(curr, ErrorType.DEPARTURE_BEFORE_ARRIVAL)

            both_rounded = self._check_rounded(prev_stop_time) and self._check_rounded(curr)
            travel_s = curr["arrival_time"] - prev_stop_time["departure_time"]
            if both_rounded and travel_s == 0:
                travel_s += ROUNDING_SLACK_SECONDS

            if self._check_distance_and_time(distance_m, travel_s, curr) and distance_m is not None:
                kph = (distance_m / 1000.0) / (travel_s / 3600.0)
                if kph < self.config.min_speed_kph:
                    self._store(curr, ErrorType.TRAVEL_TOO_SLOW, f"{kph:2.1f} km/h")
                elif kph > max_speed:
                    self._store(curr, ErrorType.TRAVEL_TOO_FAST, f"{kph:2.1f} km/h")

            distance_m = 0.0
            prev_stop_time = curr

    def _check_rounded(self, stop_time: Row) -> bool:
        rounded = _times_rounded(stop_time)
        if not rounded:
            self.all_travel_times_rounded = False
        return rounded

    def _check_shape_dist(self, previous: Row, current: Row) -> None:
        curr_dist = current.get("shape_dist_traveled")
        prev_dist = previous.get("shape_dist_traveled")
        if curr_dist is not None and (prev_dist is None or curr_dist <= prev_dist):
            self._store(current, ErrorType.SHAPE_DIST_TRAVELED_NOT_INCREASING, curr_dist)

    def _check_distance_and_time(self, distance_m: Optional[float], travel_s: float, stop_time: Row) -> bool:
        good = distance_m is not None
        if distance_m == 0:
            self._store(stop_time, ErrorType.TRAVEL_DISTANCE_ZERO)
            good = False
        if travel_s < 0:
            self._store(stop_time, ErrorType.TRAVEL_TIME_NEGATIVE, travel_s)
            good = False
        elif travel_s == 0:
            issue = issue_for("stop_times", stop_time, ErrorType.TRAVEL_TIME_ZERO)
            if self.all_travel_times_rounded:
                self._held_zero_time.append(issue)
            else:
                self.errors.store(issue)
            good = False
        return good

    def _store(self, stop_time: Row, error_type: ErrorType, bad_value: object = None) -> None:
        self.errors.store(issue_for("stop_times", stop_time, error_type, bad_value))

    def complete(self, result: ValidationResult) -> None:
        if not self.all_travel_times_rounded:
            self.errors.store_all(self._held_zero_time)
        else:
            self.errors.store(feed_issue(ErrorType.FEED_TRAVEL_TIMES_ROUNDED))
        log.info(
            "Speed validation complete",
            rounded=self.all_travel_times_rounded,
            held_zero_time=len(self._held_zero_time),
        )
