from __future__ import annotations

from typing import Optional, Sequence

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult

log = get_logger(__name__)

# Entrances, generic nodes and boarding areas are never visited by trips.
_UNVISITED_LOCATION_TYPES = frozenset({2, 3, 4})


class ReferencesTripValidator:
    """Flags stops, trips and routes that no usable trip refers to."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.referenced_stops: set[str] = set()
        self.referenced_trips: set[str] = set()
        self.referenced_routes: set[str] = set()

    def validate_trip(
        self,
        trip: Row,
        route: Optional[Row],
        stop_times: Sequence[Row],
        stops: Sequence[Row],
    ) -> None:
        for stop in stops:
            self.referenced_stops.add(stop["stop_id"])
            parent = stop.get("parent_station")
            if parent:
                self.referenced_stops.add(parent)
        self.referenced_trips.add(trip["trip_id"])
        if trip.get("route_id"):
            self.referenced_routes.add(trip["route_id"])

    def complete(self, result: ValidationResult) -> None:
        n_before = self.errors.error_count
        for stop_id, stop in self.feed.stops.items():
            if stop.get("location_type") in _UNVISITED_LOCATION_TYPES:
                continue
            if stop_id not in self.referenced_stops:
                self.errors.store(issue_for("stops", stop, ErrorType.STOP_UNUSED, stop_id))
        for trip_id, trip in self.feed.trips.items():
            if trip_id not in self.referenced_trips:
                self.errors.store(issue_for("trips", trip, ErrorType.TRIP_EMPTY))
        for route_id, route in self.feed.routes.items():
            if route_id not in self.referenced_routes:
                self.errors.store(issue_for("routes", route, ErrorType.ROUTE_UNUSED))
        log.info("Reference validation complete", errors=self.errors.error_count - n_before)
