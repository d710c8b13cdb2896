from __future__ import annotations

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed, Row
from .results import ValidationResult

log = get_logger(__name__)

_BASIC_ROUTE_TYPES = frozenset({0, 1, 2, 3, 4, 5, 6, 7, 11, 12})


def is_valid_route_type(route_type: int) -> bool:
    return route_type in _BASIC_ROUTE_TYPES or 100 <= route_type <= 1799


def _clean(value: object) -> str:
    return str(value).strip().lower() if value is not None else ""


class NamesValidator:
    """Route naming and route_type checks."""

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.config = config

    def validate(self) -> None:
        n_before = self.errors.error_count
        for route in self.feed.routes.values():
            self._check_route(route)
        log.info("Route names checked", errors=self.errors.error_count - n_before)

    def _check_route(self, route: Row) -> None:
        short_name = _clean(route.get("route_short_name"))
        long_name = _clean(route.get("route_long_name"))
        desc = _clean(route.get("route_desc"))

        if not short_name and not long_name:
            self._store(route, ErrorType.ROUTE_SHORT_AND_LONG_NAME_MISSING)
        if len(short_name) > self.config.route_short_name_max_length:
            self._store(route, ErrorType.ROUTE_SHORT_NAME_TOO_LONG, route.get("route_short_name"))
        if short_name and long_name and short_name in long_name:
            self._store(route, ErrorType.ROUTE_LONG_NAME_CONTAINS_SHORT_NAME, route.get("route_long_name"))
        if desc and desc in (short_name, long_name):
            self._store(route, ErrorType.ROUTE_DESCRIPTION_SAME_AS_NAME, route.get("route_desc"))
        route_type = route.get("route_type")
        if route_type is not None and not is_valid_route_type(route_type):
            self._store(route, ErrorType.ROUTE_TYPE_INVALID, route_type)

    def _store(self, route: Row, error_type: ErrorType, bad_value: object = None) -> None:
        self.errors.store(issue_for("routes", route, error_type, bad_value))

    def complete(self, result: ValidationResult) -> None:
        return None
