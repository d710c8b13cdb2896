from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from gtfs_feed_etl.core import get_logger, human_count
from gtfs_feed_etl.issues import ErrorStorage, ErrorType, FeedIssue

from .key import TripPatternKey

log = get_logger(__name__)

_LOG_EVERY_TRIPS = 100_000


@dataclass(slots=True)
class Pattern:
    pattern_id: str
    key: TripPatternKey
    trip_ids: list[str] = field(default_factory=list)
    shape_ids: set[Optional[str]] = field(default_factory=set)
    direction_id: Optional[int] = None
    shape_distances: tuple[Optional[float], ...] = ()
    name: Optional[str] = None

    @property
    def route_id(self) -> Optional[str]:
        return self.key.route_id

    @property
    def shape_id(self) -> Optional[str]:
        shapes = [s for s in self.shape_ids if s is not None]
        return shapes[0] if len(shapes) == 1 and len(self.shape_ids) == 1 else None


@dataclass(slots=True)
class _Group:
    trips: list[Mapping[str, Any]] = field(default_factory=list)
    shape_distances: tuple[Optional[float], ...] = ()


class PatternFinder:
    """
    Groups trips by TripPatternKey in first-seen order. Feeding the same
    trips in the same order always yields the same pattern ids.
    """

    def __init__(self) -> None:
        self._groups: dict[TripPatternKey, _Group] = {}
        self._n_trips = 0

    def process_trip(self, trip: Mapping[str, Any], stop_times: Sequence[Mapping[str, Any]]) -> TripPatternKey:
        self._n_trips += 1
        if self._n_trips % _LOG_EVERY_TRIPS == 0:
            log.info("Trips grouped", trips=human_count(self._n_trips))
        key = TripPatternKey.from_stop_times(trip.get("route_id"), stop_times)
        group = self._groups.get(key)
        if group is None:
            group = _Group(shape_distances=tuple(st.get("shape_dist_traveled") for st in stop_times))
            self._groups[key] = group
        group.trips.append(trip)
        return key

    def create_patterns(
        self,
        stops_by_id: Mapping[str, Mapping[str, Any]],
        errors: Optional[ErrorStorage] = None,
    ) -> list[Pattern]:
        patterns: list[Pattern] = []
        for n, (key, group) in enumerate(self._groups.items(), start=1):
            first = group.trips[0]
            pattern = Pattern(
                pattern_id=str(n),
                key=key,
                trip_ids=[t["trip_id"] for t in group.trips],
                shape_ids={t.get("shape_id") for t in group.trips},
                direction_id=first.get("direction_id"),
                shape_distances=group.shape_distances,
            )
            if len(pattern.shape_ids) > 1 and errors is not None:
                errors.store(
                    FeedIssue(
                        ErrorType.MULTIPLE_SHAPES_FOR_PATTERN,
                        entity_type="patterns",
                        entity_id=pattern.pattern_id,
                        bad_value=", ".join(sorted(str(s) for s in pattern.shape_ids)),
                    )
                )
            patterns.append(pattern)
        name_patterns(patterns, stops_by_id)
        log.info("Patterns created", patterns=len(patterns), trips=self._n_trips)
        return patterns


# Naming


def _stop_name(stop_id: str, stops_by_id: Mapping[str, Mapping[str, Any]]) -> str:
    stop = stops_by_id.get(stop_id)
    if stop is None:
        return stop_id
    return stop.get("stop_name") or stop_id


@dataclass(slots=True)
class _RouteNaming:
    from_stops: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))
    to_stops: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))
    vias: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))
    patterns: list[Pattern] = field(default_factory=list)


def name_patterns(patterns: Iterable[Pattern], stops_by_id: Mapping[str, Mapping[str, Any]]) -> None:
    """
    Give every pattern a human-readable name unique within its route, e.g.
    "5 stops from Central to Airport via Tsing Yi (12 trips)".

    Terminus names are used when they identify the pattern, then a via stop
    only this pattern passes, then express/local for a pair of patterns
    differing in length, and finally a sample trip id.
    """
    by_route: dict[Optional[str], _RouteNaming] = defaultdict(_RouteNaming)
    for p in patterns:
        if not p.trip_ids or not p.key.stops:
            continue
        info = by_route[p.route_id]
        from_name = _stop_name(p.key.stops[0], stops_by_id)
        to_name = _stop_name(p.key.stops[-1], stops_by_id)
        info.from_stops[from_name].add(p.pattern_id)
        info.to_stops[to_name].add(p.pattern_id)
        for stop_id in p.key.stops:
            name = _stop_name(stop_id, stops_by_id)
            if name not in (from_name, to_name):
                info.vias[name].add(p.pattern_id)
        info.patterns.append(p)

    for info in by_route.values():
        by_id = {p.pattern_id: p for p in info.patterns}
        for p in info.patterns:
            p.name = _base_name(p, info, by_id, stops_by_id)
        for p in info.patterns:
            p.name = f"{len(p.key)} stops {p.name} ({len(p.trip_ids)} trips)"


def _base_name(
    p: Pattern,
    info: _RouteNaming,
    by_id: Mapping[str, Pattern],
    stops_by_id: Mapping[str, Mapping[str, Any]],
) -> str:
    from_name = _stop_name(p.key.stops[0], stops_by_id)
    to_name = _stop_name(p.key.stops[-1], stops_by_id)
    terminus = f"from {from_name} to {to_name}"
    same_ends = info.from_stops[from_name] & info.to_stops[to_name]
    if len(same_ends) == 1:
        return terminus

    for stop_id in p.key.stops:
        name = _stop_name(stop_id, stops_by_id)
        if len(same_ends & info.vias.get(name, set())) == 1 and p.pattern_id in info.vias.get(name, set()):
            return f"{terminus} via {name}"

    if len(same_ends) == 2:
        other = by_id[next(pid for pid in same_ends if pid != p.pattern_id)]
        if len(p.key) < len(other.key):
            return f"{terminus} express"
        if len(p.key) > len(other.key):
            return f"{terminus} local"

    return f"{terminus} like trip {p.trip_ids[0]}"
