from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

Ints = tuple[Optional[int], ...]


def _offsets(values: Sequence[Optional[int]], origin: Optional[int]) -> Ints:
    if origin is None:
        return tuple(None for _ in values)
    return tuple(None if v is None else v - origin for v in values)


@dataclass(frozen=True, slots=True)
class TripPatternKey:
    """
    Everything that makes two trips the same pattern. Times are offsets from
    the trip's first departure, so trips that differ only in clock time share
    a key.
    """

    route_id: Optional[str]
    stops: tuple[str, ...]
    pickup_types: Ints
    drop_off_types: Ints
    timepoints: Ints
    arrival_offsets: Ints
    departure_offsets: Ints

    @classmethod
    def from_stop_times(
        cls, route_id: Optional[str], stop_times: Sequence[Mapping[str, Any]]
    ) -> "TripPatternKey":
        arrivals = [st.get("arrival_time") for st in stop_times]
        departures = [st.get("departure_time") for st in stop_times]
        origin = next((d for d in departures if d is not None), None)
        return cls(
            route_id=route_id,
            stops=tuple(st["stop_id"] for st in stop_times),
            pickup_types=tuple(st.get("pickup_type") for st in stop_times),
            drop_off_types=tuple(st.get("drop_off_type") for st in stop_times),
            timepoints=tuple(st.get("timepoint") for st in stop_times),
            arrival_offsets=_offsets(arrivals, origin),
            departure_offsets=_offsets(departures, origin),
        )

    def __len__(self) -> int:
        return len(self.stops)
