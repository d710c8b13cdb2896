from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

# route_type -> ceiling in km/h
_MAX_SPEED_KPH: dict[int, float] = {
    1: 140.0,  # subway
    2: 310.0,  # rail
    4: 107.0,  # ferry
}


@dataclass(frozen=True, slots=True)
class ValidateConfig:
    min_speed_kph: float = 0.5
    default_max_speed_kph: float = 130.0
    max_speed_kph: Mapping[int, float] = field(default_factory=lambda: dict(_MAX_SPEED_KPH))
    route_short_name_max_length: int = 6
    outlier_low_quantile: float = 0.1
    outlier_high_quantile: float = 0.9
    outlier_min_stops: int = 5
    error_batch_size: int = 500

    def max_speed_for(self, route_type: int | None) -> float:
        if route_type is None:
            return self.default_max_speed_kph
        return self.max_speed_kph.get(route_type, self.default_max_speed_kph)
