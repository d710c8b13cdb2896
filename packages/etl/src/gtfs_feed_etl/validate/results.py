from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class GeographicBounds(BaseModel):
    min_lat: Optional[float] = None
    min_lon: Optional[float] = None
    max_lat: Optional[float] = None
    max_lon: Optional[float] = None

    def expand(self, lat: float, lon: float) -> None:
        self.min_lat = lat if self.min_lat is None else min(self.min_lat, lat)
        self.max_lat = lat if self.max_lat is None else max(self.max_lat, lat)
        self.min_lon = lon if self.min_lon is None else min(self.min_lon, lon)
        self.max_lon = lon if self.max_lon is None else max(self.max_lon, lon)


class ValidationResult(BaseModel):
    namespace: Optional[str] = None
    error_count: int = 0
    fatal_exception: Optional[str] = None
    declared_start_date: Optional[date] = None
    declared_end_date: Optional[date] = None
    first_calendar_date: Optional[date] = None
    last_calendar_date: Optional[date] = None
    daily_bus_seconds: list[int] = Field(default_factory=list)
    daily_tram_seconds: list[int] = Field(default_factory=list)
    daily_metro_seconds: list[int] = Field(default_factory=list)
    daily_rail_seconds: list[int] = Field(default_factory=list)
    daily_total_seconds: list[int] = Field(default_factory=list)
    daily_trip_counts: list[int] = Field(default_factory=list)
    full_bounds: GeographicBounds = Field(default_factory=GeographicBounds)
    bounds_without_outliers: GeographicBounds = Field(default_factory=GeographicBounds)
    validation_time_ms: int = 0
