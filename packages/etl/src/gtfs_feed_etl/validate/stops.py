from __future__ import annotations

import polars as pl

from gtfs_feed_etl.core import get_logger
from gtfs_feed_etl.issues import ErrorStorage, ErrorType

from .base import issue_for
from .config import ValidateConfig
from .feed import Feed
from .results import GeographicBounds, ValidationResult

log = get_logger(__name__)


class MisplacedStopValidator:
    """
    Flags stops far outside the bulk of the feed and records the feed's
    geographic bounds with and without them.

    The acceptable box is the 10th..90th percentile range of latitude and
    longitude, widened by that same range on each side.
    """

    def __init__(self, feed: Feed, errors: ErrorStorage, config: ValidateConfig) -> None:
        self.feed = feed
        self.errors = errors
        self.config = config
        self.full_bounds = GeographicBounds()
        self.bounds_without_outliers = GeographicBounds()

    def _stop_frame(self) -> pl.DataFrame:
        ids, lats, lons = [], [], []
        for stop_id, stop in self.feed.stops.items():
            lat, lon = stop.get("stop_lat"), stop.get("stop_lon")
            if lat is None or lon is None:
                continue
            ids.append(stop_id)
            lats.append(float(lat))
            lons.append(float(lon))
        return pl.DataFrame(
            {"stop_id": ids, "lat": lats, "lon": lons},
            schema={"stop_id": pl.Utf8, "lat": pl.Float64, "lon": pl.Float64},
        )

    def validate(self) -> None:
        df = self._stop_frame()
        if df.height == 0:
            return

        for lat, lon in df.select("lat", "lon").iter_rows():
            self.full_bounds.expand(lat, lon)

        if df.height < self.config.outlier_min_stops:
            self.bounds_without_outliers = self.full_bounds.model_copy()
            return

        lo, hi = self.config.outlier_low_quantile, self.config.outlier_high_quantile
        q = df.select(
            pl.col("lat").quantile(lo, interpolation="linear").alias("lat_lo"),
            pl.col("lat").quantile(hi, interpolation="linear").alias("lat_hi"),
            pl.col("lon").quantile(lo, interpolation="linear").alias("lon_lo"),
            pl.col("lon").quantile(hi, interpolation="linear").alias("lon_hi"),
        ).row(0, named=True)
        lat_range = q["lat_hi"] - q["lat_lo"]
        lon_range = q["lon_hi"] - q["lon_lo"]

        inside = (
            pl.col("lat").is_between(q["lat_lo"] - lat_range, q["lat_hi"] + lat_range)
            & pl.col("lon").is_between(q["lon_lo"] - lon_range, q["lon_hi"] + lon_range)
        )
        flagged = df.with_columns(inside.alias("inside"))

        n_outliers = 0
        for stop_id, lat, lon, ok in flagged.iter_rows():
            if ok:
                self.bounds_without_outliers.expand(lat, lon)
                continue
            n_outliers += 1
            self.errors.store(
                issue_for("stops", self.feed.stops[stop_id], ErrorType.STOP_GEOGRAPHIC_OUTLIER, f"{lat},{lon}")
            )
        log.info("Stop locations checked", stops=df.height, outliers=n_outliers)

    def complete(self, result: ValidationResult) -> None:
        result.full_bounds = self.full_bounds
        result.bounds_without_outliers = self.bounds_without_outliers
