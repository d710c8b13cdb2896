import math
from typing import Optional

M_PER_DEGREE_LAT = 111111.111


def fast_distance(lat0: float, lon0: float, lat1: float, lon1: float) -> float:
    """Equirectangular approximation in meters, good for nearby points."""
    mid_lat = (lat0 + lat1) / 2
    xscale = math.cos(math.radians(mid_lat))
    dx = xscale * (lon1 - lon0)
    dy = lat1 - lat0
    return math.sqrt(dx * dx + dy * dy) * M_PER_DEGREE_LAT


def coordinates(row: Optional[dict]) -> Optional[tuple[float, float]]:
    if row is None:
        return None
    lat, lon = row.get("stop_lat"), row.get("stop_lon")
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)
