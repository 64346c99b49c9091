"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from trailmap.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0  # mean Earth radius in meters


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates in meters."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within(a: Coordinate, b: Coordinate, radius_m: float) -> bool:
    """Check whether ``b`` lies inside or on the boundary of a circle around ``a``."""

    return distance_m(a, b) <= radius_m


def mean_center(coords: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of latitudes and longitudes.

    Raises:
        ValueError: If ``coords`` is empty.
    """

    if not coords:
        raise ValueError("mean_center() needs at least one coordinate")
    n = float(len(coords))
    return Coordinate(
        latitude=sum(c.latitude for c in coords) / n,
        longitude=sum(c.longitude for c in coords) / n,
    )


def bounds(coords: Iterable[Coordinate]) -> tuple[float, float, float, float] | None:
    """Return (min_lat, max_lat, min_lon, max_lon), or None for no coordinates."""

    min_lat = max_lat = min_lon = max_lon = None
    for c in coords:
        if min_lat is None:
            min_lat = max_lat = c.latitude
            min_lon = max_lon = c.longitude
            continue
        min_lat = min(min_lat, c.latitude)
        max_lat = max(max_lat, c.latitude)
        min_lon = min(min_lon, c.longitude)
        max_lon = max(max_lon, c.longitude)
    if min_lat is None:
        return None
    return min_lat, max_lat, min_lon, max_lon


def coord_key(lat: float, lon: float, precision: int) -> str:
    """Build a stable key by rounding coordinates.

    Notes:
        "lat,lon" with fixed decimals. Precision=4 is roughly 11m of latitude,
        which is enough to treat repeated stays as the same place.
    """

    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"
