"""Inspect a set of visits: time span, coordinate bounds, places and map region."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from trailmap.assembler import RegionParams, bounding_region, group_by_place, zoom_for_region
from trailmap.geo import bounds
from trailmap.models import MapRegion, PlaceVisitRecord


@dataclass(frozen=True, slots=True)
class InspectResult:
    """High-level visit dataset inspection result."""

    visits: int
    distinct_places: int
    first_start: datetime | None
    last_end: datetime | None
    total_duration_s: float
    min_lat: float | None
    max_lat: float | None
    min_lon: float | None
    max_lon: float | None
    with_poi_name: int
    with_city: int
    region: MapRegion | None
    suggested_zoom: float | None


def inspect_visits(
    visits: Sequence[PlaceVisitRecord],
    place_precision: int = 4,
    region_params: RegionParams = RegionParams(),
) -> InspectResult:
    """Inspect already-loaded visits."""

    if not visits:
        return InspectResult(
            visits=0,
            distinct_places=0,
            first_start=None,
            last_end=None,
            total_duration_s=0.0,
            min_lat=None,
            max_lat=None,
            min_lon=None,
            max_lon=None,
            with_poi_name=0,
            with_city=0,
            region=None,
            suggested_zoom=None,
        )

    coords = [v.center for v in visits]
    min_lat, max_lat, min_lon, max_lon = bounds(coords)  # type: ignore[misc]
    region = bounding_region(coords, region_params)
    return InspectResult(
        visits=len(visits),
        distinct_places=len(group_by_place(visits, place_precision)),
        first_start=min(v.start_time for v in visits),
        last_end=max(v.end_time for v in visits),
        total_duration_s=sum(v.duration_seconds for v in visits),
        min_lat=min_lat,
        max_lat=max_lat,
        min_lon=min_lon,
        max_lon=max_lon,
        with_poi_name=sum(1 for v in visits if v.poi_name),
        with_city=sum(1 for v in visits if v.city),
        region=region,
        suggested_zoom=zoom_for_region(region) if region is not None else None,
    )
