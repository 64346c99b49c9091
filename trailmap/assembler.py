"""Convert visit and route records into map markers, routes and a camera region."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Iterable, Sequence

from trailmap.classifier import PlaceClassifier
from trailmap.geo import bounds, coord_key
from trailmap.models import (
    CameraPosition,
    CategoryConfidence,
    Coordinate,
    MapDisplayData,
    MapRegion,
    MapRoute,
    Marker,
    PlaceCategory,
    PlaceVisitRecord,
    RouteRecord,
)

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION: Final[str] = "Unknown location"

# (max(lat_delta, lon_delta) strictly greater than, zoom); first match wins.
ZOOM_BY_DELTA: Final[tuple[tuple[float, float], ...]] = (
    (10.0, 5.0),  # country
    (5.0, 7.0),
    (1.0, 9.0),  # city
    (0.5, 11.0),
    (0.1, 13.0),  # neighborhood
    (0.05, 15.0),  # street
)
CLOSEST_ZOOM: Final[float] = 17.0


@dataclass(frozen=True, slots=True)
class RegionParams:
    """Bounding-region padding factor and minimum span (degrees)."""

    padding: float = 1.2
    min_delta: float = 0.01


def marker_title(visit: PlaceVisitRecord) -> str:
    """City name, else POI name, else a placeholder."""

    return visit.city or visit.poi_name or UNKNOWN_LOCATION


def bounding_region(coords: Iterable[Coordinate], params: RegionParams = RegionParams()) -> MapRegion | None:
    """Padded region covering ``coords``; None when there are none."""

    b = bounds(coords)
    if b is None:
        return None
    min_lat, max_lat, min_lon, max_lon = b
    return MapRegion(
        center=Coordinate(latitude=(min_lat + max_lat) / 2.0, longitude=(min_lon + max_lon) / 2.0),
        latitude_delta=max((max_lat - min_lat) * params.padding, params.min_delta),
        longitude_delta=max((max_lon - min_lon) * params.padding, params.min_delta),
    )


def zoom_for_region(region: MapRegion) -> float:
    """Rough zoom level (1 = world, 20 = building) that fits ``region``."""

    delta = max(region.latitude_delta, region.longitude_delta)
    for threshold, zoom in ZOOM_BY_DELTA:
        if delta > threshold:
            return zoom
    return CLOSEST_ZOOM


def camera_for_region(region: MapRegion | None) -> CameraPosition | None:
    if region is None:
        return None
    return CameraPosition(target=region.center, zoom=zoom_for_region(region))


def group_by_place(visits: Sequence[PlaceVisitRecord], precision: int = 4) -> dict[str, list[PlaceVisitRecord]]:
    """Group visits whose centers round to the same coordinate key."""

    groups: dict[str, list[PlaceVisitRecord]] = {}
    for v in visits:
        groups.setdefault(coord_key(v.center.latitude, v.center.longitude, precision), []).append(v)
    return groups


class MapDataAssembler:
    """Build :class:`MapDisplayData` from provider records.

    Args:
        classifier: If given, each marker is classified against the other
            visits sharing its place key; otherwise markers stay (OTHER, LOW).
        region_params: Padding and minimum span of the bounding region.
        place_precision: Decimal places used to decide "same place".
    """

    def __init__(
        self,
        classifier: PlaceClassifier | None = None,
        region_params: RegionParams = RegionParams(),
        place_precision: int = 4,
    ) -> None:
        self._classifier = classifier
        self._region_params = region_params
        self._place_precision = place_precision

    def assemble(self, visits: Sequence[PlaceVisitRecord], routes: Sequence[RouteRecord]) -> MapDisplayData:
        """One marker per visit, one map route per route, plus a bounding region."""

        markers = self.build_markers(visits)
        map_routes = tuple(
            MapRoute(
                route_id=f"route_{r.route_id}",
                coordinates=tuple(r.coordinates),
                transport_type=r.transport_type,
                route_segment_id=r.route_id,
            )
            for r in routes
        )

        coords: list[Coordinate] = [m.coordinate for m in markers]
        for r in map_routes:
            coords.extend(r.coordinates)
        region = bounding_region(coords, self._region_params)

        logger.debug("assembled %s markers, %s routes, region=%s", len(markers), len(map_routes), region)
        return MapDisplayData(markers=markers, routes=map_routes, region=region)

    def build_markers(self, visits: Sequence[PlaceVisitRecord]) -> tuple[Marker, ...]:
        groups = group_by_place(visits, self._place_precision) if self._classifier is not None else {}
        markers: list[Marker] = []
        for v in visits:
            category, confidence = PlaceCategory.OTHER, CategoryConfidence.LOW
            if self._classifier is not None:
                key = coord_key(v.center.latitude, v.center.longitude, self._place_precision)
                history = [o for o in groups.get(key, ()) if o is not v]
                category, confidence = self._classifier.classify(v, history)
            markers.append(
                Marker(
                    marker_id=f"marker_{v.visit_id}",
                    coordinate=v.center,
                    title=marker_title(v),
                    snippet=v.address,
                    category=category,
                    confidence=confidence,
                    is_favorite=v.is_favorite,
                    visit_count=v.visit_count,
                    visit_id=v.visit_id,
                )
            )
        return tuple(markers)
