"""Heatmap intensity fields from markers."""

from __future__ import annotations

from typing import Iterable, Sequence

from trailmap.geo import is_within
from trailmap.models import Coordinate, HeatmapIntensityField, HeatmapPoint, IntensityMode, Marker

DENSITY_RADIUS_M = 1000.0


class HeatmapFieldGenerator:
    """Turn markers into weighted points.

    Only raw weights are produced; use :meth:`HeatmapIntensityField.normalized`
    when a renderer wants values in [0, 1].
    """

    def __init__(self, density_radius_m: float = DENSITY_RADIUS_M) -> None:
        if density_radius_m <= 0:
            raise ValueError(f"density_radius_m must be > 0, got {density_radius_m}")
        self._density_radius_m = density_radius_m

    def generate(
        self,
        markers: Sequence[Marker],
        intensity_mode: IntensityMode = IntensityMode.VISIT_COUNT,
    ) -> HeatmapIntensityField:
        """Weight each marker according to ``intensity_mode``.

        - UNIFORM: 1.0 for every marker.
        - VISIT_COUNT: the marker's visit count.
        - DENSITY: how many other markers lie within the density radius.
        """

        if not markers:
            return HeatmapIntensityField()

        points = tuple(
            HeatmapPoint(coordinate=m.coordinate, weight=self._weight(i, m, markers, intensity_mode))
            for i, m in enumerate(markers)
        )
        return HeatmapIntensityField(points=points)

    def _weight(self, index: int, marker: Marker, markers: Sequence[Marker], mode: IntensityMode) -> float:
        if mode is IntensityMode.UNIFORM:
            return 1.0
        if mode is IntensityMode.VISIT_COUNT:
            return float(max(0, marker.visit_count))
        if mode is IntensityMode.DENSITY:
            return float(
                sum(
                    1
                    for j, other in enumerate(markers)
                    if j != index and is_within(marker.coordinate, other.coordinate, self._density_radius_m)
                )
            )
        raise ValueError(f"unknown intensity mode: {mode!r}")


def generate_from_coordinates(coordinates: Iterable[Coordinate]) -> HeatmapIntensityField:
    """Uniform-weight field from bare coordinates (e.g. route points)."""

    return HeatmapIntensityField(points=tuple(HeatmapPoint(coordinate=c, weight=1.0) for c in coordinates))


def generate_weighted(pairs: Iterable[tuple[Coordinate, float]]) -> HeatmapIntensityField:
    """Field from explicit (coordinate, weight) pairs.

    Raises:
        ValueError: If any weight is negative.
    """

    points: list[HeatmapPoint] = []
    for coord, weight in pairs:
        if weight < 0:
            raise ValueError(f"heatmap weight must be >= 0, got {weight} at {coord}")
        points.append(HeatmapPoint(coordinate=coord, weight=float(weight)))
    return HeatmapIntensityField(points=tuple(points))
