"""Marker clustering strategies.

Two interchangeable strategies share one contract::

    clusterer.cluster(markers, zoom_level) -> (clusters, singletons)

Across one pass every input marker ends up exactly once, either as a member
of one cluster or as a singleton.
"""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from typing import Protocol, Sequence

from trailmap.geo import is_within, mean_center
from trailmap.models import Cluster, Marker

logger = logging.getLogger(__name__)

ClusterResult = tuple[list[Cluster], list[Marker]]


class Clusterer(Protocol):
    def cluster(self, markers: Sequence[Marker], zoom_level: float) -> ClusterResult: ...


@dataclass(frozen=True, slots=True)
class GridParams:
    """Parameters of the grid clusterer.

    The cell edge in degrees is ``grid_size * 2 ** (max_zoom - zoom) / tile_scale``:
    at ``max_zoom`` a cell spans ``grid_size`` pixels of a ``tile_scale``-pixel tile.
    """

    grid_size: float = 60.0
    max_zoom: float = 20.0
    tile_scale: float = 256.0
    min_cluster_size: int = 2


@dataclass(frozen=True, slots=True)
class DensityParams:
    """Parameters of the density clusterer (neighbor radius in meters)."""

    radius_m: float = 100.0
    min_cluster_size: int = 2


# Bounds keep cell_of finite at extreme zoom levels.
MIN_CELL_DEG = 1e-300
MAX_CELL_DEG = sys.float_info.max


def _check_min_cluster_size(value: int) -> None:
    if value < 1:
        raise ValueError(f"min_cluster_size must be >= 1, got {value}")


def cell_size(zoom_level: float, params: GridParams = GridParams()) -> float:
    """Grid cell edge length in degrees; halves with every zoom step.

    Clamped to ``[MIN_CELL_DEG, MAX_CELL_DEG]`` so out-of-range zoom levels
    never overflow or underflow to zero.
    """

    try:
        size = params.grid_size * 2.0 ** (params.max_zoom - zoom_level) / params.tile_scale
    except OverflowError:
        return MAX_CELL_DEG
    return min(max(size, MIN_CELL_DEG), MAX_CELL_DEG)


def cell_of(marker: Marker, size: float) -> tuple[int, int]:
    """(column, row) of the grid cell containing ``marker``."""

    return (
        math.floor(marker.coordinate.longitude / size),
        math.floor(marker.coordinate.latitude / size),
    )


class GridClusterer:
    """Bucket markers into zoom-dependent square cells.

    Cells holding at least ``min_cluster_size`` markers become one cluster at
    the mean of their members; the rest pass through as singletons. Cells are
    emitted in the order they are first seen in the input, so the output is
    deterministic for a given (markers, zoom).

    Markers in adjacent cells are never merged, even when closer than a cell
    edge.
    """

    def __init__(self, params: GridParams = GridParams()) -> None:
        _check_min_cluster_size(params.min_cluster_size)
        self._params = params

    @property
    def params(self) -> GridParams:
        return self._params

    def cell_size(self, zoom_level: float) -> float:
        return cell_size(zoom_level, self._params)

    def cluster(self, markers: Sequence[Marker], zoom_level: float) -> ClusterResult:
        if not markers:
            return [], []

        size = self.cell_size(zoom_level)
        cells: dict[tuple[int, int], list[Marker]] = {}
        for m in markers:
            cells.setdefault(cell_of(m, size), []).append(m)

        clusters: list[Cluster] = []
        singletons: list[Marker] = []
        for (cx, cy), members in cells.items():
            if len(members) >= self._params.min_cluster_size:
                clusters.append(
                    Cluster(
                        cluster_id=f"cluster_{cx}_{cy}",
                        centroid=mean_center([m.coordinate for m in members]),
                        members=tuple(members),
                    )
                )
            else:
                singletons.extend(members)

        logger.debug(
            "grid clustering zoom=%s cell=%.6f deg: %s markers -> %s clusters, %s singletons",
            zoom_level,
            size,
            len(markers),
            len(clusters),
            len(singletons),
        )
        return clusters, singletons


def canonical_order(markers: Sequence[Marker]) -> list[Marker]:
    """Sort markers by (latitude, longitude, id) so density passes are reproducible."""

    return sorted(markers, key=lambda m: (m.coordinate.latitude, m.coordinate.longitude, m.marker_id))


class DensityClusterer:
    """Single-pass "mark visited" density clustering.

    Markers are first put in :func:`canonical_order`. Each not-yet-visited
    marker gathers itself plus every other unvisited marker within
    ``radius_m``; a group of at least ``min_cluster_size`` becomes a cluster
    and all its members are marked visited, otherwise only the current marker
    is emitted as a singleton. There is no transitive border-point merging.

    ``zoom_level`` is accepted for contract compatibility and ignored.
    """

    def __init__(self, params: DensityParams = DensityParams()) -> None:
        _check_min_cluster_size(params.min_cluster_size)
        if params.radius_m <= 0:
            raise ValueError(f"radius_m must be > 0, got {params.radius_m}")
        self._params = params

    @property
    def params(self) -> DensityParams:
        return self._params

    def cluster(self, markers: Sequence[Marker], zoom_level: float = 0.0) -> ClusterResult:
        _ = zoom_level
        if not markers:
            return [], []

        ordered = canonical_order(markers)
        visited = [False] * len(ordered)
        clusters: list[Cluster] = []
        singletons: list[Marker] = []

        for i, marker in enumerate(ordered):
            if visited[i]:
                continue
            neighbor_idx = [i] + [
                j
                for j in range(len(ordered))
                if j != i and not visited[j] and is_within(marker.coordinate, ordered[j].coordinate, self._params.radius_m)
            ]
            if len(neighbor_idx) >= self._params.min_cluster_size:
                members = tuple(ordered[j] for j in neighbor_idx)
                for j in neighbor_idx:
                    visited[j] = True
                clusters.append(
                    Cluster(
                        cluster_id=f"cluster_{marker.marker_id}",
                        centroid=mean_center([m.coordinate for m in members]),
                        members=members,
                    )
                )
            else:
                visited[i] = True
                singletons.append(marker)

        logger.debug(
            "density clustering radius=%sm: %s markers -> %s clusters, %s singletons",
            self._params.radius_m,
            len(markers),
            len(clusters),
            len(singletons),
        )
        return clusters, singletons


def flatten_clusters(clusters: Sequence[Cluster], singletons: Sequence[Marker]) -> list[Marker]:
    """Singletons followed by every cluster's members, in order; nothing is recomputed."""

    flat = list(singletons)
    for c in clusters:
        flat.extend(c.members)
    return flat


def make_clusterer(
    strategy: str,
    *,
    grid: GridParams = GridParams(),
    density: DensityParams = DensityParams(),
) -> Clusterer:
    """Build a clusterer by name: "grid" (default) or "density"."""

    if strategy == "grid":
        return GridClusterer(grid)
    if strategy == "density":
        return DensityClusterer(density)
    raise ValueError(f"unknown clustering strategy: {strategy!r} (expected 'grid' or 'density')")
