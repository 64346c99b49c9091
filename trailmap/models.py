"""Data models for place visits, map markers, clusters and heatmap fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Final


DEFAULT_TZ: Final[str] = "UTC"


class PlaceCategory(Enum):
    HOME = "home"
    WORK = "work"
    FOOD = "food"
    SHOPPING = "shopping"
    FITNESS = "fitness"
    ENTERTAINMENT = "entertainment"
    TRAVEL = "travel"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    RELIGIOUS = "religious"
    SOCIAL = "social"
    OUTDOOR = "outdoor"
    SERVICE = "service"
    OTHER = "other"


class CategoryConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PlaceSignificance(Enum):
    """Importance tier of a place, most significant first."""

    PRIMARY = "primary"
    FREQUENT = "frequent"
    OCCASIONAL = "occasional"
    RARE = "rare"

    @property
    def rank(self) -> int:
        """Higher rank means more significant (RARE=0 ... PRIMARY=3)."""

        return _SIGNIFICANCE_RANK[self]


_SIGNIFICANCE_RANK: Final[dict[PlaceSignificance, int]] = {
    PlaceSignificance.PRIMARY: 3,
    PlaceSignificance.FREQUENT: 2,
    PlaceSignificance.OCCASIONAL: 1,
    PlaceSignificance.RARE: 0,
}


class TransportType(Enum):
    WALK = "walk"
    BICYCLE = "bicycle"
    CAR = "car"
    TRAIN = "train"
    PLANE = "plane"
    BOAT = "boat"
    UNKNOWN = "unknown"


class VisualizationMode(Enum):
    MARKERS = "markers"
    CLUSTERS = "clusters"
    HEATMAP = "heatmap"
    HYBRID = "hybrid"


class IntensityMode(Enum):
    UNIFORM = "uniform"
    VISIT_COUNT = "visit_count"
    DENSITY = "density"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 position in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class PlaceVisitRecord:
    """A stay at one place, as handed over by the visit data provider.

    Attributes:
        visit_id: Provider-side identifier.
        center: Center of the stay.
        start_time: Timezone-aware start of the stay.
        end_time: Timezone-aware end of the stay.
        poi_name: Point-of-interest name, if known.
        address: Approximate street address, if known.
        city: City name, if known.
        country_code: ISO country code, if known.
        visit_count: Visits accumulated over the place's history.
        total_duration_s: Cumulative seconds spent at the place.
        is_favorite: Whether the user starred the place.
    """

    visit_id: str
    center: Coordinate
    start_time: datetime
    end_time: datetime
    poi_name: str | None = None
    address: str | None = None
    city: str | None = None
    country_code: str | None = None
    visit_count: int = 1
    total_duration_s: float = 0.0
    is_favorite: bool = False

    @property
    def duration_seconds(self) -> float:
        """Duration of this single stay in seconds."""

        return max(0.0, (self.end_time - self.start_time).total_seconds())


@dataclass(frozen=True, slots=True)
class RouteRecord:
    """A travelled path between two places."""

    route_id: str
    coordinates: tuple[Coordinate, ...]
    transport_type: TransportType = TransportType.UNKNOWN
    start_time: datetime | None = None
    end_time: datetime | None = None


@dataclass(frozen=True, slots=True)
class Marker:
    """One displayable point for a visit-bearing location."""

    marker_id: str
    coordinate: Coordinate
    title: str
    snippet: str | None = None
    category: PlaceCategory = PlaceCategory.OTHER
    confidence: CategoryConfidence = CategoryConfidence.LOW
    is_favorite: bool = False
    visit_count: int = 1
    visit_id: str | None = None


@dataclass(frozen=True, slots=True)
class Cluster:
    """Markers collapsed into one point.

    Note:
        ``count`` always equals ``len(members)``.
    """

    cluster_id: str
    centroid: Coordinate
    members: tuple[Marker, ...]

    @property
    def count(self) -> int:
        return len(self.members)


@dataclass(frozen=True, slots=True)
class MapRoute:
    route_id: str
    coordinates: tuple[Coordinate, ...]
    transport_type: TransportType
    route_segment_id: str


@dataclass(frozen=True, slots=True)
class MapRegion:
    """Visible map area: center plus latitude/longitude span in degrees."""

    center: Coordinate
    latitude_delta: float
    longitude_delta: float


@dataclass(frozen=True, slots=True)
class CameraPosition:
    target: Coordinate
    zoom: float


@dataclass(frozen=True, slots=True)
class HeatmapPoint:
    coordinate: Coordinate
    weight: float


@dataclass(frozen=True, slots=True)
class HeatmapIntensityField:
    """Weighted points describing visit density.

    Blur radius, gradient and opacity belong to the renderer, not here.
    """

    points: tuple[HeatmapPoint, ...] = ()

    @property
    def max_weight(self) -> float:
        return max((p.weight for p in self.points), default=0.0)

    def normalized(self) -> HeatmapIntensityField:
        """Scale weights into [0, 1] by dividing through the maximum weight."""

        top = self.max_weight
        if top <= 0.0:
            return HeatmapIntensityField(
                points=tuple(HeatmapPoint(coordinate=p.coordinate, weight=0.0) for p in self.points)
            )
        return HeatmapIntensityField(
            points=tuple(
                HeatmapPoint(coordinate=p.coordinate, weight=min(1.0, max(0.0, p.weight / top)))
                for p in self.points
            )
        )


@dataclass(frozen=True, slots=True)
class MapDisplayData:
    """Everything the rendering surface needs for one frame of map content."""

    markers: tuple[Marker, ...] = ()
    clusters: tuple[Cluster, ...] = ()
    routes: tuple[MapRoute, ...] = ()
    heatmap: HeatmapIntensityField | None = None
    region: MapRegion | None = None


@dataclass(frozen=True, slots=True)
class FrequentPlace:
    """A spatial group of visits with aggregate statistics."""

    place_id: str
    center: Coordinate
    radius_m: float
    visit_count: int
    total_duration_s: float
    first_visit_time: datetime
    last_visit_time: datetime
    category: PlaceCategory
    confidence: CategoryConfidence
    significance: PlaceSignificance
    name: str | None = None
    address: str | None = None
    city: str | None = None
    country_code: str | None = None
    visit_ids: tuple[str, ...] = field(default=())
