"""Map viewport session state: loading, clustering/heatmap modes and selection.

All state lives in one immutable :class:`ViewportState` owned by a
:class:`ViewportController`. The only way to change it is
:meth:`ViewportController.dispatch` with one of the command objects below.

Loads are tagged with a request id. Starting a load supersedes any load still
in flight: a completion whose id is not the current one is dropped.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Final, Protocol, Sequence

from trailmap.assembler import MapDataAssembler, camera_for_region
from trailmap.clustering import Clusterer, GridClusterer, flatten_clusters
from trailmap.heatmap import HeatmapFieldGenerator
from trailmap.models import (
    CameraPosition,
    Cluster,
    IntensityMode,
    MapDisplayData,
    MapRoute,
    Marker,
    PlaceVisitRecord,
    RouteRecord,
    VisualizationMode,
)

logger = logging.getLogger(__name__)


class VisitDataProvider(Protocol):
    """Upstream source of visit and route records."""

    def get_visits(self, user_id: str, start_time: datetime, end_time: datetime) -> Sequence[PlaceVisitRecord]: ...

    def get_routes_in_range(self, user_id: str, start_time: datetime, end_time: datetime) -> Sequence[RouteRecord]: ...


class LoadPhase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


# mode -> (clustering_enabled, heatmap_enabled)
MODE_FLAGS: Final[dict[VisualizationMode, tuple[bool, bool]]] = {
    VisualizationMode.MARKERS: (False, False),
    VisualizationMode.CLUSTERS: (True, False),
    VisualizationMode.HEATMAP: (False, True),
    VisualizationMode.HYBRID: (True, False),
}


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    """Controller configuration.

    Zoom values are clamped to [min_zoom, max_zoom] before clustering.
    """

    min_zoom: float = 1.0
    max_zoom: float = 20.0
    initial_zoom: float = 15.0
    initial_mode: VisualizationMode = VisualizationMode.HYBRID
    intensity_mode: IntensityMode = IntensityMode.VISIT_COUNT

    def clamp_zoom(self, zoom: float) -> float:
        return min(self.max_zoom, max(self.min_zoom, zoom))


@dataclass(frozen=True, slots=True)
class ViewportState:
    phase: LoadPhase = LoadPhase.IDLE
    error: str | None = None
    data: MapDisplayData = MapDisplayData()
    mode: VisualizationMode = VisualizationMode.HYBRID
    clustering_enabled: bool = True
    heatmap_enabled: bool = False
    zoom: float = 15.0
    camera: CameraPosition | None = None
    selected_marker: Marker | None = None
    selected_cluster: Cluster | None = None
    selected_route: MapRoute | None = None
    map_ready: bool = False
    request_id: int = 0
    # every marker of the last load, in assembled order
    loaded_markers: tuple[Marker, ...] = ()

    @property
    def is_loading(self) -> bool:
        return self.phase is LoadPhase.LOADING


# --- commands -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LoadStarted:
    pass


@dataclass(frozen=True, slots=True)
class LoadSucceeded:
    request_id: int
    visits: tuple[PlaceVisitRecord, ...]
    routes: tuple[RouteRecord, ...]


@dataclass(frozen=True, slots=True)
class LoadFailed:
    request_id: int
    message: str


@dataclass(frozen=True, slots=True)
class ZoomChanged:
    zoom: float


@dataclass(frozen=True, slots=True)
class SetVisualizationMode:
    mode: VisualizationMode


@dataclass(frozen=True, slots=True)
class ToggleClustering:
    pass


@dataclass(frozen=True, slots=True)
class ToggleHeatmap:
    pass


@dataclass(frozen=True, slots=True)
class MarkerTapped:
    marker: Marker


@dataclass(frozen=True, slots=True)
class ClusterTapped:
    cluster: Cluster


@dataclass(frozen=True, slots=True)
class RouteTapped:
    route: MapRoute


@dataclass(frozen=True, slots=True)
class MapTapped:
    pass


@dataclass(frozen=True, slots=True)
class CameraMoved:
    camera: CameraPosition


@dataclass(frozen=True, slots=True)
class MapReady:
    pass


@dataclass(frozen=True, slots=True)
class ClearError:
    pass


Command = (
    LoadStarted
    | LoadSucceeded
    | LoadFailed
    | ZoomChanged
    | SetVisualizationMode
    | ToggleClustering
    | ToggleHeatmap
    | MarkerTapped
    | ClusterTapped
    | RouteTapped
    | MapTapped
    | CameraMoved
    | MapReady
    | ClearError
)

Listener = Callable[[ViewportState], None]


class ViewportController:
    """Single-writer holder of the map session state.

    Args:
        provider: Upstream visit/route source used by :meth:`load`.
        clusterer: Clustering strategy (grid by default).
        heatmap: Heatmap field generator.
        assembler: Builds markers/routes/region from provider records.
        config: Zoom range, initial zoom/mode and heatmap intensity mode.
    """

    def __init__(
        self,
        provider: VisitDataProvider | None = None,
        clusterer: Clusterer | None = None,
        heatmap: HeatmapFieldGenerator | None = None,
        assembler: MapDataAssembler | None = None,
        config: ViewportConfig = ViewportConfig(),
    ) -> None:
        self._provider = provider
        self._clusterer: Clusterer = clusterer if clusterer is not None else GridClusterer()
        self._heatmap = heatmap if heatmap is not None else HeatmapFieldGenerator()
        self._assembler = assembler if assembler is not None else MapDataAssembler()
        self._config = config
        clustering, heat = MODE_FLAGS[config.initial_mode]
        self._state = ViewportState(
            mode=config.initial_mode,
            clustering_enabled=clustering,
            heatmap_enabled=heat,
            zoom=config.clamp_zoom(config.initial_zoom),
        )
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def config(self) -> ViewportConfig:
        return self._config

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change. Returns an unsubscribe function."""

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, command: Command) -> ViewportState:
        """Apply one command and return the resulting state."""

        with self._lock:
            old = self._state
            new = self._reduce(old, command)
            self._state = new
            listeners = list(self._listeners) if new is not old else []
        for listener in listeners:
            listener(new)
        return new

    # --- loading ----------------------------------------------------------

    def load(self, user_id: str, start_time: datetime, end_time: datetime) -> ViewportState:
        """Fetch and apply map data synchronously."""

        request_id = self.dispatch(LoadStarted()).request_id
        return self.dispatch(self._fetch(request_id, user_id, start_time, end_time))

    def submit_load(
        self,
        executor: Executor,
        user_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> Future[ViewportState]:
        """Fetch on ``executor``; the completion is applied only if no newer load started."""

        request_id = self.dispatch(LoadStarted()).request_id
        fetch = executor.submit(self._fetch, request_id, user_id, start_time, end_time)
        done: Future[ViewportState] = Future()

        def _apply(f: Future[LoadSucceeded | LoadFailed]) -> None:
            try:
                done.set_result(self.dispatch(f.result()))
            except Exception as exc:  # cancelled futures or a failing listener
                done.set_exception(exc)

        fetch.add_done_callback(_apply)
        return done

    def _fetch(
        self,
        request_id: int,
        user_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> LoadSucceeded | LoadFailed:
        if self._provider is None:
            return LoadFailed(request_id=request_id, message="no visit data provider configured")
        try:
            visits = tuple(self._provider.get_visits(user_id, start_time, end_time))
            routes = tuple(self._provider.get_routes_in_range(user_id, start_time, end_time))
        except Exception as exc:  # provider failures become a load-level error
            logger.exception("Failed to load map data for %s", user_id)
            return LoadFailed(request_id=request_id, message=str(exc) or exc.__class__.__name__)
        return LoadSucceeded(request_id=request_id, visits=visits, routes=routes)

    # --- reducer ----------------------------------------------------------

    def _reduce(self, s: ViewportState, cmd: Command) -> ViewportState:
        if isinstance(cmd, LoadStarted):
            return replace(s, phase=LoadPhase.LOADING, error=None, request_id=s.request_id + 1)

        if isinstance(cmd, (LoadSucceeded, LoadFailed)) and cmd.request_id != s.request_id:
            logger.debug("dropping stale load result %s (current %s)", cmd.request_id, s.request_id)
            return s

        if isinstance(cmd, LoadSucceeded):
            return self._apply_loaded(s, cmd)

        if isinstance(cmd, LoadFailed):
            # keep whatever was loaded before
            logger.error("Failed to load map data: %s", cmd.message)
            return replace(s, phase=LoadPhase.READY, error=cmd.message)

        if isinstance(cmd, ZoomChanged):
            return self._apply_zoom(s, cmd.zoom)

        if isinstance(cmd, SetVisualizationMode):
            clustering, heat = MODE_FLAGS[cmd.mode]
            return self._apply_flags(replace(s, mode=cmd.mode), clustering, heat)

        if isinstance(cmd, ToggleClustering):
            return self._apply_flags(s, not s.clustering_enabled, s.heatmap_enabled)

        if isinstance(cmd, ToggleHeatmap):
            return self._apply_flags(s, s.clustering_enabled, not s.heatmap_enabled)

        if isinstance(cmd, MarkerTapped):
            logger.debug("Marker selected: %s", cmd.marker.title)
            return replace(s, selected_marker=cmd.marker, selected_cluster=None, selected_route=None)

        if isinstance(cmd, ClusterTapped):
            logger.debug("Cluster selected: %s markers", cmd.cluster.count)
            return replace(s, selected_marker=None, selected_cluster=cmd.cluster, selected_route=None)

        if isinstance(cmd, RouteTapped):
            logger.debug("Route selected: %s", cmd.route.transport_type.value)
            return replace(s, selected_marker=None, selected_cluster=None, selected_route=cmd.route)

        if isinstance(cmd, MapTapped):
            return replace(s, selected_marker=None, selected_cluster=None, selected_route=None)

        if isinstance(cmd, CameraMoved):
            moved = replace(s, camera=cmd.camera)
            if self._config.clamp_zoom(cmd.camera.zoom) != s.zoom:
                return self._apply_zoom(moved, cmd.camera.zoom)
            return moved

        if isinstance(cmd, MapReady):
            return replace(s, map_ready=True)

        if isinstance(cmd, ClearError):
            return replace(s, error=None)

        raise TypeError(f"unknown viewport command: {cmd!r}")

    def _apply_loaded(self, s: ViewportState, cmd: LoadSucceeded) -> ViewportState:
        assembled = self._assembler.assemble(cmd.visits, cmd.routes)
        markers = list(assembled.markers)
        clusters: list[Cluster] = []
        singles = markers
        if s.clustering_enabled:
            clusters, singles = self._clusterer.cluster(markers, s.zoom)
        heat = self._heatmap.generate(markers, self._config.intensity_mode) if s.heatmap_enabled else None

        camera = camera_for_region(assembled.region)
        logger.info(
            "Loaded map data: %s markers, %s clusters, %s routes",
            len(markers),
            len(clusters),
            len(assembled.routes),
        )
        return replace(
            s,
            phase=LoadPhase.READY,
            error=None,
            data=replace(assembled, markers=tuple(singles), clusters=tuple(clusters), heatmap=heat),
            camera=camera if camera is not None else s.camera,
            selected_marker=None,
            selected_cluster=None,
            selected_route=None,
            loaded_markers=tuple(markers),
        )

    def _apply_zoom(self, s: ViewportState, zoom: float) -> ViewportState:
        zoom = self._config.clamp_zoom(zoom)
        s = replace(s, zoom=zoom)
        if not s.clustering_enabled:
            return s
        return self._recluster(s)

    def _recluster(self, s: ViewportState) -> ViewportState:
        markers = list(s.loaded_markers)
        clusters, singles = self._clusterer.cluster(markers, s.zoom)
        return replace(
            s,
            data=replace(s.data, markers=tuple(singles), clusters=tuple(clusters)),
            selected_cluster=None,
        )

    def _apply_flags(self, s: ViewportState, clustering: bool, heat: bool) -> ViewportState:
        if clustering and not s.clustering_enabled:
            s = self._recluster(replace(s, clustering_enabled=True))
        elif not clustering and s.clustering_enabled:
            flat = flatten_clusters(s.data.clusters, s.data.markers)
            s = replace(
                s,
                clustering_enabled=False,
                data=replace(s.data, markers=tuple(flat), clusters=()),
                selected_cluster=None,
            )

        if heat and not s.heatmap_enabled:
            field = self._heatmap.generate(list(s.loaded_markers), self._config.intensity_mode)
            s = replace(s, heatmap_enabled=True, data=replace(s.data, heatmap=field))
        elif not heat and s.heatmap_enabled:
            s = replace(s, heatmap_enabled=False, data=replace(s.data, heatmap=None))
        return s
