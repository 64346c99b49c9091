"""Shared factories for trailmap tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from trailmap.models import Coordinate, Marker, PlaceVisitRecord, RouteRecord, TransportType

# 2025-01-06 is a Monday.
MONDAY = datetime(2025, 1, 6, tzinfo=UTC)
SATURDAY = datetime(2025, 1, 4, tzinfo=UTC)


def make_visit(
    visit_id: str = "v1",
    lat: float = 52.52,
    lon: float = 13.405,
    start: datetime = MONDAY,
    hours: float = 1.0,
    **kwargs: object,
) -> PlaceVisitRecord:
    return PlaceVisitRecord(
        visit_id=visit_id,
        center=Coordinate(latitude=lat, longitude=lon),
        start_time=start,
        end_time=start + timedelta(hours=hours),
        **kwargs,  # type: ignore[arg-type]
    )


def make_marker(marker_id: str, lat: float, lon: float, visit_count: int = 1) -> Marker:
    return Marker(
        marker_id=marker_id,
        coordinate=Coordinate(latitude=lat, longitude=lon),
        title=marker_id,
        visit_count=visit_count,
    )


def make_route(route_id: str, *coords: tuple[float, float]) -> RouteRecord:
    return RouteRecord(
        route_id=route_id,
        coordinates=tuple(Coordinate(latitude=lat, longitude=lon) for lat, lon in coords),
        transport_type=TransportType.WALK,
    )


@pytest.fixture
def berlin_markers() -> list[Marker]:
    """Three markers within a few hundred meters plus one in Hamburg."""

    return [
        make_marker("a", 52.5200, 13.4050, visit_count=3),
        make_marker("b", 52.5205, 13.4055, visit_count=1),
        make_marker("c", 52.5198, 13.4047, visit_count=7),
        make_marker("hh", 53.5511, 9.9937, visit_count=2),
    ]


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
