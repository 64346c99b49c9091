"""
Unit tests for trailmap/geo.py
"""

import pytest

from trailmap.geo import bounds, coord_key, distance_m, haversine_m, is_within, mean_center
from trailmap.models import Coordinate


class TestDistances:
    def test_same_point_is_zero(self):
        assert haversine_m(52.52, 13.405, 52.52, 13.405) == 0.0

    def test_one_degree_of_latitude(self):
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)

    def test_berlin_to_hamburg(self):
        d = distance_m(Coordinate(52.5200, 13.4050), Coordinate(53.5511, 9.9937))
        assert d == pytest.approx(255_000, rel=0.02)

    def test_is_within_includes_boundary(self):
        a, b = Coordinate(0.0, 0.0), Coordinate(0.001, 0.0)
        d = distance_m(a, b)
        assert is_within(a, b, d)
        assert not is_within(a, b, d - 0.01)


class TestAggregates:
    def test_mean_center(self):
        c = mean_center([Coordinate(0, 0), Coordinate(2, 4)])
        assert (c.latitude, c.longitude) == (1.0, 2.0)

    def test_mean_center_of_nothing_raises(self):
        with pytest.raises(ValueError):
            mean_center([])

    def test_bounds(self):
        assert bounds([Coordinate(1, 5), Coordinate(-2, 7), Coordinate(0, -3)]) == (-2, 1, -3, 7)

    def test_bounds_of_nothing(self):
        assert bounds([]) is None

    def test_coord_key_rounds(self):
        assert coord_key(52.520049, 13.40501, 4) == "52.5200,13.4050"
