"""
Unit tests for trailmap/inspect.py
"""

from datetime import timedelta

from conftest import MONDAY, make_visit
from trailmap.inspect import inspect_visits


class TestInspectVisits:
    def test_summary(self):
        visits = [
            make_visit("a", 52.52, 13.405, start=MONDAY, hours=2.0, poi_name="Cafe", city="Berlin"),
            make_visit("b", 52.52, 13.405, start=MONDAY + timedelta(days=1), hours=1.0),
            make_visit("c", 53.55, 9.99, start=MONDAY + timedelta(days=2), hours=1.0, city="Hamburg"),
        ]
        res = inspect_visits(visits)

        assert res.visits == 3
        assert res.distinct_places == 2
        assert res.first_start == MONDAY
        assert res.last_end == MONDAY + timedelta(days=2, hours=1)
        assert res.total_duration_s == 4 * 3600.0
        assert (res.min_lat, res.max_lat) == (52.52, 53.55)
        assert (res.with_poi_name, res.with_city) == (1, 2)
        assert res.region is not None
        assert res.suggested_zoom == 9.0

    def test_empty(self):
        res = inspect_visits([])
        assert res.visits == 0
        assert res.region is None
        assert res.suggested_zoom is None
