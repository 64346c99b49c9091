"""
Unit tests for trailmap/classifier.py

Keyword matching, visit-pattern inference and significance tiers.
"""

from datetime import timedelta

import pytest

from conftest import MONDAY, SATURDAY, make_visit
from trailmap.classifier import PlaceClassifier, analyze_pattern, determine_significance, match_keywords
from trailmap.models import CategoryConfidence, PlaceCategory, PlaceSignificance


def _daily(n, start, hours, prefix="h"):
    return [make_visit(f"{prefix}{i}", start=start + timedelta(days=i), hours=hours) for i in range(n)]


def _weekly(n, start, hours, prefix="w"):
    return [make_visit(f"{prefix}{i}", start=start + timedelta(weeks=i), hours=hours) for i in range(n)]


class TestKeywordMatch:
    """POI keyword matching always wins with HIGH confidence."""

    @pytest.mark.parametrize(
        "poi_name, expected",
        [
            ("Central Perk Cafe", PlaceCategory.FOOD),
            ("STARBUCKS COFFEE", PlaceCategory.FOOD),
            ("Westfield Mall", PlaceCategory.SHOPPING),
            ("McFit Gym", PlaceCategory.FITNESS),
            ("Pergamon Museum", PlaceCategory.ENTERTAINMENT),
            ("Berlin Hbf Station", PlaceCategory.TRAVEL),
            ("Charite Hospital", PlaceCategory.HEALTHCARE),
            ("Humboldt University", PlaceCategory.EDUCATION),
            ("St. Mary's Church", PlaceCategory.RELIGIOUS),
            ("Tiergarten Park", PlaceCategory.OUTDOOR),
            ("Deutsche Bank", PlaceCategory.SERVICE),
        ],
    )
    def test_keyword_table(self, poi_name, expected):
        classifier = PlaceClassifier()
        assert classifier.classify(make_visit(poi_name=poi_name)) == (expected, CategoryConfidence.HIGH)

    def test_earlier_category_wins_when_several_match(self):
        """FOOD is listed before ENTERTAINMENT, so a museum cafe is FOOD."""
        assert match_keywords("Museum Cafe") is PlaceCategory.FOOD

    def test_bar_keyword_shadows_barber(self):
        assert match_keywords("Barber Shop") is PlaceCategory.FOOD

    def test_unknown_name_has_no_match(self):
        assert match_keywords("Xyz 42") is None
        assert match_keywords(None) is None
        assert match_keywords("") is None

    def test_restaurant_beats_home_pattern(self):
        """A restaurant name wins even when history looks like HOME."""
        history = _daily(12, MONDAY, hours=6.0)
        visit = make_visit("now", start=MONDAY + timedelta(days=20), hours=6.0, poi_name="Luigi's Restaurant")
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.FOOD, CategoryConfidence.HIGH)

    def test_custom_keyword_table(self):
        classifier = PlaceClassifier(keywords=[(PlaceCategory.WORK, ["coworking"])])
        assert classifier.classify(make_visit(poi_name="Factory Coworking")) == (
            PlaceCategory.WORK,
            CategoryConfidence.HIGH,
        )
        assert classifier.classify(make_visit(poi_name="Central Perk Cafe")) == (
            PlaceCategory.OTHER,
            CategoryConfidence.LOW,
        )


class TestPatternInference:
    """Pattern rules apply only without a keyword match and with history."""

    def test_long_frequent_stays_are_home(self):
        history = _daily(12, MONDAY, hours=6.0)
        visit = make_visit("now", start=MONDAY + timedelta(days=13), hours=6.0)
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.HOME, CategoryConfidence.MEDIUM)

    def test_weekday_daytime_stays_are_work(self):
        start = MONDAY.replace(hour=9, minute=30)
        history = _weekly(5, start, hours=3.0)
        visit = make_visit("now", start=start + timedelta(weeks=5), hours=3.0)
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.WORK, CategoryConfidence.MEDIUM)

    def test_mean_exactly_four_hours_is_not_home(self):
        """The HOME duration bound is strict; these daytime stays fall through to WORK."""
        start = MONDAY.replace(hour=10)
        history = _weekly(9, start, hours=4.0)
        visit = make_visit("now", start=start + timedelta(weeks=9), hours=4.0)
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.WORK, CategoryConfidence.MEDIUM)

    def test_long_weekend_evenings_are_social(self):
        start = SATURDAY.replace(hour=20)
        history = _weekly(2, start, hours=3.0)
        visit = make_visit("now", start=start + timedelta(weeks=2), hours=3.0)
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.SOCIAL, CategoryConfidence.LOW)

    def test_short_evenings_are_entertainment(self):
        start = MONDAY.replace(hour=19)
        history = _weekly(2, start, hours=1.0)
        visit = make_visit("now", start=start + timedelta(weeks=2), hours=1.0)
        assert PlaceClassifier().classify(visit, history) == (
            PlaceCategory.ENTERTAINMENT,
            CategoryConfidence.LOW,
        )

    def test_early_morning_weekday_counts_toward_no_window(self):
        start = MONDAY.replace(hour=7)
        history = _weekly(4, start, hours=1.0)
        visit = make_visit("now", start=start + timedelta(weeks=4), hours=1.0)
        assert PlaceClassifier().classify(visit, history) == (PlaceCategory.OTHER, CategoryConfidence.LOW)

    def test_no_history_falls_back_to_other(self):
        assert PlaceClassifier().classify(make_visit(hours=10.0)) == (PlaceCategory.OTHER, CategoryConfidence.LOW)

    def test_too_few_visits_fall_back_to_other(self):
        start = SATURDAY.replace(hour=20)
        visit = make_visit("now", start=start + timedelta(weeks=1), hours=3.0)
        assert PlaceClassifier().classify(visit, [make_visit("w0", start=start, hours=3.0)]) == (
            PlaceCategory.OTHER,
            CategoryConfidence.LOW,
        )

    def test_daytime_window_boundaries(self):
        late = make_visit("a", start=MONDAY.replace(hour=17, minute=59))
        evening = make_visit("b", start=MONDAY.replace(hour=18))
        pattern = analyze_pattern([late, evening])
        assert pattern.weekday_daytime_fraction == pytest.approx(0.5)
        assert pattern.evening_or_weekend_fraction == pytest.approx(0.5)

    def test_time_windows_use_classifier_timezone(self):
        """01:00 UTC on Tuesday is 20:00 Monday in New York."""
        start = MONDAY.replace(hour=0) + timedelta(days=1, hours=1)
        history = _weekly(2, start, hours=1.0)
        visit = make_visit("now", start=start + timedelta(weeks=2), hours=1.0)

        assert PlaceClassifier(tz_name="America/New_York").classify(visit, history) == (
            PlaceCategory.ENTERTAINMENT,
            CategoryConfidence.LOW,
        )
        assert PlaceClassifier(tz_name="UTC").classify(visit, history) == (
            PlaceCategory.OTHER,
            CategoryConfidence.LOW,
        )

    def test_invalid_timezone_raises(self):
        with pytest.raises(ValueError):
            analyze_pattern([make_visit()], tz_name="Not/AZone")


class TestDetermineSignificance:
    """Significance tiers, first match wins."""

    @pytest.mark.parametrize(
        "visits, days_ago, expected",
        [
            (25, 0, PlaceSignificance.PRIMARY),
            (20, 7, PlaceSignificance.PRIMARY),
            (20, 8, PlaceSignificance.FREQUENT),
            (10, 30, PlaceSignificance.FREQUENT),
            (10, 31, PlaceSignificance.OCCASIONAL),
            (3, 90, PlaceSignificance.OCCASIONAL),
            (3, 91, PlaceSignificance.RARE),
            (2, 0, PlaceSignificance.RARE),
            (1, 400, PlaceSignificance.RARE),
        ],
    )
    def test_tiers(self, now, visits, days_ago, expected):
        assert determine_significance(visits, 0.0, now - timedelta(days=days_ago), now=now) is expected

    def test_partial_days_are_truncated(self, now):
        last = now - timedelta(days=7, hours=23)
        assert determine_significance(20, 0.0, last, now=now) is PlaceSignificance.PRIMARY

    def test_defaults_to_current_time(self):
        from datetime import UTC, datetime

        assert determine_significance(25, 3600.0, datetime.now(UTC)) is PlaceSignificance.PRIMARY
