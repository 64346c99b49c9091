"""Heuristic place classification and significance tiers.

Classification is an ordered decision list, first match wins:

1. POI keyword match (case-insensitive substring) -> HIGH confidence.
2. Visit-pattern inference over the place's history -> MEDIUM or LOW.
3. Fallback -> (OTHER, LOW).

Keyword lists and pattern thresholds are plain data so that tuning them does
not touch control flow. Both ``classify`` and ``determine_significance`` are
pure: no I/O, no cached state, no failure path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final, Sequence

from trailmap.models import DEFAULT_TZ, CategoryConfidence, PlaceCategory, PlaceSignificance, PlaceVisitRecord
from trailmap.timeutils import local_weekday_and_hour, whole_days_between

logger = logging.getLogger(__name__)

# Ordered: the first category with a matching keyword wins ("bar" is FOOD even inside "barber").
CATEGORY_KEYWORDS: Final[tuple[tuple[PlaceCategory, tuple[str, ...]], ...]] = (
    (
        PlaceCategory.FOOD,
        ("restaurant", "cafe", "coffee", "diner", "pizzeria", "burger", "sushi", "bakery", "bar", "pub", "bistro"),
    ),
    (
        PlaceCategory.SHOPPING,
        ("mall", "shop", "store", "market", "boutique", "supermarket", "grocery"),
    ),
    (
        PlaceCategory.FITNESS,
        ("gym", "fitness", "yoga", "sports", "pool", "stadium", "arena"),
    ),
    (
        PlaceCategory.ENTERTAINMENT,
        ("cinema", "theater", "theatre", "museum", "gallery", "concert", "club", "arcade"),
    ),
    (
        PlaceCategory.TRAVEL,
        ("airport", "station", "terminal", "hotel", "motel", "hostel", "resort"),
    ),
    (
        PlaceCategory.HEALTHCARE,
        ("hospital", "clinic", "doctor", "dentist", "pharmacy", "medical"),
    ),
    (
        PlaceCategory.EDUCATION,
        ("school", "university", "college", "library", "academy"),
    ),
    (
        PlaceCategory.RELIGIOUS,
        ("church", "mosque", "temple", "synagogue", "chapel"),
    ),
    (
        PlaceCategory.OUTDOOR,
        ("park", "garden", "beach", "trail", "nature", "forest"),
    ),
    (
        PlaceCategory.SERVICE,
        ("bank", "atm", "post office", "salon", "barber", "laundry", "gas station"),
    ),
)

WINDOW_WEEKDAY_DAYTIME: Final[str] = "weekday_daytime"
WINDOW_EVENING_OR_WEEKEND: Final[str] = "evening_or_weekend"

DAYTIME_START_HOUR: Final[int] = 9
DAYTIME_END_HOUR: Final[int] = 17  # inclusive: 17:59 still counts as daytime
EVENING_START_HOUR: Final[int] = 18


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One row of the pattern-inference table.

    A rule matches when all of its conditions hold:
      - visit count >= ``min_visits``
      - mean visit duration > ``min_mean_hours`` (if set)
      - share of visits in ``window`` > ``min_window_fraction`` (if window set)
    """

    category: PlaceCategory
    confidence: CategoryConfidence
    min_visits: int
    min_mean_hours: float | None = None
    window: str | None = None
    min_window_fraction: float = 0.6


PATTERN_RULES: Final[tuple[PatternRule, ...]] = (
    PatternRule(PlaceCategory.HOME, CategoryConfidence.MEDIUM, min_visits=10, min_mean_hours=4.0),
    PatternRule(
        PlaceCategory.WORK,
        CategoryConfidence.MEDIUM,
        min_visits=5,
        min_mean_hours=2.0,
        window=WINDOW_WEEKDAY_DAYTIME,
    ),
    PatternRule(
        PlaceCategory.SOCIAL,
        CategoryConfidence.LOW,
        min_visits=3,
        min_mean_hours=2.0,
        window=WINDOW_EVENING_OR_WEEKEND,
    ),
    PatternRule(PlaceCategory.ENTERTAINMENT, CategoryConfidence.LOW, min_visits=3, window=WINDOW_EVENING_OR_WEEKEND),
)


@dataclass(frozen=True, slots=True)
class SignificanceRule:
    significance: PlaceSignificance
    min_visits: int
    max_days_since_last: int


SIGNIFICANCE_RULES: Final[tuple[SignificanceRule, ...]] = (
    SignificanceRule(PlaceSignificance.PRIMARY, min_visits=20, max_days_since_last=7),
    SignificanceRule(PlaceSignificance.FREQUENT, min_visits=10, max_days_since_last=30),
    SignificanceRule(PlaceSignificance.OCCASIONAL, min_visits=3, max_days_since_last=90),
)


@dataclass(frozen=True, slots=True)
class VisitPattern:
    """Aggregate temporal statistics over a place's visits."""

    visit_count: int
    mean_duration_s: float
    weekday_daytime_fraction: float
    evening_or_weekend_fraction: float

    def window_fraction(self, window: str) -> float:
        if window == WINDOW_WEEKDAY_DAYTIME:
            return self.weekday_daytime_fraction
        if window == WINDOW_EVENING_OR_WEEKEND:
            return self.evening_or_weekend_fraction
        raise ValueError(f"unknown time window: {window!r}")


def match_keywords(
    poi_name: str | None,
    keywords: Sequence[tuple[PlaceCategory, Sequence[str]]] = CATEGORY_KEYWORDS,
) -> PlaceCategory | None:
    """Return the first category whose keyword occurs in ``poi_name``."""

    if not poi_name:
        return None
    normalized = poi_name.lower()
    for category, words in keywords:
        if any(k in normalized for k in words):
            return category
    return None



def analyze_pattern(visits: Sequence[PlaceVisitRecord], tz_name: str = DEFAULT_TZ) -> VisitPattern:
    """Compute visit count, mean duration and time-window shares.

    Weekday daytime is Monday-Friday with a start hour in 09..17. Evening or
    weekend is any Saturday/Sunday start, or a weekday start at 18:00 or later.
    Weekday starts before 09:00 count toward neither window.
    """

    total = len(visits)
    if total == 0:
        return VisitPattern(0, 0.0, 0.0, 0.0)

    daytime = 0
    evening_or_weekend = 0
    for v in visits:
        weekday, hour = local_weekday_and_hour(v.start_time, tz_name)
        if weekday >= 5:
            evening_or_weekend += 1
        elif DAYTIME_START_HOUR <= hour <= DAYTIME_END_HOUR:
            daytime += 1
        elif hour >= EVENING_START_HOUR:
            evening_or_weekend += 1

    mean_duration = sum(v.duration_seconds for v in visits) / float(total)
    return VisitPattern(
        visit_count=total,
        mean_duration_s=mean_duration,
        weekday_daytime_fraction=daytime / float(total),
        evening_or_weekend_fraction=evening_or_weekend / float(total),
    )


def _rule_matches(rule: PatternRule, pattern: VisitPattern) -> bool:
    if pattern.visit_count < rule.min_visits:
        return False
    if rule.min_mean_hours is not None and not pattern.mean_duration_s > rule.min_mean_hours * 3600.0:
        return False
    if rule.window is not None and not pattern.window_fraction(rule.window) > rule.min_window_fraction:
        return False
    return True


class PlaceClassifier:
    """Assign a category and confidence to a place visit.

    Args:
        tz_name: Timezone used to read start hours and weekdays.
        keywords: Ordered (category, keywords) table.
        rules: Ordered pattern-inference table.
    """

    def __init__(
        self,
        tz_name: str = DEFAULT_TZ,
        keywords: Sequence[tuple[PlaceCategory, Sequence[str]]] = CATEGORY_KEYWORDS,
        rules: Sequence[PatternRule] = PATTERN_RULES,
    ) -> None:
        self._tz_name = tz_name
        self._keywords = tuple((c, tuple(k.lower() for k in ks)) for c, ks in keywords)
        self._rules = tuple(rules)

    @property
    def tz_name(self) -> str:
        return self._tz_name

    def classify(
        self,
        visit: PlaceVisitRecord,
        history: Sequence[PlaceVisitRecord] = (),
    ) -> tuple[PlaceCategory, CategoryConfidence]:
        """Classify ``visit`` given earlier/other visits to the same place.

        The visit itself is counted together with ``history`` for pattern
        inference.
        """

        category = match_keywords(visit.poi_name, self._keywords)
        if category is not None:
            return category, CategoryConfidence.HIGH

        if history:
            pattern = analyze_pattern([*history, visit], self._tz_name)
            for rule in self._rules:
                if _rule_matches(rule, pattern):
                    logger.debug("visit %s matched pattern rule %s", visit.visit_id, rule.category.name)
                    return rule.category, rule.confidence

        return PlaceCategory.OTHER, CategoryConfidence.LOW


def determine_significance(
    visit_count: int,
    total_duration_s: float,
    last_visit_time: datetime,
    now: datetime | None = None,
) -> PlaceSignificance:
    """Importance tier from visit frequency and recency.

    ``total_duration_s`` is accepted for API symmetry with the stored place
    statistics; the tiers depend on count and recency only.
    """

    _ = total_duration_s
    now = now if now is not None else datetime.now(UTC)
    days_since = whole_days_between(last_visit_time, now)
    for rule in SIGNIFICANCE_RULES:
        if visit_count >= rule.min_visits and days_since <= rule.max_days_since_last:
            return rule.significance
    return PlaceSignificance.RARE
