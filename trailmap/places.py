"""Group visits into frequent places and summarize them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Sequence

from trailmap.classifier import PlaceClassifier, determine_significance
from trailmap.geo import is_within, mean_center
from trailmap.models import (
    CategoryConfidence,
    FrequentPlace,
    PlaceCategory,
    PlaceSignificance,
    PlaceVisitRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlaceParams:
    """Parameters controlling frequent-place grouping."""

    radius_m: float = 50.0
    min_visits: int = 2
    # Vote share needed for HIGH / MEDIUM confidence; anything lower is LOW.
    high_consensus: float = 0.8
    medium_consensus: float = 0.5


def group_visits(visits: Sequence[PlaceVisitRecord], radius_m: float) -> list[list[PlaceVisitRecord]]:
    """Greedy spatial grouping.

    Visits are ordered by start time; each ungrouped visit seeds a group and
    pulls in every other ungrouped visit within ``radius_m`` of the seed.
    """

    ordered = sorted(visits, key=lambda v: (v.start_time, v.visit_id))
    taken = [False] * len(ordered)
    groups: list[list[PlaceVisitRecord]] = []
    for i, seed in enumerate(ordered):
        if taken[i]:
            continue
        taken[i] = True
        group = [seed]
        for j in range(i + 1, len(ordered)):
            if not taken[j] and is_within(seed.center, ordered[j].center, radius_m):
                taken[j] = True
                group.append(ordered[j])
        groups.append(group)
    return groups


def vote_category(
    group: Sequence[PlaceVisitRecord],
    classifier: PlaceClassifier,
    params: PlaceParams = PlaceParams(),
) -> tuple[PlaceCategory, CategoryConfidence]:
    """Majority vote of per-visit classifications.

    Each visit is classified against the rest of the group. Ties go to the
    category declared first in :class:`PlaceCategory`; confidence follows the
    winning vote share.
    """

    if not group:
        return PlaceCategory.OTHER, CategoryConfidence.LOW

    votes: dict[PlaceCategory, int] = {}
    for i, visit in enumerate(group):
        history = [v for j, v in enumerate(group) if j != i]
        category, _ = classifier.classify(visit, history)
        votes[category] = votes.get(category, 0) + 1

    order = list(PlaceCategory)
    winner = max(votes, key=lambda c: (votes[c], -order.index(c)))
    consensus = votes[winner] / float(len(group))
    if consensus >= params.high_consensus:
        confidence = CategoryConfidence.HIGH
    elif consensus >= params.medium_consensus:
        confidence = CategoryConfidence.MEDIUM
    else:
        confidence = CategoryConfidence.LOW
    return winner, confidence


def _build_place(
    group: Sequence[PlaceVisitRecord],
    classifier: PlaceClassifier,
    params: PlaceParams,
    now: datetime | None,
) -> FrequentPlace:
    total_duration = sum(v.duration_seconds for v in group)
    first_visit = min(v.start_time for v in group)
    last_visit = max(v.end_time for v in group)
    category, confidence = vote_category(group, classifier, params)

    # Name/address come from the most recent visit that has either.
    info = next((v for v in reversed(group) if v.poi_name or v.address), None)
    return FrequentPlace(
        place_id="",
        center=mean_center([v.center for v in group]),
        radius_m=params.radius_m,
        visit_count=len(group),
        total_duration_s=total_duration,
        first_visit_time=first_visit,
        last_visit_time=last_visit,
        category=category,
        confidence=confidence,
        significance=determine_significance(len(group), total_duration, last_visit, now=now),
        name=info.poi_name if info else None,
        address=info.address if info else None,
        city=info.city if info else None,
        country_code=info.country_code if info else None,
        visit_ids=tuple(v.visit_id for v in group),
    )


def cluster_visits(
    visits: Sequence[PlaceVisitRecord],
    classifier: PlaceClassifier | None = None,
    params: PlaceParams = PlaceParams(),
    now: datetime | None = None,
) -> list[FrequentPlace]:
    """Detect frequent places.

    Args:
        visits: Visits in any order.
        classifier: Classifier used for category votes (default: UTC classifier).
        params: Grouping parameters.
        now: Reference time for significance (default: current time).

    Returns:
        Places with at least ``params.min_visits`` visits, most visited first,
        with ids ``place_1``, ``place_2``, ...
    """

    if not visits:
        return []
    classifier = classifier if classifier is not None else PlaceClassifier()

    groups = [g for g in group_visits(visits, params.radius_m) if len(g) >= params.min_visits]
    places = [_build_place(g, classifier, params, now) for g in groups]
    # stable sort keeps first-seen order among equal counts
    places.sort(key=lambda p: p.visit_count, reverse=True)

    out = [replace(p, place_id=f"place_{n}") for n, p in enumerate(places, start=1)]
    logger.info("frequent places: %s visits -> %s places", len(visits), len(out))
    return out


def rank_frequent_places(
    places: Iterable[FrequentPlace],
    min_significance: PlaceSignificance = PlaceSignificance.RARE,
) -> list[FrequentPlace]:
    """Keep places at least as significant as ``min_significance``; most significant first."""

    kept = [p for p in places if p.significance.rank >= min_significance.rank]
    kept.sort(key=lambda p: (p.significance.rank, p.visit_count), reverse=True)
    return kept


def _format_hhmmss(seconds: float) -> str:
    s = int(round(seconds))
    h = s // 3600
    m = (s % 3600) // 60
    sec = s % 60
    return f"{h:02d}:{m:02d}:{sec:02d}"


@dataclass(frozen=True, slots=True)
class PlacesTotal:
    """Total visits and time across places."""

    places: int
    visits: int
    total_seconds: float

    @property
    def total_hhmmss(self) -> str:
        return _format_hhmmss(self.total_seconds)


def sum_places(places: Iterable[FrequentPlace]) -> PlacesTotal:
    """Sum visit counts and durations."""

    n = 0
    visits = 0
    total = 0.0
    for p in places:
        n += 1
        visits += p.visit_count
        total += p.total_duration_s
    return PlacesTotal(places=n, visits=visits, total_seconds=total)
