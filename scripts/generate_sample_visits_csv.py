from __future__ import annotations

import argparse
import csv
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "UTC"


@dataclass(frozen=True, slots=True)
class Place:
    name: str
    poi_name: str
    city: str
    lat: float
    lon: float
    # (earliest start hour, latest start hour, min hours, max hours)
    schedule: tuple[float, float, float, float]
    weekdays_only: bool = False


def generate_visits(*, days: int, seed: int, start_local: datetime, places: list[Place]) -> list[dict[str, str]]:
    """Generate fake visits.csv rows: a daily routine plus occasional outings."""

    rng = random.Random(seed)
    tz = ZoneInfo(TZ)
    day0 = start_local.replace(tzinfo=tz, hour=0, minute=0, second=0, microsecond=0)

    out: list[dict[str, str]] = []
    counts: dict[str, int] = {}
    totals: dict[str, float] = {}
    vid = 1
    for d in range(days):
        day = day0 + timedelta(days=d)
        for place in places:
            if place.weekdays_only and day.weekday() >= 5:
                continue
            # Home and work every (week)day; everything else only sometimes
            if place.name not in ("home", "work") and rng.random() > 0.25:
                continue
            h0, h1, min_h, max_h = place.schedule
            start = day + timedelta(hours=rng.uniform(h0, h1))
            end = start + timedelta(hours=rng.uniform(min_h, max_h))
            lat = place.lat + rng.uniform(-0.0002, 0.0002)
            lon = place.lon + rng.uniform(-0.0002, 0.0002)

            counts[place.name] = counts.get(place.name, 0) + 1
            totals[place.name] = totals.get(place.name, 0.0) + (end - start).total_seconds()
            out.append(
                {
                    "id": f"v{vid}",
                    "latitude": f"{lat:.7f}",
                    "longitude": f"{lon:.7f}",
                    "start_time": start.isoformat(sep=" ", timespec="seconds"),
                    "end_time": end.isoformat(sep=" ", timespec="seconds"),
                    "poi_name": place.poi_name,
                    "address": "",
                    "city": place.city if rng.random() < 0.5 else "",
                    "country_code": "DE",
                    "visit_count": str(counts[place.name]),
                    "total_duration_seconds": f"{totals[place.name]:.0f}",
                    "is_favorite": "1" if place.name == "cafe" else "0",
                }
            )
            vid += 1

    out.sort(key=lambda r: r["start_time"])
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake visits.csv for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/visits.csv", help="Output CSV path")
    p.add_argument("--days", type=int, default=60, help="Number of days to simulate")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--start", type=str, default="2025-01-01", help="First simulated day (UTC), e.g. '2025-01-01'")
    args = p.parse_args()

    start_local = datetime.fromisoformat(args.start)
    places = [
        Place("home", "", "Berlin", 52.5200000, 13.4050000, (19, 21, 10.0, 12.0)),
        Place("work", "", "Berlin", 52.5070000, 13.3900000, (8.5, 9.5, 7.5, 9.0), weekdays_only=True),
        Place("cafe", "Central Perk Cafe", "Berlin", 52.5120000, 13.4010000, (7, 8, 0.2, 0.5)),
        Place("gym", "Urban Fitness Club", "Berlin", 52.5300000, 13.4200000, (18, 19, 1.0, 1.5)),
        Place("park", "Tiergarten Park", "Berlin", 52.5145000, 13.3501000, (10, 15, 1.0, 3.0)),
        Place("trip", "Hamburg Hbf Station", "Hamburg", 53.5530000, 10.0060000, (9, 12, 0.5, 1.0)),
    ]

    rows = generate_visits(days=args.days, seed=args.seed, start_local=start_local, places=places)
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = [
        "id",
        "latitude",
        "longitude",
        "start_time",
        "end_time",
        "poi_name",
        "address",
        "city",
        "country_code",
        "visit_count",
        "total_duration_seconds",
        "is_favorite",
    ]
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
