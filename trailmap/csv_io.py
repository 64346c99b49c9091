"""CSV input/output: a file-backed visit/route provider and result writers."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from trailmap.models import (
    DEFAULT_TZ,
    Cluster,
    Coordinate,
    FrequentPlace,
    HeatmapIntensityField,
    Marker,
    PlaceVisitRecord,
    RouteRecord,
    TransportType,
)
from trailmap.timeutils import overlaps, parse_dt, tzinfo_from_name

logger = logging.getLogger(__name__)

VISIT_REQUIRED = ("id", "latitude", "longitude", "start_time", "end_time")
ROUTE_REQUIRED = ("route_id", "seq", "latitude", "longitude")


class DataProviderError(RuntimeError):
    """The visit/route source could not be read."""


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _opt(row: dict[str, str], name: str) -> str | None:
    value = (row.get(name) or "").strip()
    return value or None


def _required(row: dict[str, str], name: str) -> str:
    value = _opt(row, name)
    if value is None:
        raise ValueError(f"missing value for {name!r}")
    return value


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y"}


def _check_columns(path: Path, fieldnames: Sequence[str] | None, required: Sequence[str]) -> Sequence[str]:
    names = tuple(fieldnames or ())
    missing = [c for c in required if c not in names]
    if missing:
        raise DataProviderError(f"CSV缺少必要字段：{missing}（{path}）。实际字段：{list(names)}")
    return names


def _parse_visit(row: dict[str, str], tz_name: str) -> PlaceVisitRecord:
    start = parse_dt(_required(row, "start_time"), tz_name)
    end = parse_dt(_required(row, "end_time"), tz_name)
    own_duration = max(0.0, (end - start).total_seconds())
    total = _opt(row, "total_duration_seconds")
    count = _opt(row, "visit_count")
    return PlaceVisitRecord(
        visit_id=_required(row, "id"),
        center=Coordinate(
            latitude=float(_required(row, "latitude")),
            longitude=float(_required(row, "longitude")),
        ),
        start_time=start,
        end_time=end,
        poi_name=_opt(row, "poi_name"),
        address=_opt(row, "address"),
        city=_opt(row, "city"),
        country_code=_opt(row, "country_code"),
        visit_count=int(count) if count else 1,
        total_duration_s=float(total) if total else own_duration,
        is_favorite=_parse_bool(_opt(row, "is_favorite")),
    )


def load_visits(csv_path: str | Path, tz_name: str = DEFAULT_TZ) -> tuple[list[PlaceVisitRecord], CsvSummary]:
    """Load all visits into memory.

    Rows that cannot be parsed are skipped and counted.

    Raises:
        DataProviderError: If the file is missing or lacks a required column.
    """

    p = Path(csv_path)
    if not p.exists():
        raise DataProviderError(f"找不到文件：{str(p)!r}")
    tzinfo_from_name(tz_name)

    rows_total = 0
    parsed: list[PlaceVisitRecord] = []
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = _check_columns(p, reader.fieldnames, VISIT_REQUIRED)
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_parse_visit(row, tz_name))
            except ValueError:
                continue

    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("%s 中有 %s 行解析失败已跳过", p.name, summary.rows_skipped)
    return parsed, summary


def load_routes(csv_path: str | Path, tz_name: str = DEFAULT_TZ) -> list[RouteRecord]:
    """Load routes from a one-row-per-point CSV, ordering points by ``seq``.

    Point rows that cannot be parsed are skipped; a route whose first row
    carries an unparseable start/end time is skipped as a whole.

    Raises:
        DataProviderError: If the file is missing or lacks a required column.
    """

    p = Path(csv_path)
    if not p.exists():
        raise DataProviderError(f"找不到文件：{str(p)!r}")
    tzinfo_from_name(tz_name)

    points: dict[str, list[tuple[int, Coordinate]]] = {}
    meta: dict[str, dict[str, str]] = {}
    skipped = 0
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        _check_columns(p, reader.fieldnames, ROUTE_REQUIRED)
        for row in reader:
            try:
                rid = _required(row, "route_id")
                seq = int(_required(row, "seq"))
                coord = Coordinate(
                    latitude=float(_required(row, "latitude")),
                    longitude=float(_required(row, "longitude")),
                )
            except ValueError:
                skipped += 1
                continue
            points.setdefault(rid, []).append((seq, coord))
            meta.setdefault(rid, row)

    routes: list[RouteRecord] = []
    for rid, pts in points.items():
        row = meta[rid]
        transport = _opt(row, "transport_type")
        try:
            transport_type = TransportType(transport.lower()) if transport else TransportType.UNKNOWN
        except ValueError:
            transport_type = TransportType.UNKNOWN
        start = _opt(row, "start_time")
        end = _opt(row, "end_time")
        try:
            start_time = parse_dt(start, tz_name) if start else None
            end_time = parse_dt(end, tz_name) if end else None
        except ValueError:
            skipped += len(pts)
            continue
        routes.append(
            RouteRecord(
                route_id=rid,
                coordinates=tuple(c for _, c in sorted(pts, key=lambda t: t[0])),
                transport_type=transport_type,
                start_time=start_time,
                end_time=end_time,
            )
        )

    if skipped:
        logger.warning("%s 中有 %s 行解析失败已跳过", p.name, skipped)
    return routes


class CsvDataProvider:
    """Visit/route provider backed by CSV exports.

    Files are read lazily on first access and kept in memory. ``user_id`` is
    ignored: one export belongs to one user.
    """

    def __init__(
        self,
        visits_csv: str | Path,
        routes_csv: str | Path | None = None,
        tz_name: str = DEFAULT_TZ,
    ) -> None:
        self._visits_csv = Path(visits_csv)
        self._routes_csv = Path(routes_csv) if routes_csv is not None else None
        self._tz_name = tz_name
        self._visits: list[PlaceVisitRecord] | None = None
        self._routes: list[RouteRecord] | None = None

    def all_visits(self) -> list[PlaceVisitRecord]:
        if self._visits is None:
            self._visits, _ = load_visits(self._visits_csv, self._tz_name)
        return self._visits

    def all_routes(self) -> list[RouteRecord]:
        if self._routes is None:
            self._routes = load_routes(self._routes_csv, self._tz_name) if self._routes_csv is not None else []
        return self._routes

    def get_visits(self, user_id: str, start_time: datetime, end_time: datetime) -> list[PlaceVisitRecord]:
        _ = user_id
        return [v for v in self.all_visits() if overlaps(v.start_time, v.end_time, start_time, end_time)]

    def get_routes_in_range(self, user_id: str, start_time: datetime, end_time: datetime) -> list[RouteRecord]:
        _ = user_id
        out: list[RouteRecord] = []
        for r in self.all_routes():
            if r.start_time is None or r.end_time is None:
                out.append(r)
            elif overlaps(r.start_time, r.end_time, start_time, end_time):
                out.append(r)
        return out


def write_map_csv(clusters: Sequence[Cluster], singletons: Sequence[Marker], out_path: str | Path) -> None:
    """Write one row per displayed item (cluster centroid or singleton marker)."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=["kind", "id", "latitude", "longitude", "count", "title", "category", "member_ids"],
        )
        w.writeheader()
        for c in clusters:
            w.writerow(
                {
                    "kind": "cluster",
                    "id": c.cluster_id,
                    "latitude": c.centroid.latitude,
                    "longitude": c.centroid.longitude,
                    "count": c.count,
                    "title": "",
                    "category": "",
                    "member_ids": ";".join(m.marker_id for m in c.members),
                }
            )
        for m in singletons:
            w.writerow(
                {
                    "kind": "marker",
                    "id": m.marker_id,
                    "latitude": m.coordinate.latitude,
                    "longitude": m.coordinate.longitude,
                    "count": 1,
                    "title": m.title,
                    "category": m.category.value,
                    "member_ids": "",
                }
            )


def write_heatmap_csv(field: HeatmapIntensityField, out_path: str | Path) -> None:
    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["latitude", "longitude", "weight"])
        w.writeheader()
        for pt in field.points:
            w.writerow({"latitude": pt.coordinate.latitude, "longitude": pt.coordinate.longitude, "weight": pt.weight})


def write_classified_csv(rows: Iterable[dict[str, object]], out_path: str | Path) -> None:
    """Write per-place classification rows (see ``cli classify``)."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "place_key",
                "title",
                "visits",
                "category",
                "confidence",
                "significance",
                "last_visit",
            ],
        )
        w.writeheader()
        for row in rows:
            w.writerow(row)


def write_places_csv(places: Sequence[FrequentPlace], out_path: str | Path) -> None:
    """Write frequent places."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "place_id",
                "latitude",
                "longitude",
                "name",
                "city",
                "visit_count",
                "total_duration_seconds",
                "first_visit",
                "last_visit",
                "category",
                "confidence",
                "significance",
            ],
        )
        w.writeheader()
        for pl in places:
            w.writerow(
                {
                    "place_id": pl.place_id,
                    "latitude": pl.center.latitude,
                    "longitude": pl.center.longitude,
                    "name": pl.name or "",
                    "city": pl.city or "",
                    "visit_count": pl.visit_count,
                    "total_duration_seconds": f"{pl.total_duration_s:.3f}",
                    "first_visit": pl.first_visit_time.isoformat(sep=" "),
                    "last_visit": pl.last_visit_time.isoformat(sep=" "),
                    "category": pl.category.value,
                    "confidence": pl.confidence.value,
                    "significance": pl.significance.value,
                }
            )
