"""Command-line interface for trailmap.

Run:
    python -m trailmap inspect --visits visits.csv
    python -m trailmap cluster --visits visits.csv --zoom 12
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import UTC, datetime

from trailmap.assembler import MapDataAssembler, group_by_place, marker_title
from trailmap.classifier import PlaceClassifier, determine_significance
from trailmap.clustering import DensityParams, GridParams, make_clusterer
from trailmap.csv_io import (
    CsvDataProvider,
    DataProviderError,
    load_visits,
    write_classified_csv,
    write_heatmap_csv,
    write_map_csv,
    write_places_csv,
)
from trailmap.heatmap import HeatmapFieldGenerator
from trailmap.inspect import inspect_visits
from trailmap.models import DEFAULT_TZ, IntensityMode, PlaceSignificance, PlaceVisitRecord
from trailmap.places import PlaceParams, cluster_visits, rank_frequent_places, sum_places
from trailmap.timeutils import parse_dt
from trailmap.viewport import ViewportConfig

_FAR_PAST = datetime.min.replace(tzinfo=UTC)
_FAR_FUTURE = datetime.max.replace(tzinfo=UTC)


def _time_range(args: argparse.Namespace) -> tuple[datetime, datetime]:
    start = parse_dt(args.range_start, args.tz) if args.range_start else _FAR_PAST
    end = parse_dt(args.range_end, args.tz) if args.range_end else _FAR_FUTURE
    return start, end


def _load(args: argparse.Namespace) -> tuple[CsvDataProvider, list[PlaceVisitRecord]]:
    provider = CsvDataProvider(args.visits, getattr(args, "routes", None), tz_name=args.tz)
    start, end = _time_range(args)
    return provider, provider.get_visits("local", start, end)


def _now(args: argparse.Namespace) -> datetime:
    return parse_dt(args.now, args.tz) if args.now else datetime.now(UTC)


def _cmd_inspect(args: argparse.Namespace) -> int:
    visits, summary = load_visits(args.visits, args.tz)
    res = inspect_visits(visits)

    print("### CSV字段")
    print(", ".join(summary.fieldnames))
    print()

    print("### 行数")
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print()

    if res.first_start is not None and res.last_end is not None:
        print("### 时间范围")
        print(f"start={res.first_start.isoformat(sep=' ')}, end={res.last_end.isoformat(sep=' ')}")
        print()

    print("### 经纬度范围")
    print(f"lat=[{res.min_lat}, {res.max_lat}], lon=[{res.min_lon}, {res.max_lon}]")
    if res.region is not None:
        print(
            f"region center=({res.region.center.latitude:.6f}, {res.region.center.longitude:.6f}) "
            f"delta=({res.region.latitude_delta:.4f}, {res.region.longitude_delta:.4f}) zoom={res.suggested_zoom}"
        )
    print()

    print("### 地点")
    print(f"visits={res.visits}, distinct_places={res.distinct_places}, poi_name={res.with_poi_name}, city={res.with_city}")
    print()

    if args.json:
        payload = asdict(res) | {
            "rows_total": summary.rows_total,
            "rows_parsed": summary.rows_parsed,
            "rows_skipped": summary.rows_skipped,
            "fieldnames": list(summary.fieldnames),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    return 0


def _cmd_cluster(args: argparse.Namespace) -> int:
    provider, visits = _load(args)
    start, end = _time_range(args)
    routes = provider.get_routes_in_range("local", start, end)

    classifier = PlaceClassifier(tz_name=args.tz)
    data = MapDataAssembler(classifier=classifier).assemble(visits, routes)
    zoom = ViewportConfig().clamp_zoom(args.zoom)
    clusterer = make_clusterer(
        args.strategy,
        grid=GridParams(min_cluster_size=args.min_cluster_size),
        density=DensityParams(radius_m=args.radius_m, min_cluster_size=args.min_cluster_size),
    )
    clusters, singles = clusterer.cluster(list(data.markers), zoom)

    print(f"strategy={args.strategy}, zoom={zoom}, markers={len(data.markers)}, routes={len(data.routes)}")
    print(f"clusters={len(clusters)}, singletons={len(singles)}")
    for c in sorted(clusters, key=lambda c: c.count, reverse=True)[: args.top]:
        print(f"  {c.cluster_id}: count={c.count} center=({c.centroid.latitude:.6f}, {c.centroid.longitude:.6f})")

    if args.json:
        payload = {
            "zoom": zoom,
            "clusters": [
                {
                    "id": c.cluster_id,
                    "latitude": c.centroid.latitude,
                    "longitude": c.centroid.longitude,
                    "count": c.count,
                    "members": [m.marker_id for m in c.members],
                }
                for c in clusters
            ],
            "singletons": [m.marker_id for m in singles],
            "region": asdict(data.region) if data.region is not None else None,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    if args.out:
        write_map_csv(clusters, singles, args.out)
        print(f"已导出：{args.out}")
    return 0


def _cmd_heatmap(args: argparse.Namespace) -> int:
    _, visits = _load(args)
    markers = MapDataAssembler().build_markers(visits)
    field = HeatmapFieldGenerator(density_radius_m=args.radius_m).generate(markers, IntensityMode(args.mode))
    if args.normalize:
        field = field.normalized()

    print(f"mode={args.mode}, points={len(field.points)}, max_weight={field.max_weight}")
    if args.out:
        write_heatmap_csv(field, args.out)
        print(f"已导出：{args.out}")
    return 0


def _cmd_classify(args: argparse.Namespace) -> int:
    _, visits = _load(args)
    classifier = PlaceClassifier(tz_name=args.tz)
    now = _now(args)

    rows: list[dict[str, object]] = []
    for key, group in group_by_place(visits, args.precision).items():
        group = sorted(group, key=lambda v: v.start_time)
        latest = group[-1]
        category, confidence = classifier.classify(latest, group[:-1])
        total = sum(v.duration_seconds for v in group)
        significance = determine_significance(len(group), total, latest.end_time, now=now)
        rows.append(
            {
                "place_key": key,
                "title": marker_title(latest),
                "visits": len(group),
                "category": category.value,
                "confidence": confidence.value,
                "significance": significance.value,
                "last_visit": latest.end_time.isoformat(sep=" "),
            }
        )

    rows.sort(key=lambda r: (r["visits"], r["place_key"]), reverse=True)
    for r in rows[: args.top]:
        print(
            f"{r['place_key']}  {r['title']}  visits={r['visits']}  "
            f"{r['category']}/{r['confidence']}  {r['significance']}"
        )
    print(f"共 {len(rows)} 个地点")
    if args.out:
        write_classified_csv(rows, args.out)
        print(f"已导出：{args.out}")
    return 0


def _cmd_frequent_places(args: argparse.Namespace) -> int:
    _, visits = _load(args)
    places = cluster_visits(
        visits,
        classifier=PlaceClassifier(tz_name=args.tz),
        params=PlaceParams(radius_m=args.radius_m, min_visits=args.min_visits),
        now=_now(args),
    )
    places = rank_frequent_places(places, PlaceSignificance(args.min_significance))
    total = sum_places(places)

    for p in places[: args.top]:
        print(
            f"{p.place_id}  {p.name or p.city or '-'}  visits={p.visit_count}  "
            f"{p.category.value}/{p.confidence.value}  {p.significance.value}"
        )
    print(f"places={total.places}, visits={total.visits}, total={total.total_hhmmss}（{total.total_seconds:.1f}s）")
    if args.out:
        write_places_csv(places, args.out)
        print(f"已导出：{args.out}")
    return 0


def _add_common(p: argparse.ArgumentParser, *, routes: bool = False) -> None:
    p.add_argument("--visits", type=str, default="visits.csv", help="visits.csv 路径")
    if routes:
        p.add_argument("--routes", type=str, default=None, help="routes.csv 路径（可选）")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 UTC")
    p.add_argument("--range-start", type=str, default=None, help="仅统计该时间之后的数据（例如 2025-12-01 00:00:00）")
    p.add_argument("--range-end", type=str, default=None, help="仅统计该时间之前的数据（例如 2025-12-31 23:59:59）")
    p.add_argument("--out", type=str, default=None, help="输出CSV路径（可选）")
    p.add_argument("--top", type=int, default=10, help="终端最多显示多少行")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="trailmap")
    p.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="分析 visits.csv 的字段/时间范围/经纬度范围")
    p_ins.add_argument("--visits", type=str, default="visits.csv", help="visits.csv 路径")
    p_ins.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA）")
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_cl = sub.add_parser("cluster", help="按缩放级别聚合地图标记")
    _add_common(p_cl, routes=True)
    p_cl.add_argument("--zoom", type=float, default=15.0, help="缩放级别（1=世界 ... 20=建筑），超出范围会被截断")
    p_cl.add_argument("--strategy", type=str, default="grid", choices=["grid", "density"], help="聚合策略")
    p_cl.add_argument("--min-cluster-size", type=int, default=2, help="成为聚合点所需的最少标记数")
    p_cl.add_argument("--radius-m", type=float, default=100.0, help="density 策略的邻域半径（米）")
    p_cl.add_argument("--json", action="store_true", help="额外输出JSON")
    p_cl.set_defaults(func=_cmd_cluster)

    p_hm = sub.add_parser("heatmap", help="导出热力图权重点")
    _add_common(p_hm)
    p_hm.add_argument(
        "--mode",
        type=str,
        default=IntensityMode.VISIT_COUNT.value,
        choices=[m.value for m in IntensityMode],
        help="权重模式",
    )
    p_hm.add_argument("--radius-m", type=float, default=1000.0, help="density 模式的邻域半径（米）")
    p_hm.add_argument("--normalize", action="store_true", help="把权重归一化到 [0, 1]")
    p_hm.set_defaults(func=_cmd_heatmap)

    p_cf = sub.add_parser("classify", help="为每个地点推断类别与重要程度")
    _add_common(p_cf)
    p_cf.add_argument("--precision", type=int, default=4, help="判定“同一地点”的坐标小数位数")
    p_cf.add_argument("--now", type=str, default=None, help="计算“距今天数”的参考时间（默认当前时间）")
    p_cf.set_defaults(func=_cmd_classify)

    p_fp = sub.add_parser("frequent-places", help="聚合常去地点")
    _add_common(p_fp)
    p_fp.add_argument("--radius-m", type=float, default=50.0, help="同一地点的半径（米）")
    p_fp.add_argument("--min-visits", type=int, default=2, help="成为常去地点所需的最少到访次数")
    p_fp.add_argument(
        "--min-significance",
        type=str,
        default=PlaceSignificance.RARE.value,
        choices=[s.value for s in PlaceSignificance],
        help="最低重要程度",
    )
    p_fp.add_argument("--now", type=str, default=None, help="计算“距今天数”的参考时间（默认当前时间）")
    p_fp.set_defaults(func=_cmd_frequent_places)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except (DataProviderError, ValueError) as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
