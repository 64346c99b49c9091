"""
End-to-end tests for trailmap/cli.py subcommands, driven through main(argv).
"""

import csv
import json

import pytest

from trailmap.cli import build_parser, main

HEADER = "id,latitude,longitude,start_time,end_time,poi_name,city\n"


@pytest.fixture
def visits_csv(tmp_path):
    lines = [HEADER]
    # five cafe visits in one spot, two in another, one far away
    for i in range(5):
        lines.append(f"c{i},52.5200,13.4050,2025-01-{6 + i:02d} 09:00:00,2025-01-{6 + i:02d} 10:00:00,Cafe Einstein,Berlin\n")
    for i in range(2):
        lines.append(f"p{i},52.5300,13.4200,2025-01-{6 + i:02d} 18:00:00,2025-01-{6 + i:02d} 19:00:00,,\n")
    lines.append("far,48.1370,11.5750,2025-01-20 12:00:00,2025-01-20 13:00:00,,Munich\n")
    p = tmp_path / "visits.csv"
    p.write_text("".join(lines), encoding="utf-8")
    return p


def _rows(path):
    with open(path, encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


class TestParser:
    def test_subcommands_are_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_strategy_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["cluster", "--strategy", "kmeans"])


class TestInspect:
    def test_prints_sections(self, visits_csv, capsys):
        assert main(["inspect", "--visits", str(visits_csv)]) == 0
        out = capsys.readouterr().out
        assert "### CSV字段" in out
        assert "total_rows=8, parsed=8, skipped=0" in out
        assert "distinct_places=3" in out

    def test_json_output(self, visits_csv, capsys):
        assert main(["inspect", "--visits", str(visits_csv), "--json"]) == 0
        out = capsys.readouterr().out
        payload = json.loads(out[out.index("{") :])
        assert payload["visits"] == 8
        assert payload["with_poi_name"] == 5

    def test_missing_file_returns_2(self, tmp_path, capsys):
        assert main(["inspect", "--visits", str(tmp_path / "missing.csv")]) == 2
        assert "错误" in capsys.readouterr().err

    def test_invalid_timezone_returns_2(self, visits_csv, capsys):
        assert main(["inspect", "--visits", str(visits_csv), "--tz", "Nowhere/City"]) == 2
        assert "无效时区" in capsys.readouterr().err


class TestCluster:
    def test_grid_clustering_at_city_zoom(self, visits_csv, tmp_path, capsys):
        out_csv = tmp_path / "map.csv"
        assert main(["cluster", "--visits", str(visits_csv), "--zoom", "12", "--out", str(out_csv)]) == 0

        out = capsys.readouterr().out
        assert "markers=8" in out
        rows = _rows(out_csv)
        assert sum(int(r["count"]) for r in rows) == 8

    def test_density_json(self, visits_csv, capsys):
        assert main(["cluster", "--visits", str(visits_csv), "--strategy", "density", "--json"]) == 0
        out = capsys.readouterr().out
        payload = json.loads(out[out.index("{") :])
        assert sorted(c["count"] for c in payload["clusters"]) == [2, 5]
        assert payload["singletons"] == ["marker_far"]

    def test_zoom_is_clamped(self, visits_csv, capsys):
        assert main(["cluster", "--visits", str(visits_csv), "--zoom", "99"]) == 0
        assert "zoom=20.0" in capsys.readouterr().out

    def test_range_filter(self, visits_csv, capsys):
        args = ["cluster", "--visits", str(visits_csv), "--range-start", "2025-01-15 00:00:00"]
        assert main(args) == 0
        assert "markers=1" in capsys.readouterr().out

    def test_bad_range_returns_2(self, visits_csv):
        assert main(["cluster", "--visits", str(visits_csv), "--range-start", "yesterday"]) == 2


class TestHeatmap:
    def test_normalized_visit_count_export(self, visits_csv, tmp_path, capsys):
        out_csv = tmp_path / "heat.csv"
        assert main(["heatmap", "--visits", str(visits_csv), "--normalize", "--out", str(out_csv)]) == 0
        rows = _rows(out_csv)
        assert len(rows) == 8
        assert all(float(r["weight"]) == 1.0 for r in rows)

    def test_density_mode(self, visits_csv, capsys):
        assert main(["heatmap", "--visits", str(visits_csv), "--mode", "density"]) == 0
        # each cafe visit sees the other four; the second spot is ~1.5 km away
        assert "max_weight=4.0" in capsys.readouterr().out


class TestClassify:
    def test_classifies_each_place(self, visits_csv, tmp_path, capsys):
        out_csv = tmp_path / "classified.csv"
        args = ["classify", "--visits", str(visits_csv), "--now", "2025-01-20 00:00:00", "--out", str(out_csv)]
        assert main(args) == 0

        rows = {r["place_key"]: r for r in _rows(out_csv)}
        cafe = rows["52.5200,13.4050"]
        assert cafe["category"] == "food"
        assert cafe["confidence"] == "high"
        assert cafe["significance"] == "occasional"
        assert cafe["visits"] == "5"
        assert "共 3 个地点" in capsys.readouterr().out


class TestFrequentPlaces:
    def test_lists_places(self, visits_csv, tmp_path, capsys):
        out_csv = tmp_path / "places.csv"
        args = ["frequent-places", "--visits", str(visits_csv), "--now", "2025-01-20 00:00:00", "--out", str(out_csv)]
        assert main(args) == 0

        rows = _rows(out_csv)
        assert [r["place_id"] for r in rows] == ["place_1", "place_2"]
        assert rows[0]["name"] == "Cafe Einstein"
        assert rows[0]["visit_count"] == "5"
        assert "places=2, visits=7" in capsys.readouterr().out

    def test_min_significance_filter(self, visits_csv, capsys):
        args = [
            "frequent-places",
            "--visits",
            str(visits_csv),
            "--now",
            "2025-01-20 00:00:00",
            "--min-significance",
            "occasional",
        ]
        assert main(args) == 0
        assert "places=1, visits=5" in capsys.readouterr().out
