from __future__ import annotations

from datetime import date, datetime, time, timedelta
from pathlib import Path

import pydeck as pdk
import streamlit as st

from trailmap.assembler import MapDataAssembler
from trailmap.classifier import PlaceClassifier
from trailmap.clustering import DensityParams, GridParams, make_clusterer
from trailmap.csv_io import CsvDataProvider
from trailmap.models import DEFAULT_TZ, IntensityMode, VisualizationMode
from trailmap.timeutils import tzinfo_from_name
from trailmap.viewport import (
    ClusterTapped,
    MapTapped,
    SetVisualizationMode,
    ViewportConfig,
    ViewportController,
    ViewportState,
    ZoomChanged,
)


def _range_to_datetimes(start_d: date, end_d: date, tz_name: str) -> tuple[datetime, datetime]:
    """Convert a date range to [start 00:00, end+1 00:00) in tz."""

    tz = tzinfo_from_name(tz_name)
    start_dt = datetime.combine(start_d, time.min).replace(tzinfo=tz)
    end_dt = datetime.combine(end_d + timedelta(days=1), time.min).replace(tzinfo=tz)
    return start_dt, end_dt


def _controller(
    visits_csv: str,
    routes_csv: str,
    tz_name: str,
    strategy: str,
    min_cluster_size: int,
    radius_m: float,
    intensity: str,
) -> ViewportController:
    """One controller per browser session; rebuilt when its inputs change."""

    key = (visits_csv, routes_csv, tz_name, strategy, min_cluster_size, radius_m, intensity)
    if st.session_state.get("controller_key") != key:
        routes = routes_csv if routes_csv and Path(routes_csv).exists() else None
        st.session_state["controller"] = ViewportController(
            provider=CsvDataProvider(visits_csv, routes, tz_name=tz_name),
            clusterer=make_clusterer(
                strategy,
                grid=GridParams(min_cluster_size=min_cluster_size),
                density=DensityParams(radius_m=radius_m, min_cluster_size=min_cluster_size),
            ),
            assembler=MapDataAssembler(classifier=PlaceClassifier(tz_name=tz_name)),
            config=ViewportConfig(intensity_mode=IntensityMode(intensity)),
        )
        st.session_state["controller_key"] = key
        st.session_state.pop("loaded_range", None)
    return st.session_state["controller"]


def _point_rows(state: ViewportState) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for m in state.data.markers:
        rows.append(
            {
                "lat": m.coordinate.latitude,
                "lon": m.coordinate.longitude,
                "size": 40.0,
                "color": "#1f77b4",
            }
        )
    for c in state.data.clusters:
        rows.append(
            {
                "lat": c.centroid.latitude,
                "lon": c.centroid.longitude,
                "size": 40.0 * (1 + c.count) ** 0.5,
                "color": "#d62728",
            }
        )
    return rows


def _heatmap_deck(state: ViewportState) -> pdk.Deck | None:
    field = state.data.heatmap
    if field is None or not field.points:
        return None
    data = [
        {"lat": p.coordinate.latitude, "lon": p.coordinate.longitude, "weight": p.weight}
        for p in field.normalized().points
    ]
    center = state.data.region.center if state.data.region is not None else field.points[0].coordinate
    view = pdk.ViewState(latitude=center.latitude, longitude=center.longitude, zoom=state.zoom)
    layer = pdk.Layer(
        "HeatmapLayer",
        data=data,
        get_position="[lon, lat]",
        get_weight="weight",
        radius_pixels=40,
        opacity=0.6,
    )
    return pdk.Deck(layers=[layer], initial_view_state=view)


def main() -> None:
    st.set_page_config(page_title="足迹地图：聚合与热力图", layout="wide")
    st.title("足迹地图：按缩放级别聚合地点 / 热力图")

    with st.sidebar:
        st.subheader("数据与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        visits_csv = st.text_input("visits.csv 路径", value="visits.csv")
        routes_csv = st.text_input("routes.csv 路径（可选）", value="")

        st.subheader("显示方式")
        mode = st.selectbox("模式", [m.value for m in VisualizationMode], index=3)
        zoom = st.slider("缩放级别", min_value=1.0, max_value=20.0, value=12.0, step=0.5)

        with st.expander("高级参数（通常不用改）", expanded=False):
            strategy = st.selectbox("聚合策略", ["grid", "density"], index=0)
            min_cluster_size = int(st.number_input("min_cluster_size", value=2, min_value=1, step=1))
            radius_m = st.number_input("density 半径（米）", value=100.0, min_value=1.0, step=10.0)
            intensity = st.selectbox("热力权重", [m.value for m in IntensityMode], index=1)

        st.subheader("时间范围")
        today = datetime.now(tzinfo_from_name(tz_name)).date()
        start_d = st.date_input("开始日期", value=today - timedelta(days=365))
        end_d = st.date_input("结束日期", value=today)

    if not Path(visits_csv).exists():
        st.error(f"找不到文件：{visits_csv!r}。可以先运行 scripts/generate_sample_visits_csv.py 生成示例数据。")
        return
    if start_d > end_d:
        st.error("开始日期不能晚于结束日期。")
        return

    ctl = _controller(visits_csv, routes_csv, tz_name, strategy, min_cluster_size, float(radius_m), intensity)
    range_key = (start_d, end_d)
    if st.session_state.get("loaded_range") != range_key:
        start_dt, end_dt = _range_to_datetimes(start_d, end_d, tz_name)
        with st.spinner("正在读取 visits.csv ..."):
            ctl.load("local", start_dt, end_dt)
        st.session_state["loaded_range"] = range_key

    state = ctl.state
    if state.mode.value != mode:
        state = ctl.dispatch(SetVisualizationMode(VisualizationMode(mode)))
    if state.zoom != zoom:
        state = ctl.dispatch(ZoomChanged(zoom))

    if state.error:
        st.error(f"加载失败（显示的是上一次成功加载的数据）：{state.error}")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("标记", str(len(state.data.markers)))
    c2.metric("聚合点", str(len(state.data.clusters)))
    c3.metric("路线", str(len(state.data.routes)))
    c4.metric("缩放级别", f"{state.zoom:g}")

    if state.heatmap_enabled:
        deck = _heatmap_deck(state)
        if deck is None:
            st.info("没有可显示的热力点。")
        else:
            st.pydeck_chart(deck)
    else:
        rows = _point_rows(state)
        if rows:
            st.map(rows, latitude="lat", longitude="lon", size="size", color="color")
        else:
            st.info("所选时间范围内没有地点。")

    if state.data.clusters:
        st.subheader("聚合点")
        cluster_ids = [c.cluster_id for c in state.data.clusters]
        picked = st.selectbox("查看聚合点", ["（无）"] + cluster_ids)
        if picked == "（无）":
            if state.selected_cluster is not None:
                state = ctl.dispatch(MapTapped())
        elif state.selected_cluster is None or state.selected_cluster.cluster_id != picked:
            state = ctl.dispatch(ClusterTapped(state.data.clusters[cluster_ids.index(picked)]))
        if state.selected_cluster is not None:
            st.dataframe(
                [
                    {
                        "title": m.title,
                        "category": m.category.value,
                        "confidence": m.confidence.value,
                        "visits": m.visit_count,
                        "lat": m.coordinate.latitude,
                        "lon": m.coordinate.longitude,
                    }
                    for m in state.selected_cluster.members
                ],
                use_container_width=True,
            )

    with st.expander("单独标记明细", expanded=False):
        st.dataframe(
            [
                {
                    "title": m.title,
                    "snippet": m.snippet or "",
                    "category": m.category.value,
                    "confidence": m.confidence.value,
                    "visits": m.visit_count,
                    "favorite": m.is_favorite,
                }
                for m in state.data.markers
            ],
            use_container_width=True,
            height=360,
        )

    st.caption("说明：聚合、分类和热力权重都在本地计算；模糊半径与配色由地图渲染层决定。")


if __name__ == "__main__":
    main()
