from __future__ import annotations

import logging
from dataclasses import dataclass

import pydeck as pdk
import streamlit as st

from live_trail.controller import (
    ClearTrail,
    Command,
    MoveViewport,
    ToggleTracking,
    ToggleTrail,
    TrackingController,
)
from live_trail.errors import UnsupportedCapability
from live_trail.models import DEFAULT_EPSILON, DEFAULT_TZ, POI, Coordinate, TrackerConfig, ViewportState
from live_trail.render import DEFAULT_STYLE, Scene, TrailStyle, derive_scene
from live_trail.sources import (
    PositionSource,
    ReplayPositionSource,
    SimulatedPositionSource,
    UnavailablePositionSource,
)
from live_trail.timeutils import tzinfo_from_name

logger = logging.getLogger(__name__)

MAP_STYLES = {"streets": "road", "light": "light", "dark": "dark"}


@dataclass(frozen=True, slots=True)
class SourceSettings:
    """Sidebar choices that require a new controller when they change."""

    kind: str
    csv_path: str
    interval_ms: int
    seed: int
    epsilon: float
    tz_name: str


def _hex_to_rgba(color: str, opacity: float = 1.0) -> list[int]:
    h = color.lstrip("#")
    return [int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16), int(round(255 * opacity))]


def _make_source(settings: SourceSettings) -> PositionSource:
    if settings.kind == "replay":
        return ReplayPositionSource.from_csv(settings.csv_path, interval_ms=settings.interval_ms)
    if settings.kind == "simulate":
        return SimulatedPositionSource(center=POI, seed=settings.seed, interval_ms=settings.interval_ms)
    return UnavailablePositionSource()


def _controller(settings: SourceSettings) -> TrackingController:
    """One controller per browser session; rebuilt when the source settings change."""

    current = st.session_state.get("controller")
    if current is not None and st.session_state.get("settings") == settings:
        return current
    if current is not None:
        current.close()
    controller = TrackingController(
        _make_source(settings),
        TrackerConfig(epsilon=settings.epsilon, tz_name=settings.tz_name),
    )
    st.session_state["controller"] = controller
    st.session_state["settings"] = settings
    return controller


def _dispatch(controller: TrackingController, command: Command) -> None:
    try:
        controller.dispatch(command)
    except UnsupportedCapability as exc:
        # the controller already holds the message; the panel shows it
        logger.warning("start refused: %s", exc)


def build_deck(scene: Scene, style: TrailStyle = DEFAULT_STYLE, map_style: str = "road") -> pdk.Deck:
    """Translate a scene into deck.gl layers."""

    layers: list[pdk.Layer] = []
    if scene.trail_line is not None:
        layers.append(
            pdk.Layer(
                "PathLayer",
                id="trail-line",
                data=[{"path": [c.as_lon_lat() for c in scene.trail_line]}],
                get_path="path",
                get_color=_hex_to_rgba(style.line_color, style.line_opacity),
                width_units="pixels",
                get_width=style.line_width,
            )
        )
    if scene.trail_points is not None:
        layers.append(
            pdk.Layer(
                "ScatterplotLayer",
                id="trail-points",
                data=[
                    {
                        "position": p.coordinate.as_lon_lat(),
                        "color": _hex_to_rgba(style.color_for(p)),
                        "radius": style.radius_for(p),
                        "tag": p.tag or "point",
                        "index": p.index,
                    }
                    for p in scene.trail_points
                ],
                get_position="position",
                get_fill_color="color",
                get_radius="radius",
                radius_units="pixels",
                stroked=True,
                get_line_color=_hex_to_rgba(style.stroke_color),
                line_width_units="pixels",
                get_line_width=style.stroke_width,
                pickable=True,
            )
        )

    user = [m for m in scene.markers if m.kind == "user"]
    if user:
        layers.append(
            pdk.Layer(
                "ScatterplotLayer",
                id="user-location",
                data=[{"position": m.coordinate.as_lon_lat()} for m in user],
                get_position="position",
                get_fill_color=_hex_to_rgba(style.line_color),
                get_radius=12,
                radius_units="pixels",
                stroked=True,
                get_line_color=_hex_to_rgba(style.stroke_color),
                line_width_units="pixels",
                get_line_width=2,
            )
        )
    layers.append(
        pdk.Layer(
            "TextLayer",
            id="markers",
            data=[{"position": m.coordinate.as_lon_lat(), "text": m.content} for m in scene.markers],
            get_position="position",
            get_text="text",
            get_size=22,
            character_set="auto",
        )
    )

    vp = scene.viewport
    return pdk.Deck(
        layers=layers,
        initial_view_state=pdk.ViewState(
            longitude=vp.center.longitude,
            latitude=vp.center.latitude,
            zoom=vp.zoom,
            bearing=vp.bearing,
            pitch=vp.pitch,
        ),
        map_style=map_style,
        tooltip={"text": "{tag} #{index}"},
    )


def _viewport_editor(controller: TrackingController) -> None:
    vp = controller.viewport
    with st.expander("Viewport (pan / zoom / rotate)", expanded=False):
        lat = st.number_input("latitude", value=vp.center.latitude, min_value=-90.0, max_value=90.0, format="%.6f")
        lon = st.number_input("longitude", value=vp.center.longitude, min_value=-180.0, max_value=180.0, format="%.6f")
        zoom = st.slider("zoom", min_value=0.0, max_value=22.0, value=float(vp.zoom), step=0.5)
        bearing = st.slider("bearing", min_value=-180.0, max_value=180.0, value=float(vp.bearing), step=5.0)
        pitch = st.slider("pitch", min_value=0.0, max_value=60.0, value=float(vp.pitch), step=5.0)
        if st.button("Apply viewport", use_container_width=True):
            _dispatch(
                controller,
                MoveViewport(
                    ViewportState(
                        center=Coordinate(longitude=float(lon), latitude=float(lat)),
                        zoom=float(zoom),
                        bearing=float(bearing),
                        pitch=float(pitch),
                    )
                ),
            )
            st.rerun(scope="fragment")


def _live_view(controller: TrackingController, map_style: str) -> None:
    """Pump the source, then draw controls and map from the resulting state."""

    controller.source.pump()
    scene = derive_scene(controller.snapshot(), controller.config.tz_name)
    panel = scene.panel

    left, right = st.columns([1, 3])
    with left:
        if st.button(
            panel.tracking_label,
            type="primary" if not panel.tracking_active else "secondary",
            use_container_width=True,
        ):
            _dispatch(controller, ToggleTracking())
            st.rerun(scope="fragment")
        c1, c2 = st.columns(2)
        if c1.button(panel.trail_label, use_container_width=True):
            _dispatch(controller, ToggleTrail())
            st.rerun(scope="fragment")
        if c2.button("Clear Trail", disabled=not panel.clear_enabled, use_container_width=True):
            _dispatch(controller, ClearTrail())
            st.rerun(scope="fragment")

        if panel.latitude_text is not None:
            st.caption(panel.latitude_text)
            st.caption(panel.longitude_text)
            st.caption(panel.updated_text)
            st.caption(panel.points_text)
        if panel.error_text:
            st.error(panel.error_text)
        _viewport_editor(controller)

    with right:
        st.pydeck_chart(build_deck(scene, map_style=map_style), height=640)


def main() -> None:
    st.set_page_config(page_title="Live trail", layout="wide")
    st.title("Live location and trail")

    with st.sidebar:
        st.subheader("Position source")
        kind = st.selectbox("source", options=["simulate", "replay", "none"], index=0)
        csv_path = st.text_input("Track CSV (replay)", value="sample_data/track.csv")
        interval_ms = st.number_input("fix interval (ms)", value=1000, min_value=100, step=100)
        seed = st.number_input("seed (simulate)", value=42, step=1)

        st.subheader("Display")
        tz_name = st.text_input("Timezone (IANA)", value=DEFAULT_TZ)
        map_style = st.selectbox("map style", options=list(MAP_STYLES), index=0)

        with st.expander("Advanced", expanded=False):
            epsilon = st.number_input("jitter threshold (deg)", value=DEFAULT_EPSILON, format="%.6f", step=0.000005)

    try:
        tzinfo_from_name(tz_name)
    except ValueError as exc:
        st.error(str(exc))
        return

    settings = SourceSettings(
        kind=kind,
        csv_path=csv_path,
        interval_ms=int(interval_ms),
        seed=int(seed),
        epsilon=float(epsilon),
        tz_name=tz_name,
    )
    controller = _controller(settings)
    tick = max(0.2, settings.interval_ms / 2000.0)
    st.fragment(_live_view, run_every=tick)(controller, MAP_STYLES[map_style])

    st.caption(
        "The trail keeps a fix only when it moves more than the jitter threshold in latitude or longitude "
        "(per-axis degrees, not ground distance). Nothing is stored after the session ends. "
        "Dragging the map is not fed back; use the Viewport panel to move the stored view, "
        "otherwise the next redraw returns to it."
    )


if __name__ == "__main__":
    main()
