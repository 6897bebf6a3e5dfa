"""Pure mapping from tracker state to a scene description for the map view.

Nothing here mutates state or blocks: calling ``derive_scene`` twice on the same
snapshot yields equal scenes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal

from live_trail.controller import TrackerSnapshot
from live_trail.models import DEFAULT_TZ, Coordinate, ViewportState
from live_trail.timeutils import format_local_time
from live_trail.trail import TrailPoint

MarkerKind = Literal["poi", "user"]


@dataclass(frozen=True, slots=True)
class Marker:
    kind: MarkerKind
    coordinate: Coordinate
    content: str


@dataclass(frozen=True, slots=True)
class ControlPanel:
    """Texts and enabled-states of the control overlay.

    Location lines are None until the first fix of the session has arrived.
    """

    tracking_label: str
    tracking_active: bool
    trail_label: str
    clear_enabled: bool
    latitude_text: str | None = None
    longitude_text: str | None = None
    updated_text: str | None = None
    points_text: str | None = None
    error_text: str | None = None


@dataclass(frozen=True, slots=True)
class Scene:
    viewport: ViewportState
    markers: tuple[Marker, ...]
    trail_line: tuple[Coordinate, ...] | None
    trail_points: tuple[TrailPoint, ...] | None
    panel: ControlPanel


@dataclass(frozen=True, slots=True)
class TrailStyle:
    """Paint settings for the trail layers. Colors are #RRGGBB."""

    line_color: str = "#4285F4"
    line_width: int = 4
    line_opacity: float = 0.8
    point_color: str = "#4285F4"
    start_color: str = "#00FF00"
    end_color: str = "#FF0000"
    point_radius: int = 3
    endpoint_radius: int = 6
    stroke_color: str = "#FFFFFF"
    stroke_width: int = 2

    def color_for(self, point: TrailPoint) -> str:
        if point.is_start:
            return self.start_color
        if point.is_end:
            return self.end_color
        return self.point_color

    def radius_for(self, point: TrailPoint) -> int:
        return self.endpoint_radius if point.tag else self.point_radius


DEFAULT_STYLE: Final[TrailStyle] = TrailStyle()

POI_ICON: Final[str] = "📍"
USER_ICON: Final[str] = "📱"


def derive_scene(snapshot: TrackerSnapshot, tz_name: str = DEFAULT_TZ) -> Scene:
    """Build the scene for one snapshot.

    Args:
        snapshot: Tracker state.
        tz_name: IANA timezone for the "last updated" clock.

    Returns:
        Scene description. Trail geometry is present only when the trail is
        visible and has at least two coordinates.
    """

    markers = [Marker(kind="poi", coordinate=snapshot.poi, content=POI_ICON)]
    loc = snapshot.user_location
    if loc is not None:
        markers.append(Marker(kind="user", coordinate=loc.coordinate, content=USER_ICON))

    show_trail = snapshot.trail_visible and len(snapshot.trail) >= 2
    return Scene(
        viewport=snapshot.viewport,
        markers=tuple(markers),
        trail_line=snapshot.trail if show_trail else None,
        trail_points=snapshot.trail_points if show_trail else None,
        panel=_panel(snapshot, tz_name),
    )


def _panel(snapshot: TrackerSnapshot, tz_name: str) -> ControlPanel:
    loc = snapshot.user_location
    lat_text = lon_text = updated_text = points_text = None
    if loc is not None:
        lat_text = f"Lat: {loc.latitude:.6f}"
        lon_text = f"Lng: {loc.longitude:.6f}"
        updated_text = f"Last updated: {format_local_time(loc.timestamp_ms, tz_name)}"
        points_text = f"Trail points: {len(snapshot.trail)}"
    return ControlPanel(
        tracking_label="Stop Tracking" if snapshot.tracking else "Start Live Tracking",
        tracking_active=snapshot.tracking,
        trail_label="Hide Trail" if snapshot.trail_visible else "Show Trail",
        clear_enabled=len(snapshot.trail) > 0,
        latitude_text=lat_text,
        longitude_text=lon_text,
        updated_text=updated_text,
        points_text=points_text,
        error_text=snapshot.error or None,
    )


def panel_lines(panel: ControlPanel) -> list[str]:
    """Panel content as plain text lines (CLI output, captions)."""

    lines = [f"[{panel.tracking_label}] [{panel.trail_label}] [Clear Trail{'' if panel.clear_enabled else ' (disabled)'}]"]
    for text in (panel.latitude_text, panel.longitude_text, panel.updated_text, panel.points_text):
        if text is not None:
            lines.append(text)
    if panel.error_text:
        lines.append(panel.error_text)
    return lines


def trail_line_feature(line: tuple[Coordinate, ...]) -> dict[str, Any]:
    """GeoJSON LineString Feature for the trail."""

    return {
        "type": "Feature",
        "properties": {},
        "geometry": {"type": "LineString", "coordinates": [c.as_lon_lat() for c in line]},
    }


def trail_points_collection(points: tuple[TrailPoint, ...]) -> dict[str, Any]:
    """GeoJSON FeatureCollection of trail points with start/end flags."""

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"id": p.index, "isStart": p.is_start, "isEnd": p.is_end, "tag": p.tag},
                "geometry": {"type": "Point", "coordinates": p.coordinate.as_lon_lat()},
            }
            for p in points
        ],
    }


def scene_to_dict(scene: Scene) -> dict[str, Any]:
    """JSON-ready view of a scene."""

    vp = scene.viewport
    out: dict[str, Any] = {
        "viewport": {
            "longitude": vp.center.longitude,
            "latitude": vp.center.latitude,
            "zoom": vp.zoom,
            "bearing": vp.bearing,
            "pitch": vp.pitch,
        },
        "markers": [
            {"kind": m.kind, "coordinates": m.coordinate.as_lon_lat(), "content": m.content} for m in scene.markers
        ],
        "trail_line": trail_line_feature(scene.trail_line) if scene.trail_line is not None else None,
        "trail_points": trail_points_collection(scene.trail_points) if scene.trail_points is not None else None,
        "panel": panel_lines(scene.panel),
    }
    return out
