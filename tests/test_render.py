"""
Tests for the pure scene derivation and GeoJSON helpers.
"""

import json

import pytest

from conftest import make_sample
from live_trail.controller import TrackerSnapshot
from live_trail.models import POI, Coordinate, TrackingState, ViewportState
from live_trail.render import (
    DEFAULT_STYLE,
    POI_ICON,
    USER_ICON,
    derive_scene,
    panel_lines,
    scene_to_dict,
    trail_line_feature,
    trail_points_collection,
)
from live_trail.trail import TrailAccumulator


def _snapshot(coords=(), *, location=None, visible=True, state=TrackingState.IDLE, error=None):
    trail = TrailAccumulator(visible=visible)
    for lon, lat in coords:
        trail.offer(make_sample(lon, lat))
    return TrackerSnapshot(
        state=state,
        viewport=ViewportState(),
        user_location=location,
        trail=trail.line(),
        trail_points=trail.points(),
        trail_visible=trail.visible,
        error=error,
        poi=POI,
    )


# ============================================================================
# derive_scene
# ============================================================================

class TestDeriveScene:
    """Tests for markers, trail geometry and panel text."""

    def test_idle_without_location(self):
        scene = derive_scene(_snapshot(), "UTC")
        assert [m.kind for m in scene.markers] == ["poi"]
        assert scene.markers[0].content == POI_ICON
        assert scene.trail_line is None
        assert scene.trail_points is None
        panel = scene.panel
        assert panel.tracking_label == "Start Live Tracking"
        assert panel.trail_label == "Hide Trail"
        assert panel.clear_enabled is False
        assert panel.latitude_text is None
        assert panel.points_text is None
        assert panel.error_text is None

    def test_location_panel_text(self):
        loc = make_sample(-122.4194158, 37.7749291, ts=0)
        scene = derive_scene(
            _snapshot([(-122.4194158, 37.7749291)], location=loc, state=TrackingState.ACTIVE),
            "UTC",
        )
        panel = scene.panel
        assert panel.tracking_label == "Stop Tracking"
        assert panel.latitude_text == "Lat: 37.774929"
        assert panel.longitude_text == "Lng: -122.419416"
        assert panel.updated_text == "Last updated: 00:00:00"
        assert panel.points_text == "Trail points: 1"
        assert panel.clear_enabled is True
        user = [m for m in scene.markers if m.kind == "user"]
        assert user[0].coordinate == loc.coordinate
        assert user[0].content == USER_ICON

    def test_single_point_trail_not_drawn(self):
        scene = derive_scene(_snapshot([(1.0, 1.0)]), "UTC")
        assert scene.trail_line is None
        assert scene.trail_points is None
        assert scene.panel.clear_enabled is True

    def test_trail_drawn_with_two_points(self):
        scene = derive_scene(_snapshot([(1.0, 1.0), (2.0, 2.0), (3.0, 3.0)]), "UTC")
        assert len(scene.trail_line) == 3
        assert [p.tag for p in scene.trail_points] == ["start", "", "end"]

    def test_hidden_trail_not_drawn(self):
        scene = derive_scene(_snapshot([(1.0, 1.0), (2.0, 2.0)], visible=False), "UTC")
        assert scene.trail_line is None
        assert scene.trail_points is None
        assert scene.panel.trail_label == "Show Trail"

    def test_error_text(self):
        scene = derive_scene(_snapshot(error="Error getting location: Timeout expired"), "UTC")
        assert scene.panel.error_text == "Error getting location: Timeout expired"
        assert panel_lines(scene.panel)[-1] == "Error getting location: Timeout expired"

    def test_idempotent(self):
        snap = _snapshot([(1.0, 1.0), (2.0, 2.0)], location=make_sample(2.0, 2.0, ts=123456))
        assert derive_scene(snap, "UTC") == derive_scene(snap, "UTC")

    def test_bad_timezone(self):
        with pytest.raises(ValueError):
            derive_scene(_snapshot(location=make_sample(1.0, 1.0)), "Not/AZone")


# ============================================================================
# GeoJSON and styling
# ============================================================================

class TestGeoJson:
    """Tests for the GeoJSON view of the trail."""

    def test_line_feature(self):
        feat = trail_line_feature((Coordinate(1.0, 2.0), Coordinate(3.0, 4.0)))
        assert feat["geometry"] == {"type": "LineString", "coordinates": [[1.0, 2.0], [3.0, 4.0]]}

    def test_points_collection_flags(self):
        trail = TrailAccumulator()
        for i in range(3):
            trail.offer(make_sample(float(i), 0.0))
        fc = trail_points_collection(trail.points())
        props = [f["properties"] for f in fc["features"]]
        assert [(p["isStart"], p["isEnd"]) for p in props] == [(True, False), (False, False), (False, True)]
        assert [p["id"] for p in props] == [0, 1, 2]

    def test_scene_to_dict_is_json(self):
        snap = _snapshot([(1.0, 1.0), (2.0, 2.0)], location=make_sample(2.0, 2.0))
        payload = scene_to_dict(derive_scene(snap, "UTC"))
        text = json.dumps(payload, ensure_ascii=False)
        assert "LineString" in text
        assert payload["viewport"]["zoom"] == 8.0

    def test_style_endpoints(self):
        trail = TrailAccumulator()
        for i in range(3):
            trail.offer(make_sample(float(i), 0.0))
        start, mid, end = trail.points()
        assert DEFAULT_STYLE.color_for(start) == "#00FF00"
        assert DEFAULT_STYLE.color_for(end) == "#FF0000"
        assert DEFAULT_STYLE.color_for(mid) == "#4285F4"
        assert DEFAULT_STYLE.radius_for(start) == 6
        assert DEFAULT_STYLE.radius_for(mid) == 3
