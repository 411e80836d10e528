"""Tests for the dashboard API."""
from __future__ import annotations

import base64
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from activity_timeline.config import CaptureSettings
from activity_timeline.errors import FrameSourceError
from activity_timeline.models import WindowIdentity
from activity_timeline.sources import CallableFrameSource, StaticIdentityResolver
from activity_timeline.store import InMemoryFrameStore

from conftest import encode_png, make_frames


class UnavailableSource:
    def open(self) -> None:
        raise FrameSourceError("no display")

    def acquire(self):
        return None

    def close(self) -> None:
        return None


def _client(store, source=None):
    from activity_timeline.webapp import create_app

    app = create_app(
        store=store,
        source=source or CallableFrameSource(encode_png),
        resolver=StaticIdentityResolver(WindowIdentity("Code", "main.py")),
        settings=CaptureSettings(sample_interval=timedelta(seconds=30), max_samples=2),
    )
    return TestClient(app)


@pytest.fixture
def populated_store():
    store = InMemoryFrameStore()
    frames = make_frames(
        [(0, "AppA"), (1000, "AppA"), (7000, "AppB")], background=["Slack"]
    )
    for index, frame in enumerate(frames):
        store.append(frame, f"img-{index}".encode())
    return store


class TestDashboardApi:
    def test_status_reports_idle_capture(self, populated_store):
        client = _client(populated_store)
        payload = client.get("/api/status").json()
        assert payload["capture_running"] is False
        assert payload["frame_count"] == 3
        assert payload["max_samples"] == 2

    def test_frames_are_listed_in_order(self, populated_store):
        client = _client(populated_store)
        frames = client.get("/api/frames").json()
        assert [f["application_name"] for f in frames] == ["AppA", "AppA", "AppB"]
        assert frames[0]["background_applications"] == ["Slack"]

    def test_frame_bytes_are_base64_encoded(self, populated_store):
        client = _client(populated_store)
        filename = populated_store.list()[1].filename

        payload = client.get(f"/api/frames/{filename}").json()

        assert base64.b64decode(payload["data"]) == b"img-1"

    def test_unknown_frame_is_404(self, populated_store):
        client = _client(populated_store)
        assert client.get("/api/frames/missing.png").status_code == 404
        assert client.get("/api/frames/missing.png/analysis").status_code == 404

    def test_frame_analysis(self, populated_store):
        client = _client(populated_store)
        filename = populated_store.list()[2].filename
        payload = client.get(f"/api/frames/{filename}/analysis").json()
        assert payload["application_name"] == "AppB"

    def test_segments_endpoint(self, populated_store):
        client = _client(populated_store)
        segments = client.get("/api/segments").json()
        assert [(s["application_name"], s["start_time"], s["end_time"]) for s in segments] == [
            ("AppA", 0, 7000),
            ("AppB", 7000, 9000),
        ]

    def test_timeline_endpoint_uses_iso_timestamps(self, populated_store):
        client = _client(populated_store)
        spans = client.get("/api/timeline").json()
        assert spans[0]["time_from"] == "1970-01-01T00:00:00.000Z"
        assert spans[0]["time_end"] == "1970-01-01T00:00:07.000Z"

    def test_usage_stats_endpoint(self, populated_store):
        client = _client(populated_store)
        stats = client.get("/api/usage-stats").json()
        assert stats["total_time_ms"] == 7000
        assert stats["idle_time_ms"] == 6000
        assert stats["app_stats"][0]["application_name"] == "AppA"
        assert stats["app_stats"][0]["percentage"] == pytest.approx(100.0)

    def test_empty_store_yields_empty_views(self):
        client = _client(InMemoryFrameStore())
        assert client.get("/api/segments").json() == []
        assert client.get("/api/usage-stats").json() == {
            "app_stats": [],
            "total_time_ms": 0.0,
            "idle_time_ms": 0.0,
        }

    def test_capture_start_and_stop(self):
        client = _client(InMemoryFrameStore())
        assert client.post("/api/capture/start").json() == {"started": True}
        assert client.get("/api/status").json()["capture_running"] is True
        assert client.post("/api/capture/stop").json() == {"stopped": True}
        assert client.get("/api/status").json()["capture_running"] is False

    def test_capture_start_reports_unavailable_source(self):
        client = _client(InMemoryFrameStore(), source=UnavailableSource())
        assert client.post("/api/capture/start").json() == {"started": False}
