"""Tests for the command-line interface and console reports."""
from __future__ import annotations

import pytest
from typer.testing import CliRunner

from activity_timeline.cli import app
from activity_timeline.models import AppUsageStats, UsageStats
from activity_timeline.reporting import format_duration, render_usage
from activity_timeline.segments import application_color
from activity_timeline.store import DirectoryFrameStore

from conftest import make_frames

runner = CliRunner()


@pytest.fixture
def frames_dir(tmp_path):
    store = DirectoryFrameStore(tmp_path)
    for index, frame in enumerate(make_frames([(0, "AppA"), (1000, "AppA"), (7000, "AppB")])):
        store.append(frame, f"img-{index}".encode())
    return tmp_path


def test_stats_prints_usage_summary(frames_dir):
    result = runner.invoke(app, ["stats", "--frames-dir", str(frames_dir)])

    assert result.exit_code == 0, result.output
    assert "Active time: 00:00:01" in result.output
    assert "Idle time:   00:00:06" in result.output
    assert "AppA" in result.output


def test_stats_idle_threshold_is_in_seconds(frames_dir):
    result = runner.invoke(
        app, ["stats", "--frames-dir", str(frames_dir), "--idle-threshold", "10"]
    )

    assert result.exit_code == 0, result.output
    assert "Idle time:   00:00:00" in result.output


def test_stats_on_empty_directory(tmp_path):
    result = runner.invoke(app, ["stats", "--frames-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "No screenshots recorded yet." in result.output


def test_segments_lists_each_application_run(frames_dir):
    result = runner.invoke(app, ["segments", "--frames-dir", str(frames_dir)])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("AppA")
    assert application_color("AppB") in lines[1]


@pytest.mark.parametrize(
    "milliseconds, expected",
    [(0, "00:00:00"), (999, "00:00:01"), (61_000, "00:01:01"), (3_723_000, "01:02:03")],
)
def test_format_duration(milliseconds, expected):
    assert format_duration(milliseconds) == expected


def test_render_usage_respects_limit():
    stats = UsageStats(
        app_stats=[
            AppUsageStats("Code", 3000, 75.0, 4),
            AppUsageStats("Mail", 1000, 25.0, 1),
        ],
        total_time_ms=4000,
        idle_time_ms=0,
    )

    lines = render_usage(stats, limit=1)

    assert "Idle share:  0.0%" in lines
    assert any(line.strip().startswith("Code") for line in lines)
    assert not any("Mail" in line for line in lines)
