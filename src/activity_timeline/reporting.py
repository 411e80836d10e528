"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .config import AnalysisSettings
from .models import ApplicationSegment, UsageStats
from .segments import build_segments
from .store import FrameStore
from .usage import UsageAggregator


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, store: FrameStore, settings: AnalysisSettings | None = None) -> None:
        self.store = store
        self.settings = settings or AnalysisSettings()

    def print_usage_summary(self, limit: int = 10) -> None:
        frames = self.store.list()
        if not frames:
            print("No screenshots recorded yet.")
            return
        stats = UsageAggregator(self.settings.idle_threshold_ms).compute(frames)
        for line in render_usage(stats, limit=limit):
            print(line)

    def print_segments(self) -> None:
        frames = self.store.list()
        segments = build_segments(frames, gap_ms=self.settings.segment_gap_ms)
        if not segments:
            print("No screenshots recorded yet.")
            return
        for line in render_segments(segments):
            print(line)


def render_usage(stats: UsageStats, limit: int = 10) -> list[str]:
    lines = [
        "Usage statistics",
        "-" * 40,
        f"Active time: {format_duration(stats.active_time_ms)}",
        f"Idle time:   {format_duration(stats.idle_time_ms)}",
        f"Idle share:  {stats.idle_percentage:.1f}%",
    ]
    if stats.app_stats:
        lines.append("")
        lines.append("Top applications:")
        for entry in stats.app_stats[:limit]:
            lines.append(
                f"  {entry.application_name[:30]:<30} {format_duration(entry.total_time_ms)}"
                f" {entry.percentage:5.1f}% {entry.screenshot_count:>4} frames"
            )
    return lines


def render_segments(segments: Sequence[ApplicationSegment]) -> list[str]:
    return [
        f"{format_clock(segment.start_time)} - {format_clock(segment.end_time)}"
        f"  {segment.color}  {segment.application_name}"
        for segment in segments
    ]


def format_duration(milliseconds: float) -> str:
    total_seconds = int(round(milliseconds / 1000))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_clock(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")
