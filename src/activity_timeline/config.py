"""Configuration models and helpers for the activity timeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(slots=True)
class CaptureSettings:
    """Runtime configuration for the capture sampler."""

    sample_interval: timedelta = timedelta(seconds=1)
    max_samples: int = 30
    similarity_threshold: float = 0.98
    pixel_threshold: float = 0.3
    thumbnail_size: tuple[int, int] = (1280, 1080)
    monitor: int = 1

    @classmethod
    def from_intervals(
        cls,
        sample_seconds: float,
        max_samples: int | None = None,
        similarity_threshold: float | None = None,
    ) -> "CaptureSettings":
        defaults = cls()
        return cls(
            sample_interval=timedelta(seconds=sample_seconds),
            max_samples=max_samples if max_samples is not None else defaults.max_samples,
            similarity_threshold=(
                similarity_threshold
                if similarity_threshold is not None
                else defaults.similarity_threshold
            ),
        )


@dataclass(slots=True)
class ScrubSettings:
    """Tuning constants for interactive scrubbing."""

    cache_size: int = 64
    drag_sensitivity: float = 2.0
    trackpad_sensitivity: float = 0.3
    wheel_sensitivity: float = 0.8
    trackpad_threshold: float = 10.0
    wheel_threshold: float = 25.0
    trackpad_divisor: float = 100.0
    wheel_divisor: float = 50.0
    trackpad_vertical_cutoff: float = 40.0
    max_wheel_step: float = 2.0
    accumulator_retention: float = 0.4
    trackpad_settle: timedelta = timedelta(milliseconds=200)
    wheel_settle: timedelta = timedelta(milliseconds=100)


@dataclass(slots=True)
class PlaybackSettings:
    """Autoplay cadence and the available speed multipliers."""

    tick_interval: timedelta = timedelta(milliseconds=100)
    base_step: float = 0.1
    speeds: tuple[float, ...] = field(default=(0.25, 0.5, 1.0, 2.0))
    initial_speed: float = 1.0


@dataclass(slots=True)
class AnalysisSettings:
    """Thresholds used when turning frames into segments and statistics."""

    idle_threshold: timedelta = timedelta(milliseconds=5000)
    segment_gap: timedelta = timedelta(milliseconds=2000)

    @property
    def idle_threshold_ms(self) -> int:
        return self.idle_threshold // timedelta(milliseconds=1)

    @property
    def segment_gap_ms(self) -> int:
        return self.segment_gap // timedelta(milliseconds=1)

    @classmethod
    def from_intervals(
        cls, idle_seconds: float, segment_gap_seconds: float | None = None
    ) -> "AnalysisSettings":
        gap = segment_gap_seconds if segment_gap_seconds is not None else 2.0
        return cls(
            idle_threshold=timedelta(seconds=idle_seconds),
            segment_gap=timedelta(seconds=gap),
        )
