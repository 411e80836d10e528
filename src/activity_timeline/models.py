"""Domain models for captured frames and the views derived from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

UNKNOWN_APPLICATION = "Unknown"


@dataclass(slots=True, frozen=True)
class WindowIdentity:
    """Foreground application as reported by an identity resolver."""

    application_name: str = UNKNOWN_APPLICATION
    window_title: str = UNKNOWN_APPLICATION
    open_applications: tuple[str, ...] = ()

    @classmethod
    def unknown(cls) -> "WindowIdentity":
        return cls()


@dataclass(slots=True, frozen=True)
class Frame:
    """One retained sample of the screen.

    ``timestamp`` is milliseconds since the Unix epoch (UTC).
    """

    filename: str
    timestamp: int
    application_name: str = UNKNOWN_APPLICATION
    window_title: Optional[str] = None
    background_applications: tuple[str, ...] = ()
    is_first_of_session: bool = False

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


@dataclass(slots=True)
class ApplicationSegment:
    """Half-open interval ``[start_time, end_time)`` spent in one application."""

    application_name: str
    start_time: int
    end_time: int
    color: str
    start_index: int = 0
    end_index: int = 0
    frame_indices: list[int] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time


@dataclass(slots=True)
class TimelineSpan:
    """Coarse application run used by the timeline summary view."""

    application_name: str
    background_applications: tuple[str, ...]
    time_from: int
    time_end: int


@dataclass(slots=True)
class AppUsageStats:
    application_name: str
    total_time_ms: float = 0.0
    percentage: float = 0.0
    screenshot_count: int = 0


@dataclass(slots=True)
class UsageStats:
    app_stats: list[AppUsageStats] = field(default_factory=list)
    total_time_ms: float = 0.0
    idle_time_ms: float = 0.0

    @property
    def active_time_ms(self) -> float:
        return self.total_time_ms - self.idle_time_ms

    @property
    def idle_percentage(self) -> float:
        if self.total_time_ms <= 0:
            return 0.0
        return self.idle_time_ms / self.total_time_ms * 100


class GateDecision(str, Enum):
    KEEP = "keep"
    DROP = "drop"


class LoadIntent(str, Enum):
    """Why a frame is being resolved; the UI shows auxiliary panels on user seeks."""

    USER_SEEK = "user_seek"
    PROGRAMMATIC_ADVANCE = "programmatic_advance"


@dataclass(slots=True, frozen=True)
class ResolvedFrame:
    """Image bytes to display for a scrub position.

    ``blend`` is the fractional progress toward ``index + 1`` when the image was
    chosen by interpolation, otherwise ``None``.
    """

    key: str
    data: bytes
    index: int
    intent: LoadIntent
    blend: Optional[float] = None

    @property
    def is_interpolated(self) -> bool:
        return self.blend is not None


@dataclass(slots=True, frozen=True)
class ScrubResult:
    position: float
    frame: Optional[ResolvedFrame] = None
    end_reached: bool = False
