"""Per-application usage statistics derived from frame timestamps."""

from __future__ import annotations

import logging
from typing import Sequence

from .models import AppUsageStats, Frame, UsageStats

logger = logging.getLogger(__name__)

DEFAULT_IDLE_THRESHOLD_MS = 5000


class UsageAggregator:
    """Buckets the time between consecutive frames by application.

    A gap longer than ``idle_threshold_ms`` counts as idle time. Otherwise the gap
    is credited to the application of the earlier frame. Percentages are relative
    to active (non-idle) time.
    """

    def __init__(self, idle_threshold_ms: int = DEFAULT_IDLE_THRESHOLD_MS) -> None:
        self.idle_threshold_ms = idle_threshold_ms

    def compute(self, frames: Sequence[Frame]) -> UsageStats:
        if not frames:
            return UsageStats()

        buckets: dict[str, AppUsageStats] = {}
        for frame in frames:
            if frame.application_name not in buckets:
                buckets[frame.application_name] = AppUsageStats(frame.application_name)

        total_time_ms = 0.0
        idle_time_ms = 0.0
        for current, following in zip(frames, frames[1:]):
            diff = following.timestamp - current.timestamp
            if diff > self.idle_threshold_ms:
                idle_time_ms += diff
            else:
                bucket = buckets[current.application_name]
                bucket.total_time_ms += diff
                bucket.screenshot_count += 1
            total_time_ms += diff

        buckets[frames[-1].application_name].screenshot_count += 1

        active_time_ms = total_time_ms - idle_time_ms
        for bucket in buckets.values():
            if active_time_ms:
                bucket.percentage = bucket.total_time_ms / active_time_ms * 100
            else:
                bucket.percentage = 0.0

        app_stats = sorted(buckets.values(), key=lambda item: item.total_time_ms, reverse=True)
        logger.debug(
            "Usage computed over %d frames: total=%.0fms idle=%.0fms",
            len(frames),
            total_time_ms,
            idle_time_ms,
        )
        return UsageStats(app_stats=app_stats, total_time_ms=total_time_ms, idle_time_ms=idle_time_ms)
