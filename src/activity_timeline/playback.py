"""Autoplay over the scrub engine."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from .config import PlaybackSettings
from .models import LoadIntent, ScrubResult
from .scheduling import Scheduler, ThreadingScheduler, TimerSlot
from .scrub import ScrubEngine

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


class PlaybackScheduler:
    """Advances the scrub head by ``base_step * speed`` on every tick."""

    def __init__(
        self,
        engine: ScrubEngine,
        settings: Optional[PlaybackSettings] = None,
        scheduler: Optional[Scheduler] = None,
        on_state_change: Optional[Callable[[PlaybackState], None]] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or PlaybackSettings()
        self._timer = TimerSlot(scheduler or ThreadingScheduler())
        self._on_state_change = on_state_change
        self._lock = threading.RLock()
        self._state = PlaybackState.STOPPED
        speeds = self.settings.speeds
        self._speed = (
            self.settings.initial_speed if self.settings.initial_speed in speeds else speeds[0]
        )

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def speed(self) -> float:
        return self._speed

    def play(self) -> bool:
        with self._lock:
            if self.engine.frame_count == 0:
                return False
            if self.is_playing:
                return True
            if self.engine.position >= self.engine.frame_count - 1:
                self.engine.seek_to_index(0, LoadIntent.PROGRAMMATIC_ADVANCE)
            self._set_state(PlaybackState.PLAYING)
            self._schedule_tick()
            return True

    def pause(self) -> None:
        with self._lock:
            self._timer.cancel()
            if self.is_playing:
                self._set_state(PlaybackState.STOPPED)

    stop = pause

    def toggle(self) -> bool:
        with self._lock:
            if self.is_playing:
                self.pause()
                return False
            return self.play()

    def next_speed(self) -> float:
        """Cycle to the next speed, restarting the tick cadence while playing."""
        with self._lock:
            speeds = self.settings.speeds
            index = speeds.index(self._speed) if self._speed in speeds else -1
            self._speed = speeds[(index + 1) % len(speeds)]
            logger.debug("Playback speed set to %sx", self._speed)
            if self.is_playing:
                self.pause()
                self.play()
            return self._speed

    def step(self, direction: int) -> ScrubResult:
        """Previous/next frame; autoplay stops when stepping past the end."""
        with self._lock:
            result = self.engine.step_frame(direction)
            if result.end_reached and self.is_playing:
                self.pause()
            return result

    def tick(self) -> Optional[ScrubResult]:
        with self._lock:
            if not self.is_playing:
                return None
            last_index = self.engine.frame_count - 1
            if last_index < 0:
                self.pause()
                return None
            next_position = self.engine.position + self.settings.base_step * self._speed
            if next_position >= last_index:
                result = self.engine.seek_to_index(last_index, LoadIntent.PROGRAMMATIC_ADVANCE)
                self.pause()
                return result
            result = self.engine.advance_to(next_position)
            self._schedule_tick()
            return result

    def _schedule_tick(self) -> None:
        self._timer.arm(self.settings.tick_interval.total_seconds(), self.tick)

    def _set_state(self, state: PlaybackState) -> None:
        self._state = state
        logger.debug("Playback %s", state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)
