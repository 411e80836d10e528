"""Continuous scrubbing over the captured frame sequence.

The scrub head is a real-valued position in ``[0, frame_count - 1]``. Its
integer part selects a frame and its fractional part is progress toward the
next one. Input handlers move the head and resolve what should be displayed.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from typing import Callable, Optional

from .config import ScrubSettings
from .models import Frame, LoadIntent, ResolvedFrame, ScrubResult
from .scheduling import Scheduler, ThreadingScheduler, TimerSlot
from .store import FrameStore

logger = logging.getLogger(__name__)

LOW_BLEND_BOUND = 0.33
HIGH_BLEND_BOUND = 0.67

FrameListener = Callable[[ResolvedFrame], None]
PositionListener = Callable[[float], None]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class FrameCache:
    """Bounded LRU map from frame key to encoded image bytes.

    Interpolation choices are remembered separately per frame pair so that a pair
    always resolves to the same blended image for the lifetime of the cache.
    """

    def __init__(self, max_entries: int = 64) -> None:
        self.max_entries = max(max_entries, 3)
        self._entries: OrderedDict[str, bytes] = OrderedDict()
        self._blends: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            data = self._entries.get(key)
            if data is not None:
                self._entries.move_to_end(key)
            return data

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._entries[key] = data
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted %s from frame cache", evicted)

    def blend_choice(self, pair: tuple[str, str]) -> Optional[str]:
        with self._lock:
            return self._blends.get(pair)

    def remember_blend(self, pair: tuple[str, str], chosen: str) -> str:
        with self._lock:
            return self._blends.setdefault(pair, chosen)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._blends.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ScrubEngine:
    """Maps wheel, drag, click and step input onto a scrub position."""

    def __init__(
        self,
        store: FrameStore,
        settings: Optional[ScrubSettings] = None,
        cache: Optional[FrameCache] = None,
        scheduler: Optional[Scheduler] = None,
        on_frame: Optional[FrameListener] = None,
        on_position: Optional[PositionListener] = None,
    ) -> None:
        self.store = store
        self.settings = settings or ScrubSettings()
        self.cache = cache if cache is not None else FrameCache(self.settings.cache_size)
        self._settle_timer = TimerSlot(scheduler or ThreadingScheduler())
        self._on_frame = on_frame
        self._on_position = on_position
        self._lock = threading.RLock()
        self._frames: list[Frame] = store.list()
        self._position = 0.0
        self._current_index = -1
        self._displayed: Optional[ResolvedFrame] = None
        self._drag_origin: Optional[float] = None
        self._wheel_accumulator = 0.0
        self._last_wheel_direction = 0

    @property
    def frames(self) -> list[Frame]:
        return list(self._frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def position(self) -> float:
        return self._position

    @property
    def current_index(self) -> int:
        return max(self._current_index, 0)

    @property
    def displayed(self) -> Optional[ResolvedFrame]:
        return self._displayed

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    @property
    def wheel_accumulator(self) -> float:
        return self._wheel_accumulator

    @property
    def last_wheel_direction(self) -> int:
        return self._last_wheel_direction

    def reload(self) -> int:
        """Pick up frames appended since construction; keeps the position in range."""
        with self._lock:
            self._frames = self.store.list()
            self._position = self._clamp(self._position)
            if self._current_index >= len(self._frames):
                self._current_index = -1
            return len(self._frames)

    def reset(self) -> ScrubResult:
        """Return to the first frame and forget any in-flight gesture."""
        with self._lock:
            self._settle_timer.cancel()
            self._drag_origin = None
            self._wheel_accumulator = 0.0
            self._last_wheel_direction = 0
            self._position = 0.0
            self._current_index = -1
            self._displayed = None
            if not self._frames:
                return ScrubResult(0.0)
            frame = self._load(0, LoadIntent.PROGRAMMATIC_ADVANCE)
            self._emit_position()
            return ScrubResult(self._position, frame)

    def seek_to_index(
        self, index: int, intent: LoadIntent = LoadIntent.USER_SEEK
    ) -> ScrubResult:
        with self._lock:
            if not self._frames:
                return ScrubResult(0.0)
            target = min(max(int(index), 0), len(self._frames) - 1)
            self._position = float(target)
            frame = self._load(target, intent)
            self._emit_position()
            return ScrubResult(self._position, frame)

    def seek_to_fraction(self, fraction: float) -> ScrubResult:
        """Click-to-seek: show the nearest frame, keep the exact position."""
        with self._lock:
            if not self._frames:
                return ScrubResult(0.0)
            fraction = min(max(fraction, 0.0), 1.0)
            exact = fraction * (len(self._frames) - 1)
            target = min(max(round_half_up(exact), 0), len(self._frames) - 1)
            frame = self._load(target, LoadIntent.USER_SEEK)
            self._position = exact
            self._emit_position()
            return ScrubResult(self._position, frame)

    def begin_drag(self) -> None:
        with self._lock:
            self._drag_origin = self._position

    def drag_by(self, delta_pixels: float, track_width_pixels: float) -> ScrubResult:
        """Move relative to the position captured by :meth:`begin_drag`."""
        with self._lock:
            if not self._frames or track_width_pixels <= 0:
                return ScrubResult(self._position, self._displayed)
            if self._drag_origin is None:
                self._drag_origin = self._position
            total_range = len(self._frames) - 1
            delta = -(delta_pixels / track_width_pixels) * total_range * self.settings.drag_sensitivity
            return self._move_to(self._drag_origin + delta, LoadIntent.PROGRAMMATIC_ADVANCE)

    def end_drag(self) -> ScrubResult:
        """Finish a drag by snapping to the nearest frame."""
        with self._lock:
            if self._drag_origin is None:
                return ScrubResult(self._position, self._displayed)
            self._drag_origin = None
            return self._snap()

    def wheel(self, delta_x: float, delta_y: float) -> ScrubResult:
        """Accumulate wheel or trackpad deltas and move once past the threshold."""
        with self._lock:
            if not self._frames:
                return ScrubResult(0.0)
            settings = self.settings
            is_trackpad = abs(delta_x) > 0 or abs(delta_y) < settings.trackpad_vertical_cutoff
            if is_trackpad:
                sensitivity = settings.trackpad_sensitivity
                threshold = settings.trackpad_threshold
                divisor = settings.trackpad_divisor
                settle_delay = settings.trackpad_settle.total_seconds()
            else:
                sensitivity = settings.wheel_sensitivity
                threshold = settings.wheel_threshold
                divisor = settings.wheel_divisor
                settle_delay = settings.wheel_settle.total_seconds()

            primary = delta_x if abs(delta_x) > abs(delta_y) else delta_y
            if primary == 0:
                return ScrubResult(self._position, self._displayed)

            self._wheel_accumulator += primary
            direction = 1 if primary > 0 else -1
            reversed_direction = (
                self._last_wheel_direction != 0 and direction != self._last_wheel_direction
            )
            if abs(self._wheel_accumulator) < threshold and not reversed_direction:
                return ScrubResult(self._position, self._displayed)

            if direction != self._last_wheel_direction:
                self._wheel_accumulator = direction * threshold
            self._last_wheel_direction = direction

            step = min(settings.max_wheel_step, abs(self._wheel_accumulator / divisor))
            result = self._move_to(
                self._position + step * sensitivity * direction,
                LoadIntent.PROGRAMMATIC_ADVANCE,
            )
            self._wheel_accumulator *= settings.accumulator_retention
            self._settle_timer.arm(settle_delay, self._settle)
            return result

    def step_frame(self, direction: int) -> ScrubResult:
        """Move one whole frame; reports ``end_reached`` instead of passing the end."""
        with self._lock:
            if not self._frames:
                return ScrubResult(0.0, end_reached=direction > 0)
            step = 1 if direction > 0 else -1
            last_index = len(self._frames) - 1
            if step > 0 and self.current_index >= last_index:
                return ScrubResult(self._position, self._displayed, end_reached=True)
            if step < 0 and self.current_index <= 0:
                return ScrubResult(self._position, self._displayed)
            target = self.current_index + step
            frame = self._load(target, LoadIntent.USER_SEEK)
            self._position = float(target)
            self._emit_position()
            return ScrubResult(self._position, frame)

    def advance_to(self, position: float) -> ScrubResult:
        """Move the head without user-interaction side effects (used by autoplay)."""
        with self._lock:
            if not self._frames:
                return ScrubResult(0.0)
            return self._move_to(position, LoadIntent.PROGRAMMATIC_ADVANCE)

    def resolve_interpolated(
        self,
        position: float,
        intent: LoadIntent = LoadIntent.PROGRAMMATIC_ADVANCE,
    ) -> Optional[ResolvedFrame]:
        """Resolve a position to a frame using the three-bucket blend policy.

        Below ``0.33`` the earlier frame is shown and from ``0.67`` the later one.
        In between, a per-pair blended image is chosen once and reused.
        """
        with self._lock:
            if not self._frames:
                return None
            position = self._clamp(position)
            index = int(math.floor(position))
            fraction = position - index
            if fraction == 0 or index >= len(self._frames) - 1:
                return self._resolve_index(index, intent)

            from_key = self._frames[index].filename
            to_key = self._frames[index + 1].filename
            if fraction < LOW_BLEND_BOUND:
                chosen_key = from_key
            elif fraction < HIGH_BLEND_BOUND:
                pair = (from_key, to_key)
                chosen_key = self.cache.remember_blend(
                    pair, from_key if fraction <= 0.5 else to_key
                )
            else:
                chosen_key = to_key

            data = self._fetch(chosen_key)
            if data is None:
                return None
            return ResolvedFrame(
                key=f"interpolated-{index}-{index + 1}-{fraction:.2f}",
                data=data,
                index=index,
                intent=intent,
                blend=fraction,
            )

    def _move_to(self, position: float, intent: LoadIntent) -> ScrubResult:
        position = self._clamp(position)
        self._position = position
        index = int(math.floor(position))
        if index != self._current_index:
            self._load(index, intent)
        fraction = position - index
        if fraction > 0 and index < len(self._frames) - 1:
            interpolated = self.resolve_interpolated(position, intent)
            if interpolated is not None:
                self._display(interpolated)
        self._emit_position()
        return ScrubResult(self._position, self._displayed)

    def _settle(self) -> None:
        with self._lock:
            if self._frames:
                self._snap()
            self._last_wheel_direction = 0

    def _snap(self) -> ScrubResult:
        if not self._frames:
            return ScrubResult(0.0)
        target = min(max(round_half_up(self._position), 0), len(self._frames) - 1)
        frame = self._displayed
        if target != self._current_index or (frame is not None and frame.is_interpolated):
            frame = self._load(target, LoadIntent.PROGRAMMATIC_ADVANCE)
        self._position = float(target)
        self._emit_position()
        return ScrubResult(self._position, frame)

    def _resolve_index(self, index: int, intent: LoadIntent) -> Optional[ResolvedFrame]:
        key = self._frames[index].filename
        data = self._fetch(key)
        if data is None:
            return None
        return ResolvedFrame(key=key, data=data, index=index, intent=intent)

    def _load(self, index: int, intent: LoadIntent) -> Optional[ResolvedFrame]:
        resolved = self._resolve_index(index, intent)
        if resolved is None:
            logger.warning("Frame %s could not be loaded", self._frames[index].filename)
            return None
        self._current_index = index
        self._display(resolved)
        self._preload_adjacent(index)
        return resolved

    def _display(self, resolved: ResolvedFrame) -> None:
        self._displayed = resolved
        if self._on_frame is not None:
            self._on_frame(resolved)

    def _preload_adjacent(self, index: int) -> None:
        if len(self._frames) <= 1:
            return
        for neighbour in (max(0, index - 1), min(len(self._frames) - 1, index + 1)):
            self._fetch(self._frames[neighbour].filename)

    def _fetch(self, key: str) -> Optional[bytes]:
        data = self.cache.get(key)
        if data is not None:
            return data
        data = self.store.read_bytes(key)
        if data is not None:
            self.cache.put(key, data)
        return data

    def _clamp(self, position: float) -> float:
        if not self._frames:
            return 0.0
        return min(max(position, 0.0), float(len(self._frames) - 1))

    def _emit_position(self) -> None:
        if self._on_position is not None:
            self._on_position(self._position)
