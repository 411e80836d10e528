"""Shared pytest fixtures."""
from __future__ import annotations

import io
from typing import Callable, Iterable, Optional

import pytest
from PIL import Image

from activity_timeline.models import Frame
from activity_timeline.store import InMemoryFrameStore, frame_filename


def encode_png(
    size: tuple[int, int] = (100, 100),
    background: tuple[int, int, int] = (255, 255, 255),
    blocks: Iterable[tuple[int, int, int, int, tuple[int, int, int]]] = (),
) -> bytes:
    """Render a solid image with optional ``(x, y, w, h, colour)`` rectangles."""
    image = Image.new("RGB", size, background)
    for x, y, width, height, colour in blocks:
        image.paste(colour, (x, y, x + width, y + height))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            handle.fired = True
            self.now = max(self.now, handle.due)
            handle.callback()
        self.now = target


def make_frames(
    samples: Iterable[tuple[int, str]], background: Optional[list[str]] = None
) -> list[Frame]:
    """Build frames from ``(timestamp_ms, application_name)`` pairs."""
    return [
        Frame(
            filename=frame_filename(timestamp),
            timestamp=timestamp,
            application_name=app,
            background_applications=tuple(background or ()),
        )
        for timestamp, app in samples
    ]


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def five_frame_store() -> InMemoryFrameStore:
    store = InMemoryFrameStore()
    for index, frame in enumerate(make_frames((i * 1000, "App") for i in range(5))):
        store.append(frame, f"frame-{index}".encode())
    return store
