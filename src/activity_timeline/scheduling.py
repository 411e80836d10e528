"""Single-shot timers for the scrub settle delay and the playback loop."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs each callback on its own daemon ``threading.Timer``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(delay, 0.0), _run_logged, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer


def _run_logged(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        logger.exception("Scheduled callback failed")


class TimerSlot:
    """Holds at most one pending timer; arming it again cancels the previous one."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._token: Optional[object] = None
        self._lock = threading.Lock()

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        token = object()

        def fire() -> None:
            with self._lock:
                # A timer thread may already be running when it is replaced.
                if self._token is not token:
                    return
                self._handle = None
                self._token = None
            callback()

        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._token = token
            self._handle = self._scheduler.call_later(delay, fire)

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._handle = None
            self._token = None

    @property
    def pending(self) -> bool:
        return self._handle is not None
