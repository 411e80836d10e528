"""Periodic screen sampling with near-duplicate suppression."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .config import CaptureSettings
from .errors import FrameSourceError
from .models import Frame, GateDecision, WindowIdentity
from .similarity import SimilarityGate
from .sources import FrameSource, IdentityResolver
from .store import FrameStore, frame_filename

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class CaptureSession:
    """Mutable state of one start-to-stop capture run."""

    max_samples: int
    sample_count: int = 0
    last_retained: Optional[bytes] = None
    retained_count: int = 0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def is_exhausted(self) -> bool:
        return self.sample_count >= self.max_samples


@dataclass(slots=True, frozen=True)
class SampleResult:
    decision: GateDecision
    frame: Optional[Frame] = None
    is_first: bool = False
    is_last: bool = False


class CaptureSampler:
    """Samples the screen at a fixed interval and writes distinct frames to a store."""

    def __init__(
        self,
        store: FrameStore,
        source: FrameSource,
        resolver: IdentityResolver,
        settings: Optional[CaptureSettings] = None,
        gate: Optional[SimilarityGate] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.store = store
        self.settings = settings or CaptureSettings()
        self._source = source
        self._resolver = resolver
        self._gate = gate or SimilarityGate(
            similarity_threshold=self.settings.similarity_threshold,
            pixel_threshold=self.settings.pixel_threshold,
        )
        self._clock = clock
        self._lock = threading.RLock()
        self._session: Optional[CaptureSession] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._source_open = False

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    def is_running(self) -> bool:
        with self._lock:
            return self._session is not None

    def begin_session(self) -> bool:
        """Open the source and reset session state without starting the timer."""
        self.stop()
        try:
            self._source.open()
        except FrameSourceError:
            logger.exception("Failed to open frame source; capture not started.")
            return False
        with self._lock:
            self._source_open = True
            self._session = CaptureSession(max_samples=self.settings.max_samples)
        logger.info("Starting new screen capture")
        return True

    def start(self) -> bool:
        """Start a capture session on a background thread."""
        if not self.begin_session():
            return False
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run_loop, args=(stop_event,), name="capture-sampler", daemon=True
        )
        with self._lock:
            self._stop_event = stop_event
            self._thread = thread
        thread.start()
        return True

    def stop(self) -> bool:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if self._stop_event is not None:
                self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=10)
        self._end_session()
        return True

    def run_until_finished(self) -> None:
        """Run a session in the calling thread until exhausted or interrupted."""
        if not self.begin_session():
            return
        stop_event = threading.Event()
        with self._lock:
            self._stop_event = stop_event
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Capture interrupted.")
        finally:
            self.stop()

    def sample_once(self) -> Optional[SampleResult]:
        """Take one sample; returns ``None`` when nothing could be acquired."""
        with self._lock:
            session = self._session
            if session is None or session.is_exhausted:
                return None

            identity = self._resolve_identity()
            data = self._acquire()
            if data is None:
                logger.debug("No frame available; skipping tick.")
                return None

            is_first = session.sample_count == 0
            is_last = session.sample_count == session.max_samples - 1
            decision = self._gate.decide(session.last_retained, data, is_first, is_last)

            stored: Optional[Frame] = None
            if decision is GateDecision.KEEP:
                stored = self._persist(identity, data, is_first)
                if stored is not None:
                    session.last_retained = data
                    session.retained_count += 1
            else:
                logger.debug("Skipping similar screenshot.")

            session.sample_count += 1
            return SampleResult(decision=decision, frame=stored, is_first=is_first, is_last=is_last)

    def _resolve_identity(self) -> WindowIdentity:
        try:
            return self._resolver.resolve_active_application()
        except Exception:
            logger.warning("Error getting active window for screenshot", exc_info=True)
            return WindowIdentity.unknown()

    def _acquire(self) -> Optional[bytes]:
        try:
            return self._source.acquire()
        except Exception:
            logger.exception("Error capturing screen")
            return None

    def _persist(self, identity: WindowIdentity, data: bytes, is_first: bool) -> Optional[Frame]:
        timestamp = self._clock()
        frame = Frame(
            filename=frame_filename(timestamp),
            timestamp=timestamp,
            application_name=identity.application_name,
            window_title=identity.window_title,
            background_applications=tuple(identity.open_applications),
            is_first_of_session=is_first,
        )
        try:
            return self.store.append(frame, data)
        except OSError:
            logger.exception("Failed to persist frame %s", frame.filename)
            return None

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self.settings.sample_interval.total_seconds()
        try:
            while not stop_event.wait(interval):
                self.sample_once()
                with self._lock:
                    session = self._session
                    if session is None or session.is_exhausted:
                        break
        finally:
            # Released on the thread that grabbed frames.
            self._close_source()
        with self._lock:
            finished = self._stop_event is stop_event and not stop_event.is_set()
        if finished:
            logger.info("Capture session reached %d samples.", self.settings.max_samples)
            self.stop()

    def _end_session(self) -> None:
        with self._lock:
            session = self._session
            if session is None:
                return
            self._close_source()
            self._session = None
        logger.info(
            "Capture stopped after %d samples (%d retained).",
            session.sample_count,
            session.retained_count,
        )

    def _close_source(self) -> None:
        with self._lock:
            if not self._source_open:
                return
            self._source_open = False
            try:
                self._source.close()
            except Exception:
                logger.exception("Failed to close frame source")
