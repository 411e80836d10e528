"""Frame sources and application identity resolvers used by the sampler."""

from __future__ import annotations

import ctypes
import io
import logging
import sys
from typing import Any, Callable, Iterable, Optional, Protocol

import mss
import psutil
from mss.exception import ScreenShotError
from PIL import Image

from .errors import FrameSourceError, IdentityResolutionError
from .models import WindowIdentity
from .normalization import normalize_application_name, normalize_window_title

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def open(self) -> None: ...

    def acquire(self) -> Optional[bytes]: ...

    def close(self) -> None: ...


class IdentityResolver(Protocol):
    def resolve_active_application(self) -> WindowIdentity: ...


class ScreenFrameSource:
    """Grabs a monitor with mss and encodes it as a PNG thumbnail."""

    def __init__(self, monitor: int = 1, thumbnail_size: tuple[int, int] = (1280, 1080)) -> None:
        self._monitor_idx = monitor
        self._thumbnail_size = thumbnail_size
        self._sct: Optional[Any] = None
        self._bbox: Optional[dict] = None

    def open(self) -> None:
        if self._bbox is not None:
            return
        try:
            with mss.mss() as sct:
                bbox = dict(sct.monitors[self._monitor_idx])
        except (ScreenShotError, IndexError, OSError) as exc:
            raise FrameSourceError(f"Cannot open monitor {self._monitor_idx}: {exc}") from exc
        self._bbox = bbox
        logger.info(
            "Screen source opened: monitor=%d %dx%d",
            self._monitor_idx,
            bbox["width"],
            bbox["height"],
        )

    def acquire(self) -> Optional[bytes]:
        if self._bbox is None:
            return None
        # mss handles belong to the grabbing thread.
        if self._sct is None:
            self._sct = mss.mss()
        shot = self._sct.grab(self._bbox)
        image = Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")
        image.thumbnail(self._thumbnail_size)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def close(self) -> None:
        """Release the grab handle; call it from the thread that acquired frames."""
        if self._bbox is None:
            return
        if self._sct is not None:
            self._sct.close()
            self._sct = None
        self._bbox = None
        logger.info("Screen source closed")


class CallableFrameSource:
    """Adapts a plain callable returning encoded image bytes."""

    def __init__(self, grab: Callable[[], Optional[bytes]]) -> None:
        self._grab = grab

    def open(self) -> None:
        return None

    def acquire(self) -> Optional[bytes]:
        return self._grab()

    def close(self) -> None:
        return None


class StaticIdentityResolver:
    """Always reports the same identity."""

    def __init__(self, identity: WindowIdentity) -> None:
        self._identity = identity

    def resolve_active_application(self) -> WindowIdentity:
        return self._identity


def list_open_applications(process_names: Optional[Iterable[str]] = None) -> tuple[str, ...]:
    """Return distinct, sorted application names of running processes."""
    if process_names is None:
        names: list[str] = []
        for proc in psutil.process_iter(["name"]):
            name = proc.info.get("name")
            if name:
                names.append(name)
        process_names = names
    unique = {normalize_application_name(name) for name in process_names if name}
    return tuple(sorted(unique, key=str.casefold))


class ActiveWindowResolver:
    """Retrieves the foreground window title and process name."""

    def __init__(self) -> None:
        self._user32 = None
        if sys.platform == "win32":
            self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def resolve_active_application(self) -> WindowIdentity:
        if self._user32 is None:
            raise IdentityResolutionError(
                f"Foreground window lookup is not supported on {sys.platform}"
            )
        process_name, window_title = self._get_active_window()
        if not process_name:
            raise IdentityResolutionError("No foreground window")
        application = normalize_application_name(process_name)
        title = normalize_window_title(process_name, window_title) or application
        return WindowIdentity(
            application_name=application,
            window_title=title,
            open_applications=list_open_applications(),
        )

    def _get_active_window(self) -> tuple[Optional[str], Optional[str]]:
        from ctypes import wintypes

        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None, None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip() or None

        pid = wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        process_name: Optional[str]
        try:
            if pid.value:
                process_name = psutil.Process(pid.value).name()
            else:
                process_name = None
        except (psutil.Error, ProcessLookupError):
            process_name = None

        return process_name, window_title
