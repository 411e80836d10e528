"""Append-only frame storage.

Each frame is an image artifact plus a JSON sidecar sharing its base name::

    screenshot-2024-04-10T09-54-45-006Z.png
    screenshot-2024-04-10T09-54-45-006Z.json
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from .models import UNKNOWN_APPLICATION, Frame

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "screenshot-"
IMAGE_SUFFIX = ".png"
SIDECAR_SUFFIX = ".json"
FILENAME_TIME_FMT = "%Y-%m-%dT%H-%M-%S-%fZ"

_FILENAME_PATTERN = re.compile(
    r"^screenshot-(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)(?:-\d+)?\.png$"
)


class FrameStore(Protocol):
    def append(self, frame: Frame, data: bytes) -> Frame: ...

    def list(self) -> list[Frame]: ...

    def read_bytes(self, key: str) -> Optional[bytes]: ...

    def get(self, key: str) -> Optional[Frame]: ...

    def __len__(self) -> int: ...


def frame_filename(timestamp_ms: int) -> str:
    """Return the canonical image filename for a capture time."""
    moment = _from_millis(timestamp_ms)
    return f"{FILENAME_PREFIX}{_format_millis(moment, FILENAME_TIME_FMT)}{IMAGE_SUFFIX}"


def timestamp_from_filename(filename: str) -> Optional[int]:
    match = _FILENAME_PATTERN.match(filename)
    if not match:
        return None
    moment = datetime.strptime(match.group("stamp"), FILENAME_TIME_FMT)
    return _to_millis(moment.replace(tzinfo=timezone.utc))


def format_iso_timestamp(timestamp_ms: int) -> str:
    moment = _from_millis(timestamp_ms)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_timestamp(value: str) -> int:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return _to_millis(moment)


def sidecar_name(filename: str) -> str:
    if filename.endswith(IMAGE_SUFFIX):
        filename = filename[: -len(IMAGE_SUFFIX)]
    return filename + SIDECAR_SUFFIX


def frame_to_record(frame: Frame, image_path: Optional[Path] = None) -> dict:
    return {
        "imageURL": str(image_path) if image_path is not None else frame.filename,
        "applicationName": frame.application_name,
        "windowTitle": frame.window_title or UNKNOWN_APPLICATION,
        "timestamp": format_iso_timestamp(frame.timestamp),
        "openApplications": list(frame.background_applications),
        "isFirstFrameOfSession": frame.is_first_of_session,
    }


def frame_from_record(filename: str, record: Any) -> Frame:
    """Build a frame from a sidecar record; raises ``ValueError`` for malformed records."""
    if not isinstance(record, dict):
        raise ValueError(f"Sidecar for {filename} is not an object")
    raw_timestamp = record.get("timestamp")
    if raw_timestamp is not None and not isinstance(raw_timestamp, str):
        raise ValueError(f"Sidecar timestamp for {filename} is not an ISO-8601 string")
    open_applications = record.get("openApplications") or []
    if not isinstance(open_applications, list):
        raise ValueError(f"Sidecar open applications for {filename} is not a list")
    if raw_timestamp:
        timestamp = parse_iso_timestamp(raw_timestamp)
    else:
        derived = timestamp_from_filename(filename)
        if derived is None:
            raise ValueError(f"No timestamp recorded for {filename}")
        timestamp = derived
    window_title = record.get("windowTitle")
    return Frame(
        filename=filename,
        timestamp=timestamp,
        application_name=str(record.get("applicationName") or UNKNOWN_APPLICATION),
        window_title=str(window_title) if window_title else None,
        background_applications=tuple(str(name) for name in open_applications),
        is_first_of_session=bool(record.get("isFirstFrameOfSession", False)),
    )


class DirectoryFrameStore:
    """Frame store backed by a directory of PNG files and JSON sidecars.

    Appends write the sidecar before the image and rename both into place, so a
    concurrent reader listing ``*.png`` only ever sees complete frames.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, frame: Frame, data: bytes) -> Frame:
        with self._lock:
            stored = replace(frame, filename=self._unique_filename(frame.filename))
            image_path = self.directory / stored.filename
            sidecar_path = self.directory / sidecar_name(stored.filename)
            record = frame_to_record(stored, image_path)
            _atomic_write(sidecar_path, json.dumps(record, indent=2).encode("utf-8"))
            _atomic_write(image_path, data)
        logger.debug("Frame saved: %s", image_path)
        return stored

    def list(self) -> list[Frame]:
        frames = list(self._iter_frames())
        frames.sort(key=lambda item: (item.timestamp, item.filename))
        return frames

    def get(self, key: str) -> Optional[Frame]:
        path = self.directory / key
        if path.parent != self.directory or not path.is_file():
            return None
        return self._load_frame(key)

    def read_bytes(self, key: str) -> Optional[bytes]:
        path = self.directory / key
        if path.parent != self.directory or not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError:
            logger.exception("Failed to read frame %s", key)
            return None

    def __len__(self) -> int:
        return sum(1 for _ in self.directory.glob(f"*{IMAGE_SUFFIX}"))

    def _iter_frames(self) -> Iterator[Frame]:
        for path in self.directory.glob(f"*{IMAGE_SUFFIX}"):
            frame = self._load_frame(path.name)
            if frame is not None:
                yield frame

    def _load_frame(self, filename: str) -> Optional[Frame]:
        sidecar_path = self.directory / sidecar_name(filename)
        try:
            if sidecar_path.is_file():
                record = json.loads(sidecar_path.read_text(encoding="utf-8"))
                return frame_from_record(filename, record)
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable sidecar %s", sidecar_path, exc_info=True)
        timestamp = timestamp_from_filename(filename)
        if timestamp is None:
            logger.warning("Skipping frame with unrecognised name %s", filename)
            return None
        return Frame(filename=filename, timestamp=timestamp)

    def _unique_filename(self, filename: str) -> str:
        candidate = filename
        stem = filename[: -len(IMAGE_SUFFIX)]
        counter = 1
        while (self.directory / candidate).exists():
            candidate = f"{stem}-{counter}{IMAGE_SUFFIX}"
            counter += 1
        return candidate


class InMemoryFrameStore:
    """Frame store that keeps everything in process memory."""

    def __init__(self) -> None:
        self._frames: list[Frame] = []
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def append(self, frame: Frame, data: bytes) -> Frame:
        with self._lock:
            stored = frame
            counter = 1
            while stored.filename in self._data:
                stem = frame.filename[: -len(IMAGE_SUFFIX)]
                stored = replace(frame, filename=f"{stem}-{counter}{IMAGE_SUFFIX}")
                counter += 1
            self._data[stored.filename] = data
            self._frames.append(stored)
        return stored

    def list(self) -> list[Frame]:
        with self._lock:
            frames = list(self._frames)
        frames.sort(key=lambda item: (item.timestamp, item.filename))
        return frames

    def get(self, key: str) -> Optional[Frame]:
        with self._lock:
            for frame in self._frames:
                if frame.filename == key:
                    return frame
        return None

    def read_bytes(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)


def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)


def _from_millis(timestamp_ms: int) -> datetime:
    seconds, millis = divmod(int(timestamp_ms), 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=millis * 1000)


def _to_millis(moment: datetime) -> int:
    return int(round(moment.timestamp() * 1000))


def _format_millis(moment: datetime, fmt: str) -> str:
    # strftime emits microseconds; filenames carry milliseconds.
    text = moment.strftime(fmt)
    return text[:-4] + "Z"
