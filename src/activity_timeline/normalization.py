"""Labels for applications and window titles as they appear on the timeline."""

from __future__ import annotations

import re
from typing import Optional

from .models import UNKNOWN_APPLICATION

# Keyed by the normalized, casefolded application name.
_TITLE_SUFFIXES: dict[str, tuple[str, ...]] = {
    "msedge": (" - Personal - Microsoft Edge", " - Work - Microsoft Edge", " - Microsoft Edge"),
    "chrome": (" - Google Chrome",),
    "google chrome": (" - Google Chrome",),
    "firefox": (" \u2014 Mozilla Firefox", " - Mozilla Firefox"),
    "brave": (" - Brave",),
    "code": (" - Visual Studio Code",),
}

_EXECUTABLE_SUFFIX = re.compile(r"\.(exe|app)$", re.IGNORECASE)
_WHITESPACE_RUN = re.compile(r"\s{2,}")


def normalize_application_name(process_name: Optional[str]) -> str:
    """Turn a process or bundle name into the label shown on the timeline."""
    if not process_name:
        return UNKNOWN_APPLICATION
    cleaned = _EXECUTABLE_SUFFIX.sub("", process_name.strip())
    return cleaned or UNKNOWN_APPLICATION


def normalize_window_title(process_name: Optional[str], window_title: Optional[str]) -> Optional[str]:
    """Strip the owning application's name from the end of a window title."""
    if not window_title:
        return None
    title = _WHITESPACE_RUN.sub(" ", window_title).strip()
    application = normalize_application_name(process_name).casefold()
    for suffix in _TITLE_SUFFIXES.get(application, ()):
        if title.endswith(suffix) and len(title) > len(suffix):
            title = title[: -len(suffix)].rstrip(" -")
            break
    return title or None
