"""Exceptions raised by capture collaborators."""

from __future__ import annotations


class ActivityTimelineError(Exception):
    """Base class for errors raised by this package."""


class FrameSourceError(ActivityTimelineError):
    """The frame source could not be opened or read."""


class IdentityResolutionError(ActivityTimelineError):
    """The foreground application could not be determined."""
