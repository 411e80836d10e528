"""Turn an ordered frame list into application-usage segments."""

from __future__ import annotations

from typing import Optional, Sequence

from .models import UNKNOWN_APPLICATION, ApplicationSegment, Frame, TimelineSpan

DEFAULT_SEGMENT_GAP_MS = 2000

PALETTE: tuple[str, ...] = (
    "#4a6fff",
    "#ff5e5e",
    "#50C878",
    "#FFD700",
    "#9370DB",
    "#FF8C00",
    "#20B2AA",
    "#FF69B4",
)


def application_color(application_name: str) -> str:
    """Map an application name to a stable palette colour."""
    value = 0
    for char in application_name:
        value = (ord(char) + ((value << 5) - value)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 1 << 32
    return PALETTE[abs(value) % len(PALETTE)]


def build_segments(
    frames: Sequence[Frame], gap_ms: int = DEFAULT_SEGMENT_GAP_MS
) -> list[ApplicationSegment]:
    """Group consecutive frames of the same application.

    Each segment ends where the next frame begins; the final frame extends its
    segment by ``gap_ms``. Together the segments cover
    ``[frames[0].timestamp, frames[-1].timestamp + gap_ms)`` without gaps.
    """
    segments: list[ApplicationSegment] = []
    current: Optional[ApplicationSegment] = None

    for index, frame in enumerate(frames):
        following = frames[index + 1] if index + 1 < len(frames) else None
        end_time = following.timestamp if following else frame.timestamp + gap_ms
        name = frame.application_name or UNKNOWN_APPLICATION

        if current is None or current.application_name != name:
            if current is not None:
                segments.append(current)
            current = ApplicationSegment(
                application_name=name,
                start_time=frame.timestamp,
                end_time=end_time,
                color=application_color(name),
                start_index=index,
                end_index=index,
                frame_indices=[index],
            )
        else:
            current.end_time = end_time
            current.end_index = index
            current.frame_indices.append(index)

    if current is not None:
        segments.append(current)
    return segments


def segment_at(segments: Sequence[ApplicationSegment], timestamp: int) -> Optional[ApplicationSegment]:
    for segment in segments:
        if segment.start_time <= timestamp < segment.end_time:
            return segment
    return None


def summarize_timeline(frames: Sequence[Frame]) -> list[TimelineSpan]:
    """Coarse application runs, each closing where the next run starts."""
    spans: list[TimelineSpan] = []
    current_app: Optional[str] = None
    start_time: Optional[int] = None

    for index, frame in enumerate(frames):
        if current_app is None or current_app != frame.application_name:
            if current_app is not None and start_time is not None:
                spans.append(
                    TimelineSpan(
                        application_name=current_app,
                        background_applications=frame.background_applications,
                        time_from=start_time,
                        time_end=frame.timestamp,
                    )
                )
            current_app = frame.application_name
            start_time = frame.timestamp

        if index == len(frames) - 1 and start_time is not None:
            spans.append(
                TimelineSpan(
                    application_name=current_app,
                    background_applications=frame.background_applications,
                    time_from=start_time,
                    time_end=frame.timestamp,
                )
            )
    return spans
