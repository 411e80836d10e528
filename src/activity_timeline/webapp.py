"""FastAPI application that exposes the capture engine and timeline views."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import AnalysisSettings, CaptureSettings
from .models import ApplicationSegment, Frame, TimelineSpan, UsageStats
from .paths import get_frames_dir
from .sampler import CaptureSampler
from .segments import build_segments, summarize_timeline
from .sources import ActiveWindowResolver, FrameSource, IdentityResolver, ScreenFrameSource
from .store import DirectoryFrameStore, FrameStore, format_iso_timestamp
from .usage import UsageAggregator

logger = logging.getLogger(__name__)


class FramePayload(BaseModel):
    filename: str
    timestamp: int
    application_name: str
    window_title: Optional[str] = None
    background_applications: list[str] = []
    is_first_of_session: bool = False


class FrameDataPayload(BaseModel):
    filename: str
    data: str


class SegmentPayload(BaseModel):
    application_name: str
    start_time: int
    end_time: int
    color: str
    start_index: int
    end_index: int
    frame_indices: list[int]


class TimelineSpanPayload(BaseModel):
    application_name: str
    background_applications: list[str]
    time_from: str
    time_end: str


class AppUsagePayload(BaseModel):
    application_name: str
    total_time_ms: float
    percentage: float
    screenshot_count: int


class UsageStatsPayload(BaseModel):
    app_stats: list[AppUsagePayload]
    total_time_ms: float
    idle_time_ms: float


def create_app(
    *,
    frames_dir: Optional[Path] = None,
    settings: Optional[CaptureSettings] = None,
    analysis: Optional[AnalysisSettings] = None,
    store: Optional[FrameStore] = None,
    source: Optional[FrameSource] = None,
    resolver: Optional[IdentityResolver] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_settings = settings or CaptureSettings()
    resolved_analysis = analysis or AnalysisSettings()
    resolved_store = store or DirectoryFrameStore(Path(frames_dir or get_frames_dir()))
    sampler = CaptureSampler(
        store=resolved_store,
        source=source
        or ScreenFrameSource(
            monitor=resolved_settings.monitor, thumbnail_size=resolved_settings.thumbnail_size
        ),
        resolver=resolver or ActiveWindowResolver(),
        settings=resolved_settings,
    )

    app = FastAPI(title="Activity Timeline", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = resolved_store
    app.state.sampler = sampler

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        sampler.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        session = request.app.state.sampler.session
        return {
            "capture_running": request.app.state.sampler.is_running(),
            "samples_taken": session.sample_count if session else 0,
            "frames_retained": session.retained_count if session else 0,
            "frame_count": len(request.app.state.store),
            "sample_seconds": resolved_settings.sample_interval.total_seconds(),
            "max_samples": resolved_settings.max_samples,
        }

    @app.post("/api/capture/start")
    def start_capture(request: Request) -> Dict[str, Any]:
        started = request.app.state.sampler.start()
        return {"started": started}

    @app.post("/api/capture/stop")
    def stop_capture(request: Request) -> Dict[str, Any]:
        return {"stopped": request.app.state.sampler.stop()}

    @app.get("/api/frames", response_model=list[FramePayload])
    def list_frames(request: Request) -> list[FramePayload]:
        return [_frame_payload(frame) for frame in request.app.state.store.list()]

    @app.get("/api/frames/{filename}", response_model=FrameDataPayload)
    def get_frame(filename: str, request: Request) -> FrameDataPayload:
        data = request.app.state.store.read_bytes(filename)
        if data is None:
            raise HTTPException(status_code=404, detail="Frame not found")
        return FrameDataPayload(filename=filename, data=base64.b64encode(data).decode("ascii"))

    @app.get("/api/frames/{filename}/analysis", response_model=FramePayload)
    def get_frame_analysis(filename: str, request: Request) -> FramePayload:
        frame = request.app.state.store.get(filename)
        if frame is None:
            raise HTTPException(status_code=404, detail="Frame not found")
        return _frame_payload(frame)

    @app.get("/api/segments", response_model=list[SegmentPayload])
    def segments(request: Request) -> list[SegmentPayload]:
        frames = request.app.state.store.list()
        return [
            _segment_payload(segment)
            for segment in build_segments(frames, gap_ms=resolved_analysis.segment_gap_ms)
        ]

    @app.get("/api/timeline", response_model=list[TimelineSpanPayload])
    def timeline(request: Request) -> list[TimelineSpanPayload]:
        frames = request.app.state.store.list()
        return [_span_payload(span) for span in summarize_timeline(frames)]

    @app.get("/api/usage-stats", response_model=UsageStatsPayload)
    def usage_stats(request: Request) -> UsageStatsPayload:
        frames = request.app.state.store.list()
        stats = UsageAggregator(resolved_analysis.idle_threshold_ms).compute(frames)
        return _usage_payload(stats)

    return app


def _frame_payload(frame: Frame) -> FramePayload:
    return FramePayload(
        filename=frame.filename,
        timestamp=frame.timestamp,
        application_name=frame.application_name,
        window_title=frame.window_title,
        background_applications=list(frame.background_applications),
        is_first_of_session=frame.is_first_of_session,
    )


def _segment_payload(segment: ApplicationSegment) -> SegmentPayload:
    return SegmentPayload(
        application_name=segment.application_name,
        start_time=segment.start_time,
        end_time=segment.end_time,
        color=segment.color,
        start_index=segment.start_index,
        end_index=segment.end_index,
        frame_indices=list(segment.frame_indices),
    )


def _span_payload(span: TimelineSpan) -> TimelineSpanPayload:
    return TimelineSpanPayload(
        application_name=span.application_name,
        background_applications=list(span.background_applications),
        time_from=format_iso_timestamp(span.time_from),
        time_end=format_iso_timestamp(span.time_end),
    )


def _usage_payload(stats: UsageStats) -> UsageStatsPayload:
    return UsageStatsPayload(
        app_stats=[
            AppUsagePayload(
                application_name=entry.application_name,
                total_time_ms=entry.total_time_ms,
                percentage=entry.percentage,
                screenshot_count=entry.screenshot_count,
            )
            for entry in stats.app_stats
        ],
        total_time_ms=stats.total_time_ms,
        idle_time_ms=stats.idle_time_ms,
    )
