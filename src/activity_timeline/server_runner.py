"""Serve the dashboard API with uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import AnalysisSettings, CaptureSettings
from .paths import get_frames_dir
from .webapp import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 1.0


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    frames_dir: Optional[Path] = None,
    settings: Optional[CaptureSettings] = None,
    analysis: Optional[AnalysisSettings] = None,
    start_capture: bool = False,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Block serving the API until uvicorn exits; capture stops on shutdown."""
    app = create_app(
        frames_dir=frames_dir or get_frames_dir(),
        settings=settings,
        analysis=analysis,
    )
    if start_capture and not app.state.sampler.start():
        logger.warning("Screen capture could not be started; serving stored frames only.")

    if open_browser:
        timer = threading.Timer(
            BROWSER_DELAY_SECONDS, _open_status_page, args=(f"http://{host}:{port}/api/status",)
        )
        timer.daemon = True
        timer.start()

    logger.info("Dashboard listening on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_status_page(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
