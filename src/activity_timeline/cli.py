"""Command-line interface for the activity timeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import AnalysisSettings, CaptureSettings
from .paths import get_frames_dir, get_log_path
from .server_runner import run_dashboard
from .store import DirectoryFrameStore

app = typer.Typer(help="Screen activity capture and timeline review.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also append logs to the per-user capture log."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


@app.command()
def capture(
    frames_dir: Optional[Path] = typer.Option(
        None,
        "--frames-dir",
        path_type=Path,
        help="Directory where screenshots and sidecars are written.",
    ),
    sample_seconds: float = typer.Option(
        1.0,
        "--interval",
        min=0.1,
        help="Sampling interval in seconds.",
    ),
    max_samples: int = typer.Option(
        30,
        "--max-samples",
        min=1,
        help="Samples taken before the session stops on its own.",
    ),
    monitor: int = typer.Option(1, "--monitor", min=0, help="mss monitor index to capture."),
) -> None:
    """Run one capture session in the foreground."""
    from .sampler import CaptureSampler
    from .sources import ActiveWindowResolver, ScreenFrameSource

    settings = CaptureSettings.from_intervals(sample_seconds=sample_seconds, max_samples=max_samples)
    settings.monitor = monitor
    store = DirectoryFrameStore(frames_dir or get_frames_dir())
    sampler = CaptureSampler(
        store=store,
        source=ScreenFrameSource(monitor=settings.monitor, thumbnail_size=settings.thumbnail_size),
        resolver=ActiveWindowResolver(),
        settings=settings,
    )
    sampler.run_until_finished()


@app.command()
def stats(
    frames_dir: Optional[Path] = typer.Option(
        None, "--frames-dir", path_type=Path, help="Directory holding captured screenshots."
    ),
    idle_seconds: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.1,
        help="Seconds between screenshots before the gap counts as idle.",
    ),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of applications to list."),
) -> None:
    """Print time spent per application."""
    from .reporting import SummaryPrinter

    printer = SummaryPrinter(
        DirectoryFrameStore(frames_dir or get_frames_dir()),
        AnalysisSettings.from_intervals(idle_seconds=idle_seconds),
    )
    printer.print_usage_summary(limit=limit)


@app.command()
def segments(
    frames_dir: Optional[Path] = typer.Option(
        None, "--frames-dir", path_type=Path, help="Directory holding captured screenshots."
    ),
) -> None:
    """Print the application segments of the recorded timeline."""
    from .reporting import SummaryPrinter

    SummaryPrinter(DirectoryFrameStore(frames_dir or get_frames_dir())).print_segments()


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    frames_dir: Optional[Path] = typer.Option(
        None, "--frames-dir", path_type=Path, help="Directory holding captured screenshots."
    ),
    sample_seconds: float = typer.Option(
        1.0,
        "--interval",
        min=0.1,
        help="Sampling interval in seconds.",
    ),
    max_samples: int = typer.Option(
        30,
        "--max-samples",
        min=1,
        help="Samples taken before a capture session stops on its own.",
    ),
    start_capture: bool = typer.Option(
        False, "--capture", help="Begin a capture session as soon as the server starts."
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Open the status endpoint in your default browser.",
    ),
) -> None:
    """Serve the dashboard API over the recorded frames."""
    run_dashboard(
        host=host,
        port=port,
        frames_dir=frames_dir or get_frames_dir(),
        settings=CaptureSettings.from_intervals(
            sample_seconds=sample_seconds, max_samples=max_samples
        ),
        start_capture=start_capture,
        open_browser=open_browser,
    )
