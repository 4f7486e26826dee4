"""Command-line interface for the usage tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import typer

from .config import TrackerSettings
from .paths import get_log_path, get_usage_dir
from .queries import RANGES, UsageQueries
from .server_runner import run_dashboard
from .storage import UsageStore

app = typer.Typer(help="Local-first foreground app usage tracker.")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def _data_dir_option() -> Any:
    return typer.Option(
        None,
        "--data-dir",
        path_type=Path,
        help="Directory holding the usage logs.",
    )


def _range_option() -> Any:
    return typer.Option("day", "--range", "-r", help="One of: day, week, month.")


def _queries(data_dir: Optional[Path]) -> UsageQueries:
    return UsageQueries(UsageStore(get_usage_dir(data_dir)))


def _check_range(range_name: str) -> str:
    if range_name not in RANGES:
        raise typer.BadParameter(f"expected one of {', '.join(RANGES)}", param_hint="--range")
    return range_name


@app.command()
def track(
    data_dir: Optional[Path] = _data_dir_option(),
    poll_seconds: float = typer.Option(
        2.0,
        "--interval",
        min=0.5,
        help="Sampling interval in seconds.",
    ),
) -> None:
    """Run the window tracker until interrupted."""
    import threading

    from .probe import create_default_probe
    from .tracker import WindowTracker

    log_path = get_log_path(data_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_handler = logging.FileHandler(log_path, encoding="utf-8")
    log_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(log_handler)

    settings = TrackerSettings.from_intervals(poll_seconds=poll_seconds)
    store = UsageStore(get_usage_dir(data_dir))
    tracker = WindowTracker(create_default_probe(), store, settings)
    try:
        tracker.run_until_stopped(threading.Event())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Tracker interrupted; the open interval is not recorded.")


@app.command()
def summary(
    range_name: str = _range_option(),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of apps to show."),
    data_dir: Optional[Path] = _data_dir_option(),
) -> None:
    """Print time per application for a range."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_queries(data_dir)).print_summary(_check_range(range_name), limit=limit)


@app.command()
def details(
    app_name: str = typer.Argument(..., help="Application name exactly as recorded."),
    range_name: str = _range_option(),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of titles to show."),
    data_dir: Optional[Path] = _data_dir_option(),
) -> None:
    """Print the window titles that made up an application's time."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_queries(data_dir)).print_app_details(
        app_name, _check_range(range_name), limit=limit
    )


@app.command()
def export(
    range_name: str = _range_option(),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Write CSV here instead of stdout."
    ),
    data_dir: Optional[Path] = _data_dir_option(),
) -> None:
    """Export the per-application summary as CSV."""
    content = _queries(data_dir).export_csv(_check_range(range_name))
    if output is None:
        typer.echo(content, nl=False)
        return
    output.write_text(content, encoding="utf-8", newline="")
    typer.echo(f"Wrote {output}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    data_dir: Optional[Path] = _data_dir_option(),
    poll_seconds: float = typer.Option(
        2.0,
        "--interval",
        min=0.5,
        help="Sampling interval in seconds.",
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically open the API docs in your default browser.",
    ),
) -> None:
    """Start the local usage API with the background tracker."""
    settings = TrackerSettings.from_intervals(poll_seconds=poll_seconds)
    run_dashboard(
        host=host,
        port=port,
        data_dir=data_dir,
        settings=settings,
        open_browser=open_browser,
    )
