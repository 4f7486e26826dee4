"""Helpers for locating application directories."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "PulseTracker"
APP_AUTHOR = "PulseTracker"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_usage_dir(data_dir: Optional[Path] = None) -> Path:
    """Directory holding one usage partition file per day."""
    return Path(data_dir or get_data_dir()) / "usage-logs"


def get_log_path(data_dir: Optional[Path] = None) -> Path:
    return Path(data_dir or get_data_dir()) / "tracker.log"
