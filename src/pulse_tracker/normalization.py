"""Utilities to normalize window titles for per-app drill-downs."""

from __future__ import annotations

from typing import Optional


def normalize_title(title: Optional[str], app: str) -> str:
    """Strip trailing ``" - {app}"`` suffixes from a window title.

    Titles such as ``"notes.txt - Editor - Editor"`` collapse to
    ``"notes.txt"``. A title that is blank, or becomes blank once the
    suffixes are gone, is reported under the application name itself.
    """
    if not title:
        return app
    normalized = title.strip()
    suffix = f" - {app}"
    while normalized.endswith(suffix):
        normalized = normalized[: -len(suffix)].strip()
    return normalized or app
