"""Domain models for recorded foreground usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

UNKNOWN_APP = "Unknown"
TIMESTAMP_SPEC = "milliseconds"


@dataclass(slots=True, frozen=True)
class ActiveWindow:
    """The foreground window as reported by a probe."""

    app: str
    title: str = ""
    path: str = ""

    def __post_init__(self) -> None:
        if not self.app or not self.app.strip():
            object.__setattr__(self, "app", UNKNOWN_APP)

    @property
    def identity(self) -> str:
        """Stable key used to detect transitions."""
        return self.path or self.app


@dataclass(slots=True, frozen=True)
class UsageRecord:
    """A completed interval during which one application held focus."""

    app: str
    title: str
    path: str
    duration: int
    timestamp: Optional[datetime] = None

    @classmethod
    def from_window(cls, window: ActiveWindow, duration: int) -> "UsageRecord":
        return cls(
            app=window.app,
            title=window.title,
            path=window.path,
            duration=max(int(duration), 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "app": self.app,
            "title": self.title,
            "path": self.path,
            "duration": self.duration,
            "timestamp": (
                self.timestamp.isoformat(timespec=TIMESTAMP_SPEC)
                if self.timestamp
                else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UsageRecord":
        app = payload.get("app")
        if not isinstance(app, str) or not app.strip():
            app = UNKNOWN_APP
        title = payload.get("title")
        path = payload.get("path")
        return cls(
            app=app,
            title=title if isinstance(title, str) else "",
            path=path if isinstance(path, str) else "",
            duration=_coerce_duration(payload.get("duration")),
            timestamp=parse_timestamp(payload.get("timestamp")),
        )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into naive local time."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _coerce_duration(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        duration = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(duration, 0)


@dataclass(slots=True, frozen=True)
class AggregateRow:
    app: str
    duration: int


@dataclass(slots=True)
class TitleDetail:
    title: str
    duration: int = 0
    occurrences: int = 0


@dataclass(slots=True)
class AppDetail:
    """Per-title breakdown of the time spent inside one application."""

    app: str
    rows: list[TitleDetail] = field(default_factory=list)
    total: int = 0


@dataclass(slots=True)
class TimelinePoint:
    start: datetime
    values: dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class Timeline:
    points: list[TimelinePoint] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
