"""Range resolution and the read-side query surface over the usage store."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Callable, Literal, Optional, Sequence

from .aggregation import bucket_timeline, detail_by_app, summarize, to_delimited_text, top_apps
from .models import AggregateRow, AppDetail, Timeline, UsageRecord
from .storage import UsageStore

UsageRange = Literal["day", "week", "month"]
RANGES: tuple[str, ...] = ("day", "week", "month")
RANGE_LABELS = {"day": "Today", "week": "Last 7 Days", "month": "Last 30 Days"}


class UnknownRangeError(ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown range {name!r}; expected one of {', '.join(RANGES)}")
        self.name = name


def subtract_month(value: datetime) -> datetime:
    """Step back one calendar month, clamping to the shorter month's last day."""
    year, month = (value.year, value.month - 1) if value.month > 1 else (value.year - 1, 12)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def resolve_range(name: str, now: datetime) -> tuple[datetime, datetime]:
    """Return the inclusive ``(start, end)`` window for a named range."""
    if name == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0), now
    if name == "week":
        return now - timedelta(days=7), now
    if name == "month":
        return subtract_month(now), now
    raise UnknownRangeError(name)


class UsageQueries:
    """Answers usage questions for the presentation layer.

    Every call reloads from the store; nothing is cached. Storage errors
    propagate so callers can tell "no data" from "cannot fetch".
    """

    def __init__(
        self,
        store: UsageStore,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self._clock = clock

    def load(self, range_name: UsageRange = "day") -> list[UsageRecord]:
        now = self._clock()
        start, end = resolve_range(range_name, now)
        if range_name == "day":
            return self.store.load_day(now)
        return self.store.load_range(start, end)

    def get_today_summary(self) -> list[AggregateRow]:
        return summarize(self.load("day"))

    def get_summary(self, range_name: UsageRange) -> list[AggregateRow]:
        return summarize(self.load(range_name))

    def get_entries(
        self, range_name: UsageRange = "day", app: Optional[str] = None
    ) -> list[UsageRecord]:
        entries = self.load(range_name)
        if app:
            entries = [entry for entry in entries if entry.app == app]
        return entries

    def get_app_details(self, app: str, range_name: UsageRange = "day") -> AppDetail:
        return detail_by_app(self.get_entries(range_name, app), app)

    def get_timeline(
        self,
        range_name: UsageRange = "day",
        *,
        top: int = 5,
        tracked_apps: Optional[Sequence[str]] = None,
        bucket_size: Optional[timedelta] = None,
    ) -> Timeline:
        records = self.load(range_name)
        tracked = list(tracked_apps) if tracked_apps is not None else top_apps(records, top)
        if bucket_size is None:
            return bucket_timeline(records, tracked)
        return bucket_timeline(records, tracked, bucket_size)

    def export_csv(self, range_name: UsageRange = "day") -> str:
        rows = self.get_summary(range_name)
        return to_delimited_text(rows, sum(row.duration for row in rows))
