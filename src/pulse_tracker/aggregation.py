"""Pure aggregation helpers over loaded usage records."""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from .models import AggregateRow, AppDetail, TimelinePoint, Timeline, TitleDetail, UsageRecord
from .normalization import normalize_title

OTHER_KEY = "Other"
DEFAULT_BUCKET = timedelta(minutes=30)
CSV_HEADER = ("Application", "Duration (minutes)", "Share (%)")

_MS_PER_MINUTE = 60_000


def _totals_by_app(records: Iterable[UsageRecord]) -> dict[str, int]:
    # dicts keep first-encounter order, which the stable sorts below rely on.
    totals: dict[str, int] = {}
    for record in records:
        totals[record.app] = totals.get(record.app, 0) + record.duration
    return totals


def summarize(records: Iterable[UsageRecord]) -> list[AggregateRow]:
    """Total duration per app, largest first; ties keep encounter order."""
    totals = _totals_by_app(records)
    rows = [AggregateRow(app=app, duration=duration) for app, duration in totals.items() if duration > 0]
    return sorted(rows, key=lambda row: row.duration, reverse=True)


def top_apps(records: Iterable[UsageRecord], limit: int = 5) -> list[str]:
    return [row.app for row in summarize(records)[: max(limit, 0)]]


def detail_by_app(records: Iterable[UsageRecord], app: str) -> AppDetail:
    """Break one app's time down by normalized window title."""
    details: dict[str, TitleDetail] = {}
    total = 0
    for record in records:
        if record.app != app:
            continue
        total += record.duration
        title = normalize_title(record.title, app)
        detail = details.setdefault(title, TitleDetail(title=title))
        detail.duration += record.duration
        detail.occurrences += 1

    rows = sorted(details.values(), key=lambda row: row.duration, reverse=True)
    return AppDetail(app=app, rows=rows, total=total)


def bucket_start(timestamp: datetime, bucket_size: timedelta = DEFAULT_BUCKET) -> datetime:
    """Floor ``timestamp`` to its bucket, counting buckets from local midnight."""
    midnight = timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
    offset = (timestamp - midnight) // bucket_size
    return midnight + offset * bucket_size


def bucket_timeline(
    records: Iterable[UsageRecord],
    tracked_apps: Sequence[str],
    bucket_size: timedelta = DEFAULT_BUCKET,
) -> Timeline:
    """Build a continuous stacked timeline of minutes per app per bucket.

    Records for apps outside ``tracked_apps`` are pooled under ``"Other"``.
    When ``tracked_apps`` is empty every app becomes its own series, ranked
    by total time, and there is no ``"Other"`` series. Buckets between the
    first and last occupied one are always present, zero-filled when empty.
    Records without a timestamp cannot be placed and are ignored.
    ``bucket_size`` must divide a day evenly so buckets line up across midnight.
    """
    if bucket_size <= timedelta(0) or timedelta(days=1) % bucket_size:
        raise ValueError("bucket_size must be positive and divide a day evenly")

    placed = [record for record in records if record.timestamp is not None]
    tracked = set(tracked_apps)
    if tracked:
        def series_for(app: str) -> str:
            return app if app in tracked else OTHER_KEY
    else:
        def series_for(app: str) -> str:
            return app

    buckets: defaultdict[datetime, defaultdict[str, float]] = defaultdict(lambda: defaultdict(float))
    seen: set[str] = set()
    for record in placed:
        key = series_for(record.app)
        seen.add(key)
        buckets[bucket_start(record.timestamp, bucket_size)][key] += record.duration / _MS_PER_MINUTE

    if not buckets:
        return Timeline()

    if tracked:
        keys = [app for app in dict.fromkeys(tracked_apps) if app in seen]
        if OTHER_KEY in seen and OTHER_KEY not in tracked:
            keys.append(OTHER_KEY)
    else:
        totals = _totals_by_app(placed)
        keys = sorted(totals, key=lambda app: totals[app], reverse=True)

    points: list[TimelinePoint] = []
    current = min(buckets)
    last = max(buckets)
    while current <= last:
        values = buckets.get(current, {})
        points.append(TimelinePoint(start=current, values={key: values.get(key, 0.0) for key in keys}))
        current += bucket_size
    return Timeline(points=points, keys=keys)


def to_delimited_text(rows: Iterable[AggregateRow], total: Optional[int] = None) -> str:
    """Render aggregate rows as CSV with minutes and share of ``total``."""
    rows = list(rows)
    if total is None:
        total = sum(row.duration for row in rows)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        share = (row.duration / total) * 100 if total else 0.0
        writer.writerow((row.app, f"{row.duration / _MS_PER_MINUTE:.2f}", f"{share:.2f}"))
    return buffer.getvalue()
