"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from .queries import RANGE_LABELS, UsageQueries


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, queries: UsageQueries) -> None:
        self.queries = queries

    def print_summary(self, range_name: str = "day", limit: int = 10) -> None:
        rows = self.queries.get_summary(range_name)
        if not rows:
            print("No app usage recorded for the selected range.")
            return

        total = sum(row.duration for row in rows)
        print(f"App usage: {RANGE_LABELS.get(range_name, range_name)}")
        print("-" * 48)
        print(f"Total tracked: {format_duration(total)}")
        print()
        for row in rows[:limit]:
            print(f"  {row.app[:28]:<28} {format_duration(row.duration)}  {format_share(row.duration, total):>6}")

    def print_app_details(self, app: str, range_name: str = "day", limit: int = 10) -> None:
        detail = self.queries.get_app_details(app, range_name)
        if not detail.rows:
            print(f"No usage recorded for {app}.")
            return

        print(f"{app}: {format_duration(detail.total)}")
        print("-" * 48)
        for row in detail.rows[:limit]:
            label = row.title[:36]
            print(f"  {label:<36} {format_duration(row.duration)}  x{row.occurrences}")


def format_duration(milliseconds: float) -> str:
    total_seconds = int(round(milliseconds / 1000))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_share(duration: int, total: int) -> str:
    share = (duration / total) * 100 if total else 0.0
    return f"{share:.1f}%"
