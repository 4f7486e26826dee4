"""Configuration models and helpers for the usage tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the window tracker and timeline view."""

    poll_interval: timedelta = timedelta(seconds=2)
    probe_timeout: timedelta = timedelta(seconds=1)
    bucket_size: timedelta = timedelta(minutes=30)
    timeline_top: int = 5

    def __post_init__(self) -> None:
        if self.bucket_size <= timedelta(0) or timedelta(days=1) % self.bucket_size:
            raise ValueError("bucket_size must be positive and divide a day evenly")

    @classmethod
    def from_intervals(
        cls,
        poll_seconds: float,
        probe_timeout_seconds: float | None = None,
        bucket_minutes: float | None = None,
        timeline_top: int | None = None,
    ) -> "TrackerSettings":
        # A probe call may never outlive the tick that issued it.
        timeout = (
            probe_timeout_seconds
            if probe_timeout_seconds is not None
            else min(poll_seconds, 1.0)
        )
        return cls(
            poll_interval=timedelta(seconds=poll_seconds),
            probe_timeout=timedelta(seconds=min(timeout, poll_seconds)),
            bucket_size=timedelta(minutes=bucket_minutes or 30),
            timeline_top=timeline_top if timeline_top is not None else 5,
        )
