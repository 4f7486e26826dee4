"""Shared fixtures: a controllable clock, scripted probes and a temp store."""

from datetime import datetime, timedelta

import pytest

from pulse_tracker.models import ActiveWindow
from pulse_tracker.storage import UsageStore


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedProbe:
    """Returns queued windows (or raises queued exceptions) in order."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    def push(self, *results) -> None:
        self.results.extend(results)

    def get_active_window(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result


def window(app: str, title: str = "", path: str | None = None) -> ActiveWindow:
    return ActiveWindow(app=app, title=title, path=path if path is not None else f"/usr/bin/{app.lower()}")


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 0, 0))


@pytest.fixture
def store(tmp_path, clock):
    return UsageStore(tmp_path / "usage-logs", clock=clock)
