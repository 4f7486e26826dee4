"""Tests for pulse_tracker.tracker — transition detection and emission."""

import threading
import time
from datetime import timedelta

import pytest

from conftest import ScriptedProbe, window
from pulse_tracker.config import TrackerSettings
from pulse_tracker.storage import StorageWriteError
from pulse_tracker.tracker import WindowTracker


@pytest.fixture
def probe():
    return ScriptedProbe()


@pytest.fixture
def tracker(probe, store, clock):
    t = WindowTracker(probe, store, TrackerSettings(), clock=clock)
    yield t
    t.stop()


class TestSampleOnce:
    def test_first_observation_emits_nothing(self, tracker, probe, store, clock):
        probe.push(window("Editor"))
        assert tracker.sample_once() is None
        assert tracker.state.last_window.app == "Editor"
        assert tracker.state.last_change_at == clock.now
        assert store.load_day(clock.now) == []

    def test_transitions_emit_one_record_per_completed_interval(self, tracker, probe, store, clock):
        """A -> B -> A -> C yields records for A, B, A with the elapsed times."""
        steps = [("Editor", 0), ("Browser", 90), ("Editor", 30), ("Terminal", 45)]
        for app, seconds in steps:
            clock.advance(seconds=seconds)
            probe.push(window(app))
            tracker.sample_once()

        loaded = store.load_day(clock.now)
        assert [r.app for r in loaded] == ["Editor", "Browser", "Editor"]
        assert [r.duration for r in loaded] == [90_000, 30_000, 45_000]

    def test_record_is_attributed_to_the_window_that_lost_focus(self, tracker, probe, clock):
        probe.push(window("Editor", "a.txt - Editor"), window("Browser", "News"))
        tracker.sample_once()
        clock.advance(seconds=5)
        emitted = tracker.sample_once()

        assert emitted.app == "Editor"
        assert emitted.title == "a.txt - Editor"
        assert emitted.path == "/usr/bin/editor"

    def test_same_identity_keeps_interval_open_and_refreshes_title(self, tracker, probe, clock):
        probe.push(
            window("Editor", "a.txt"),
            window("Editor", "b.txt"),
            window("Browser", "News"),
        )
        tracker.sample_once()
        clock.advance(seconds=10)
        assert tracker.sample_once() is None
        clock.advance(seconds=10)
        emitted = tracker.sample_once()

        assert emitted.duration == 20_000
        assert emitted.title == "b.txt"

    def test_identity_is_path_not_display_name(self, tracker, probe, clock):
        probe.push(window("Python", path="/opt/a/python"), window("Python", path="/opt/b/python"))
        tracker.sample_once()
        clock.advance(seconds=3)
        assert tracker.sample_once().duration == 3000

    def test_missing_window_skips_tick(self, tracker, probe, clock):
        probe.push(window("Editor"), None, window("Browser"))
        tracker.sample_once()
        clock.advance(seconds=4)
        assert tracker.sample_once() is None
        clock.advance(seconds=4)
        assert tracker.sample_once().duration == 8000

    def test_probe_errors_are_swallowed(self, tracker, probe, clock):
        probe.push(RuntimeError("boom"), window("Editor"))
        assert tracker.sample_once() is None
        assert tracker.state.last_window is None
        assert tracker.sample_once() is None
        assert tracker.state.last_window.app == "Editor"

    def test_probe_timeout_skips_tick(self, store, clock):
        release = threading.Event()

        class HangingProbe:
            def get_active_window(self):
                release.wait(5)
                return window("Editor")

        settings = TrackerSettings(probe_timeout=timedelta(milliseconds=50))
        t = WindowTracker(HangingProbe(), store, settings, clock=clock)
        try:
            assert t.sample_once() is None
            # the hung call is still outstanding, so the next tick is skipped too
            assert t.sample_once() is None
            assert t.state.last_window is None
        finally:
            release.set()
            t.stop()

    def test_zero_elapsed_time_is_not_persisted(self, tracker, probe, store, clock):
        probe.push(window("Editor"), window("Browser"))
        tracker.sample_once()
        assert tracker.sample_once() is None
        assert store.load_day(clock.now) == []

    def test_storage_failure_is_logged_and_swallowed(self, tracker, probe, store, clock, monkeypatch, caplog):
        def fail(record):
            raise StorageWriteError("disk full")

        monkeypatch.setattr(store, "append", fail)
        probe.push(window("Editor"), window("Browser"))
        tracker.sample_once()
        clock.advance(seconds=1)

        assert tracker.sample_once() is None
        assert "Lost 1000 ms of Editor usage" in caplog.text
        assert tracker.state.last_window.app == "Browser"


class TestBackgroundLoop:
    def test_start_and_stop(self, probe, store, clock):
        probe.push(*[window("Editor")] * 50)
        t = WindowTracker(probe, store, TrackerSettings(poll_interval=timedelta(milliseconds=10)), clock=clock)
        t.start()
        deadline = time.monotonic() + 2
        while probe.calls < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert t.is_running()

        t.stop()
        assert not t.is_running()
        calls = probe.calls
        time.sleep(0.05)
        assert probe.calls == calls

    def test_start_twice_is_noop(self, tracker):
        tracker.start(timedelta(milliseconds=10))
        tracker.start(timedelta(milliseconds=10))
        assert tracker.is_running()
        tracker.stop()
        assert not tracker.is_running()

    def test_run_until_stopped_returns_when_event_is_set(self, probe, store, clock):
        stop_event = threading.Event()
        stop_event.set()
        t = WindowTracker(probe, store, clock=clock)
        t.run_until_stopped(stop_event)
        assert probe.calls == 0
