"""Foreground window tracker that turns focus transitions into usage records."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .config import TrackerSettings
from .models import ActiveWindow, UsageRecord
from .probe import ForegroundProbe
from .storage import StorageError, UsageStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackerState:
    last_window: Optional[ActiveWindow] = None
    last_change_at: datetime = field(default_factory=datetime.now)


class WindowTracker:
    """Polls a foreground probe and records each completed focus interval.

    A record is only known once the *next* transition happens, so every
    record describes the window that just lost focus. The interval still
    open when the tracker stops is never written.
    """

    def __init__(
        self,
        probe: ForegroundProbe,
        store: UsageStore,
        settings: Optional[TrackerSettings] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.probe = probe
        self.store = store
        self.settings = settings or TrackerSettings()
        self._clock = clock
        self._state = TrackerState(last_change_at=clock())
        self._executor: Optional[ThreadPoolExecutor] = None
        self._probe_call: Optional[Future] = None
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def state(self) -> TrackerState:
        return self._state

    def start(self, poll_interval: Optional[timedelta] = None) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event, poll_interval or self.settings.poll_interval),
                name="window-tracker",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()

    def stop(self, timeout: float = 10.0) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if self._stop_event:
                self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=timeout)
        self._close_executor()

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the sampling loop in the calling thread until ``stop_event`` is set."""
        try:
            self._run_loop(stop_event, self.settings.poll_interval)
        finally:
            self._close_executor()

    def sample_once(self, now: Optional[datetime] = None) -> Optional[UsageRecord]:
        """Run one sampling step; returns the record emitted, if any."""
        window = self._read_probe()
        if window is None:
            return None
        now = now or self._clock()

        state = self._state
        previous = state.last_window
        if previous is None:
            state.last_window = window
            state.last_change_at = now
            return None

        if previous.identity == window.identity:
            state.last_window = window
            return None

        elapsed_ms = int((now - state.last_change_at) / timedelta(milliseconds=1))
        record = UsageRecord.from_window(previous, elapsed_ms)
        state.last_window = window
        state.last_change_at = now
        logger.debug("Focus moved %s -> %s after %d ms", previous.app, window.app, record.duration)
        return self._emit(record)

    def _read_probe(self) -> Optional[ActiveWindow]:
        if self._probe_call is not None and not self._probe_call.done():
            logger.debug("Previous probe call still pending; skipping tick.")
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe")
        call = self._executor.submit(self.probe.get_active_window)
        self._probe_call = call
        try:
            window = call.result(timeout=self.settings.probe_timeout.total_seconds())
        except FutureTimeoutError:
            logger.warning(
                "Foreground probe timed out after %.1fs; skipping tick.",
                self.settings.probe_timeout.total_seconds(),
            )
            return None
        except Exception:
            logger.warning("Foreground probe failed; skipping tick.", exc_info=True)
            return None
        if window is None:
            logger.debug("No foreground window reported.")
        return window

    def _emit(self, record: UsageRecord) -> Optional[UsageRecord]:
        try:
            stored = self.store.append(record)
        except StorageError:
            logger.exception("Lost %d ms of %s usage.", record.duration, record.app)
            return None
        if stored is not None:
            logger.info("Logged %s (%d ms)", stored.app, stored.duration)
        return stored

    def _close_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
            self._probe_call = None

    def _run_loop(self, stop_event: threading.Event, interval: timedelta) -> None:
        logger.info("Starting window tracker; writing to %s", self.store.log_dir)
        seconds = interval.total_seconds()
        while not stop_event.is_set():
            try:
                self.sample_once()
            except Exception:
                logger.exception("Unexpected error while sampling; continuing.")
            # Sleep in an interruptible manner.
            stop_event.wait(seconds)
        logger.info("Window tracker stopped.")
