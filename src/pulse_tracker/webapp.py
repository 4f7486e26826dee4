"""FastAPI application that exposes the usage query API and runs the tracker."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .models import UsageRecord
from .paths import get_usage_dir
from .probe import ForegroundProbe, create_default_probe
from .queries import RANGE_LABELS, UnknownRangeError, UsageQueries
from .storage import StorageError, UsageStore
from .tracker import WindowTracker

logger = logging.getLogger(__name__)

RANGE_PATTERN = "^(day|week|month)$"


class TrackerRunner:
    """Manage the window tracker in a background thread."""

    def __init__(self, tracker: WindowTracker) -> None:
        self._tracker = tracker
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._tracker.is_running():
                return
            self._tracker.start()
            logger.info("Tracker background thread started.")

    def stop(self) -> None:
        with self._lock:
            if not self._tracker.is_running():
                return
            self._tracker.stop()
            logger.info("Tracker background thread stopped.")

    def is_running(self) -> bool:
        return self._tracker.is_running()


class UsageEntryPayload(BaseModel):
    app: str
    title: str
    path: str
    duration: int
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: UsageRecord) -> "UsageEntryPayload":
        return cls(
            app=record.app,
            title=record.title,
            path=record.path,
            duration=record.duration,
            timestamp=record.timestamp,
        )


def create_app(
    *,
    data_dir: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    probe: Optional[ForegroundProbe] = None,
    start_tracker: bool = True,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_settings = settings or TrackerSettings()
    store = UsageStore(get_usage_dir(data_dir), clock=clock)
    queries = UsageQueries(store, clock=clock)
    resolved_probe = probe or create_default_probe()
    tracker = WindowTracker(resolved_probe, store, resolved_settings, clock=clock)
    runner = TrackerRunner(tracker)

    app = FastAPI(title="Pulse Tracker", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.queries = queries
    app.state.tracker_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        if start_tracker:
            runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "tracker_running": request.app.state.tracker_runner.is_running(),
            "log_dir": str(request.app.state.store.log_dir),
            "poll_seconds": resolved_settings.poll_interval.total_seconds(),
        }

    @app.get("/api/active")
    def active_window() -> Optional[Dict[str, str]]:
        try:
            window = resolved_probe.get_active_window()
        except Exception as exc:
            logger.warning("Foreground probe failed: %s", exc)
            raise HTTPException(status_code=503, detail="Foreground window unavailable") from exc
        if window is None:
            return None
        return {"app": window.app, "title": window.title, "path": window.path}

    @app.get("/api/summary")
    def summary(
        request: Request,
        range: str = Query(default="day", pattern=RANGE_PATTERN),
    ) -> Dict[str, Any]:
        rows = _run_query(lambda: request.app.state.queries.get_summary(range))
        return {
            "range": range,
            "total": sum(row.duration for row in rows),
            "entries": [{"app": row.app, "duration": row.duration} for row in rows],
        }

    @app.get("/api/entries", response_model=List[UsageEntryPayload])
    def entries(
        request: Request,
        range: str = Query(default="day", pattern=RANGE_PATTERN),
        app_name: Optional[str] = Query(default=None, alias="app"),
    ) -> List[UsageEntryPayload]:
        records = _run_query(lambda: request.app.state.queries.get_entries(range, app_name))
        return [UsageEntryPayload.from_record(record) for record in records]

    @app.get("/api/apps/{app_name}/details")
    def app_details(
        app_name: str,
        request: Request,
        range: str = Query(default="day", pattern=RANGE_PATTERN),
    ) -> Dict[str, Any]:
        detail = _run_query(lambda: request.app.state.queries.get_app_details(app_name, range))
        return {
            "app": detail.app,
            "range": range,
            "total": detail.total,
            "rows": [
                {"title": row.title, "duration": row.duration, "occurrences": row.occurrences}
                for row in detail.rows
            ],
        }

    @app.get("/api/timeline")
    def timeline(
        request: Request,
        range: str = Query(default="day", pattern=RANGE_PATTERN),
        top: int = Query(default=resolved_settings.timeline_top, ge=1, le=50),
    ) -> Dict[str, Any]:
        result = _run_query(
            lambda: request.app.state.queries.get_timeline(
                range, top=top, bucket_size=resolved_settings.bucket_size
            )
        )
        return {
            "range": range,
            "keys": result.keys,
            "points": [
                {"start": point.start.isoformat(), "values": point.values}
                for point in result.points
            ],
        }

    @app.get("/api/export")
    def export(
        request: Request,
        range: str = Query(default="day", pattern=RANGE_PATTERN),
    ) -> Response:
        content = _run_query(lambda: request.app.state.queries.export_csv(range))
        label = RANGE_LABELS[range].lower().replace(" ", "-")
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={
                "Content-Disposition": f'attachment; filename="pulse-app-usage-{label}.csv"'
            },
        )

    return app


def _run_query(query: Callable[[], Any]) -> Any:
    try:
        return query()
    except UnknownRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error("Usage query failed: %s", exc)
        raise HTTPException(status_code=503, detail="Usage data is unavailable") from exc
