"""FastAPI application exposing tracking controls and usage statistics."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict

from .collector import USAGE_UPDATED, UsageTracker
from .config import TrackerSettings
from .db import UsageStore
from .errors import StorageError
from .probe import ForegroundAppProbe, select_probe
from .service import ControlSurface

logger = logging.getLogger(__name__)


class ActionResult(BaseModel):
    success: bool
    message: str
    note: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class HealthStatus(BaseModel):
    status: str
    platform: str
    docker: bool
    timestamp: str


class UsageUpdateBroadcaster:
    """Fan ``usage-updated`` notifications from the tracker thread out to
    connected event-stream clients."""

    def __init__(self, max_pending: int = 32) -> None:
        self.max_pending = max_pending
        self._lock = threading.Lock()
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[str]]] = []

    def subscribe(self) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.max_pending)
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        with self._lock:
            self._subscribers = [
                (loop, q) for loop, q in self._subscribers if q is not queue
            ]

    def publish(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for loop, queue in subscribers:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(_offer, queue, USAGE_UPDATED)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


def _offer(queue: asyncio.Queue[str], event: str) -> None:
    # A full queue already has an update pending for this client.
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        pass


def create_app(
    *,
    settings: Optional[TrackerSettings] = None,
    probe: Optional[ForegroundAppProbe] = None,
    store: Optional[UsageStore] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_settings = settings or TrackerSettings.from_env()
    resolved_store = store or UsageStore(resolved_settings.db_path)
    tracker = UsageTracker(
        resolved_store,
        probe or select_probe(),
        sample_interval=resolved_settings.sample_interval,
    )
    control = ControlSurface(tracker, demo_when_unsupported=resolved_settings.headless)
    broadcaster = UsageUpdateBroadcaster()
    control.add_listener(broadcaster.publish)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        # StorageInitError is fatal here; the server refuses to start.
        resolved_store.initialize()
        if resolved_settings.headless and not control.tracking_supported:
            logger.info("Foreground tracking unavailable; serving demonstration data.")
        try:
            yield
        finally:
            try:
                control.tracker.stop()
            finally:
                resolved_store.close()

    app = FastAPI(title="App Usage Tracker", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = resolved_settings
    app.state.control = control
    app.state.broadcaster = broadcaster

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": _error_message(request)})

    @app.get("/health", response_model=HealthStatus)
    def health(request: Request) -> HealthStatus:
        return HealthStatus(
            status="healthy",
            platform=sys.platform,
            docker=request.app.state.settings.docker,
            timestamp=datetime.now().astimezone().isoformat(),
        )

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        state = request.app.state
        session = state.control.tracker.session()
        return {
            "tracking": state.control.is_tracking(),
            "current_app": session.current_app,
            "database_path": str(state.settings.db_path),
            "sample_seconds": state.settings.sample_interval.total_seconds(),
            "mode": state.settings.mode.value,
            "demo_data": state.control.demo_mode,
        }

    @app.get("/api/usage-stats")
    @app.get("/api/usage-stats/{period}")
    def usage_stats(request: Request, period: str = "today") -> Dict[str, Any]:
        return request.app.state.control.get_usage_stats(period)

    @app.get("/api/daily-stats")
    def daily_stats(
        request: Request,
        days: int = Query(default=7, ge=0, le=366, description="Days to look back."),
    ) -> list[Dict[str, Any]]:
        return request.app.state.control.get_daily_stats(days)

    @app.post("/api/start-tracking", response_model=ActionResult, response_model_exclude_none=True)
    def start_tracking(request: Request) -> Dict[str, Any]:
        return request.app.state.control.start_tracking()

    @app.post("/api/stop-tracking", response_model=ActionResult, response_model_exclude_none=True)
    def stop_tracking(request: Request) -> Dict[str, Any]:
        return request.app.state.control.stop_tracking()

    @app.get("/api/is-tracking")
    def is_tracking(request: Request) -> bool:
        return request.app.state.control.is_tracking()

    @app.post("/api/clear-data", response_model=ActionResult, response_model_exclude_none=True)
    def clear_data(request: Request) -> Dict[str, Any]:
        return request.app.state.control.clear_data()

    @app.get("/api/usage-updates")
    async def usage_updates(request: Request) -> StreamingResponse:
        return StreamingResponse(
            _event_stream(request, request.app.state.broadcaster),
            media_type="text/event-stream",
        )

    @app.get("/")
    def index() -> Dict[str, Any]:
        return {
            "name": "App Usage Tracker",
            "health": "/health",
            "usage_stats": "/api/usage-stats/{period}",
            "updates": "/api/usage-updates",
        }

    return app


async def _event_stream(
    request: Request,
    broadcaster: UsageUpdateBroadcaster,
    *,
    keepalive: float = 15.0,
) -> AsyncIterator[str]:
    # Subscribing on first iteration means a stream that never starts
    # never registers a queue.
    queue = broadcaster.subscribe()
    try:
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"event: {event}\ndata: {{}}\n\n"
    finally:
        broadcaster.unsubscribe(queue)


_ERROR_MESSAGES: dict[str, str] = {
    "/api/clear-data": "Failed to clear data",
    "/api/start-tracking": "Failed to start tracking",
    "/api/stop-tracking": "Failed to stop tracking",
    "/api/daily-stats": "Failed to get daily stats",
}


def _error_message(request: Request) -> str:
    return _ERROR_MESSAGES.get(request.url.path, "Failed to get usage stats")
