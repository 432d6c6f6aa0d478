"""Helpers to launch the HTTP server in desktop or headless mode."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .probe import ForegroundAppProbe
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_server(
    settings: Optional[TrackerSettings] = None,
    *,
    probe: Optional[ForegroundAppProbe] = None,
    open_browser: Optional[bool] = None,
    log_level: str = "info",
) -> None:
    """Serve the API; desktop mode also opens the dashboard in a browser."""
    resolved = settings or TrackerSettings.from_env()
    app = create_app(settings=resolved, probe=probe)

    if open_browser is None:
        open_browser = not resolved.headless
    url = f"http://{resolved.host}:{resolved.port}"
    logger.info("Starting %s mode on %s", resolved.mode.value, url)
    if resolved.headless:
        logger.info("Usage statistics: GET %s/api/usage-stats/{period}", url)
    if open_browser:
        threading.Thread(
            target=_launch_browser_after_delay, args=(url,), daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=resolved.host, port=resolved.port, log_level=log_level)


def _launch_browser_after_delay(url: str) -> None:
    time.sleep(1.0)
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Failed to launch browser for %s", url)
