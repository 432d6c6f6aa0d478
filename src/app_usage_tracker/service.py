"""Operations exposed to front ends: HTTP routes, the dashboard and the CLI."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .collector import Listener, UsageTracker
from .db import UsageStore
from .errors import ProbeError, UnsupportedPlatformError
from .models import AppTotals, Period, UsageStats
from .reporting import build_usage_stats

logger = logging.getLogger(__name__)


# Shown in headless mode when foreground detection is unavailable.
DEMO_USAGE: tuple[AppTotals, ...] = (
    AppTotals("Visual Studio Code", 7200, 12),
    AppTotals("Chrome", 5400, 8),
    AppTotals("Terminal", 3600, 15),
    AppTotals("Slack", 2700, 6),
    AppTotals("Spotify", 1800, 4),
)


def demo_usage_stats(period: Period | str) -> UsageStats:
    return build_usage_stats(DEMO_USAGE, Period.parse(period))


class ControlSurface:
    """Thin adapter over the tracker and store used by every front end."""

    def __init__(
        self,
        tracker: UsageTracker,
        *,
        demo_when_unsupported: bool = False,
    ) -> None:
        self.tracker = tracker
        self.store: UsageStore = tracker.store
        self.demo_when_unsupported = demo_when_unsupported
        self._supported: Optional[bool] = None

    @property
    def tracking_supported(self) -> bool:
        """Whether the probe can detect applications on this host.

        Determined once, from the first probe call.
        """
        if self._supported is None:
            try:
                self.tracker.probe.sample_foreground_app()
            except UnsupportedPlatformError:
                self._supported = False
            except ProbeError:
                # Transient failures (e.g. missing permission) still mean
                # the mechanism exists.
                self._supported = True
            else:
                self._supported = True
        return self._supported

    @property
    def demo_mode(self) -> bool:
        return self.demo_when_unsupported and not self.tracking_supported

    def add_listener(self, listener: Listener) -> None:
        self.tracker.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self.tracker.remove_listener(listener)

    def get_usage_stats(self, period: Optional[str] = None) -> Dict[str, Any]:
        resolved = Period.parse(period)
        if self.demo_mode:
            logger.info("Serving demo data for period: %s", resolved.value)
            return demo_usage_stats(resolved).to_payload()
        return self.store.get_usage_stats(resolved).to_payload()

    def get_daily_stats(self, days: int = 7) -> list[Dict[str, Any]]:
        return [day.to_payload() for day in self.store.get_daily_stats(days)]

    def start_tracking(self) -> Dict[str, Any]:
        if self.demo_mode:
            return {
                "success": False,
                "message": "Tracking not available on this platform",
                "note": "AppleScript tracking requires macOS",
            }
        self.tracker.start()
        return {"success": True, "message": "Tracking started"}

    def stop_tracking(self) -> Dict[str, Any]:
        self.tracker.stop()
        return {"success": True, "message": "Tracking stopped"}

    def is_tracking(self) -> bool:
        return self.tracker.is_tracking

    def clear_data(self) -> Dict[str, Any]:
        self.store.clear_all_data()
        self.tracker.notify_usage_updated()
        return {"success": True, "message": "All data cleared"}
