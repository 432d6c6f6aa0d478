"""Foreground application tracking session."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from .db import UsageStore
from .errors import ProbeError, StorageError
from .probe import ForegroundAppProbe

logger = logging.getLogger(__name__)

USAGE_UPDATED = "usage-updated"

Listener = Callable[[], None]


@dataclass(slots=True)
class TrackingSession:
    """The application currently in the foreground and since when."""

    current_app: Optional[str] = None
    current_app_start_time: Optional[datetime] = None

    def begin(self, app_name: str, now: datetime) -> None:
        self.current_app = app_name
        self.current_app_start_time = now

    def reset(self) -> None:
        self.current_app = None
        self.current_app_start_time = None

    def elapsed_seconds(self, now: datetime) -> int:
        """Whole seconds since the current app became foreground."""
        if self.current_app_start_time is None:
            return 0
        return max(0, int((now - self.current_app_start_time).total_seconds()))


class UsageTracker:
    """Polls the foreground application and attributes time on every switch.

    Time is always attributed to the outgoing application, measured from when
    it became foreground until the switch away was observed.
    """

    def __init__(
        self,
        store: UsageStore,
        probe: ForegroundAppProbe,
        *,
        sample_interval: timedelta = timedelta(seconds=5),
        clock: Callable[[], datetime] = datetime.now,
        join_timeout: float = 10.0,
    ) -> None:
        if sample_interval.total_seconds() <= 0:
            raise ValueError("sample_interval must be positive")
        self.store = store
        self.probe = probe
        self.sample_interval = sample_interval
        self._clock = clock
        self._join_timeout = join_timeout
        # Guards _tracking, _session, _thread and _stop_event as one unit.
        self._lock = threading.Lock()
        self._session = TrackingSession()
        self._tracking = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._listeners: list[Listener] = []

    @property
    def is_tracking(self) -> bool:
        with self._lock:
            return self._tracking

    def session(self) -> TrackingSession:
        """Return a copy of the current session state."""
        with self._lock:
            return replace(self._session)

    def add_listener(self, listener: Listener) -> None:
        """Register a callback fired after each ``usage-updated`` write."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def start(self) -> bool:
        """Begin tracking; returns False if tracking was already active."""
        if self.is_tracking:
            return False
        # First sample happens now rather than after one interval. The probe
        # runs outside the lock; it may block for its full timeout.
        app_name = self._probe_or_none()
        with self._lock:
            if self._tracking:
                return False
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="usage-tracker",
                daemon=True,
            )
            self._session.reset()
            self._sample_locked(app_name)
            thread.start()
            self._tracking = True
            self._stop_event = stop_event
            self._thread = thread
        logger.info(
            "Started tracking application usage every %.1fs",
            self.sample_interval.total_seconds(),
        )
        return True

    def stop(self) -> bool:
        """Stop tracking and flush the current application's time.

        Returns False if tracking was not active. No sample is applied after
        this returns.
        """
        thread: Optional[threading.Thread] = None
        written: Optional[int] = None
        try:
            with self._lock:
                if not self._tracking:
                    return False
                self._tracking = False
                thread = self._thread
                if self._stop_event is not None:
                    self._stop_event.set()
                self._thread = None
                self._stop_event = None

                previous = self._session.current_app
                elapsed = self._session.elapsed_seconds(self._clock())
                self._session.reset()
                if previous and elapsed > 0:
                    written = self.store.log_usage(previous, elapsed)
        finally:
            self._join(thread)
        logger.info("Stopped tracking application usage")
        if written is not None:
            self.notify_usage_updated()
        return True

    def sample_once(self) -> Optional[int]:
        """Take one sample; returns the id of a written attribution, if any.

        Probe failures are logged and leave the session untouched. Storage
        failures propagate after the session has moved to the new app.
        """
        return self._sample(None)

    def run_forever(self) -> None:
        """Track in the background until interrupted, then flush."""
        self.start()
        idle = threading.Event()
        try:
            while self.is_tracking:
                idle.wait(1.0)
        except KeyboardInterrupt:
            logger.info("Tracker interrupted; flushing current application.")
        finally:
            self.stop()

    def _sample(self, stop_event: Optional[threading.Event]) -> Optional[int]:
        app_name = self._probe_or_none()
        with self._lock:
            if not self._tracking:
                return None
            if stop_event is not None and stop_event.is_set():
                return None
            written = self._sample_locked(app_name)
        if written is not None:
            self.notify_usage_updated()
        return written

    def _probe_or_none(self) -> Optional[str]:
        try:
            return self.probe.sample_foreground_app()
        except ProbeError as exc:
            logger.warning("Error tracking current app: %s", exc)
            return None

    def _sample_locked(self, app_name: Optional[str]) -> Optional[int]:
        if app_name is None:
            return None
        now = self._clock()
        session = self._session
        if session.current_app == app_name:
            return None

        previous = session.current_app
        elapsed = session.elapsed_seconds(now)
        session.begin(app_name, now)
        logger.info("Switched to: %s", app_name)
        if previous is None or elapsed <= 0:
            return None
        return self.store.log_usage(previous, elapsed)

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self.sample_interval.total_seconds()
        while not stop_event.wait(interval):
            try:
                self._sample(stop_event)
            except StorageError:
                logger.exception("Failed to record usage; continuing to track.")
            except Exception:
                logger.exception("Unexpected error while sampling; continuing to track.")

    def _join(self, thread: Optional[threading.Thread]) -> None:
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=self._join_timeout)
        if thread.is_alive():
            logger.warning("Tracker thread did not exit within %.1fs", self._join_timeout)

    def notify_usage_updated(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Listener for %s failed", USAGE_UPDATED)
