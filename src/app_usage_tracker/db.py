"""SQLite persistence for usage attributions."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional

from .errors import StorageInitError, StorageReadError, StorageWriteError
from .models import AppTotals, DailyTotal, Period, UsageAttribution, UsageStats
from .reporting import build_daily_totals, build_usage_stats

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DATE_FMT = "%Y-%m-%d"

_TOTALS_SELECT = """
    SELECT app_name, SUM(duration_seconds) AS total_seconds, COUNT(*) AS session_count
    FROM usage_logs
"""
_TOTALS_TAIL = """
    GROUP BY app_name
    ORDER BY total_seconds DESC, MIN(id)
"""


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    path = Path(path)
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS usage_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            app_name TEXT NOT NULL,
            duration_seconds INTEGER NOT NULL CHECK (duration_seconds > 0),
            logged_at TEXT NOT NULL,
            date TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_usage_logs_date
            ON usage_logs(date);
        """
    )


def period_predicate(period: Period, today: datetime) -> tuple[str, tuple[str, ...]]:
    """Return the WHERE clause and parameters selecting rows for ``period``."""
    if period is Period.ALL:
        return "", ()
    if period is Period.YESTERDAY:
        return "WHERE date = ?", ((today - timedelta(days=1)).strftime(DATE_FMT),)
    if period is Period.WEEK:
        return "WHERE date >= ?", ((today - timedelta(days=7)).strftime(DATE_FMT),)
    return "WHERE date = ?", (today.strftime(DATE_FMT),)


class UsageStore:
    """Append-only log of (application, duration, date) attributions."""

    def __init__(
        self,
        db_path: Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db_path = Path(db_path)
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Ensure the schema exists; safe to call repeatedly."""
        with self._lock:
            try:
                if self._conn is None:
                    self._conn = open_database(self.db_path, check_same_thread=False)
                else:
                    initialize_schema(self._conn)
            except (sqlite3.Error, OSError) as exc:
                raise StorageInitError(
                    f"Cannot open usage database at {self.db_path}: {exc}"
                ) from exc
        logger.info("Usage database ready at %s", self.db_path)

    def log_usage(self, app_name: str, duration_seconds: int) -> int:
        """Persist one attribution dated today and return its id."""
        if not app_name or not app_name.strip():
            raise ValueError("app_name must be non-empty")
        duration = int(duration_seconds)
        if duration <= 0:
            raise ValueError("duration_seconds must be positive")

        now = self._clock()
        with self._connection(StorageWriteError) as conn:
            cur = conn.execute(
                """
                INSERT INTO usage_logs (app_name, duration_seconds, logged_at, date)
                VALUES (?, ?, ?, ?)
                """,
                (app_name, duration, now.strftime(DATETIME_FMT), now.strftime(DATE_FMT)),
            )
            row_id = int(cur.lastrowid)
        logger.info("Logged %ds for %s", duration, app_name)
        return row_id

    def fetch_totals(self, period: Period | str) -> list[AppTotals]:
        resolved = Period.parse(period)
        where, params = period_predicate(resolved, self._clock())
        with self._connection(StorageReadError) as conn:
            rows = conn.execute(f"{_TOTALS_SELECT} {where} {_TOTALS_TAIL}", params).fetchall()
        return [
            AppTotals(
                app_name=row["app_name"],
                total_seconds=int(row["total_seconds"]),
                session_count=int(row["session_count"]),
            )
            for row in rows
        ]

    def get_usage_stats(self, period: Period | str = Period.TODAY) -> UsageStats:
        """Aggregate attributions per application for a named period."""
        resolved = Period.parse(period)
        return build_usage_stats(self.fetch_totals(resolved), resolved)

    def get_daily_stats(self, days: int = 7) -> list[DailyTotal]:
        """Per-day totals for the last ``days`` days, newest first."""
        if days < 0:
            raise ValueError("days must be non-negative")
        since = (self._clock() - timedelta(days=days)).strftime(DATE_FMT)
        with self._connection(StorageReadError) as conn:
            rows = conn.execute(
                """
                SELECT date, SUM(duration_seconds) AS total_seconds
                FROM usage_logs
                WHERE date >= ?
                GROUP BY date
                ORDER BY date DESC
                """,
                (since,),
            ).fetchall()
        return build_daily_totals((row["date"], int(row["total_seconds"])) for row in rows)

    def fetch_attributions(self, period: Period | str = Period.ALL) -> list[UsageAttribution]:
        """Individual rows for a period in insertion order."""
        where, params = period_predicate(Period.parse(period), self._clock())
        with self._connection(StorageReadError) as conn:
            rows = conn.execute(
                f"""
                SELECT id, app_name, duration_seconds, logged_at, date
                FROM usage_logs
                {where}
                ORDER BY id
                """,
                params,
            ).fetchall()
        return [
            UsageAttribution(
                id=row["id"],
                app_name=row["app_name"],
                duration_seconds=row["duration_seconds"],
                logged_at=datetime.strptime(row["logged_at"], DATETIME_FMT),
                date=row["date"],
            )
            for row in rows
        ]

    def clear_all_data(self) -> None:
        """Delete every attribution. Irreversible."""
        with self._connection(StorageWriteError) as conn:
            conn.execute("DELETE FROM usage_logs")
        logger.info("All usage data cleared")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Database connection closed")

    @contextmanager
    def _connection(
        self, error_type: type[Exception]
    ) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise error_type("Usage store is not initialized.")
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise error_type(str(exc)) from exc
