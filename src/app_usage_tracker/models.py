"""Domain models for recorded application usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Period(str, Enum):
    """Named time windows used to filter attributions."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    ALL = "all"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Period":
        """Resolve a period name; unknown or missing values mean today."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.TODAY


@dataclass(slots=True, frozen=True)
class UsageAttribution:
    """Time spent in one application during one continuous foreground interval."""

    id: int
    app_name: str
    duration_seconds: int
    logged_at: datetime
    date: str


@dataclass(slots=True, frozen=True)
class AppTotals:
    """Grouped and summed attributions for one application."""

    app_name: str
    total_seconds: int
    session_count: int


@dataclass(slots=True)
class AppUsage:
    app_name: str
    total_seconds: int
    session_count: int
    total_time: str
    percentage: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "appName": self.app_name,
            "totalSeconds": self.total_seconds,
            "sessionCount": self.session_count,
            "totalTime": self.total_time,
            "percentage": self.percentage,
        }


@dataclass(slots=True)
class UsageStats:
    """Aggregate usage for a period, ordered by total time descending."""

    period: Period
    total_seconds: int
    total_time: str
    apps: list[AppUsage] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "apps": [app.to_payload() for app in self.apps],
            "totalTime": self.total_time,
            "totalSeconds": self.total_seconds,
            "period": self.period.value,
        }


@dataclass(slots=True)
class DailyTotal:
    date: str
    total_seconds: int
    total_time: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "totalSeconds": self.total_seconds,
            "totalTime": self.total_time,
        }
