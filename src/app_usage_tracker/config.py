"""Configuration models and helpers for the usage tracker."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError
from .paths import get_db_path


DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_SAMPLE_SECONDS = 5.0


class RunMode(str, Enum):
    """How the tracker is hosted."""

    DESKTOP = "desktop"
    HEADLESS = "headless"


# NODE_ENV values understood for compatibility with container setups.
_NODE_ENV_MODES: dict[str, RunMode] = {
    "docker": RunMode.HEADLESS,
    "production": RunMode.HEADLESS,
    "headless": RunMode.HEADLESS,
    "development": RunMode.DESKTOP,
    "desktop": RunMode.DESKTOP,
}


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracker and its HTTP surface."""

    db_path: Path = field(default_factory=get_db_path)
    sample_interval: timedelta = timedelta(seconds=DEFAULT_SAMPLE_SECONDS)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    mode: RunMode = RunMode.DESKTOP
    docker: bool = False

    @property
    def headless(self) -> bool:
        return self.mode is RunMode.HEADLESS

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        platform: str = sys.platform,
    ) -> "TrackerSettings":
        """Build settings from ``PORT``, ``TRACKER_MODE``/``NODE_ENV``,
        ``DATABASE_PATH`` and ``TRACKER_INTERVAL``."""
        env = os.environ if environ is None else environ
        docker = detect_docker(env)

        db_override = env.get("DATABASE_PATH")
        db_path = Path(db_override).expanduser() if db_override else get_db_path()

        mode = _parse_mode(env.get("TRACKER_MODE") or env.get("NODE_ENV"))
        if mode is None:
            mode = detect_mode(platform=platform, docker=docker, display=env.get("DISPLAY"))

        return cls(
            db_path=db_path,
            sample_interval=timedelta(
                seconds=_parse_interval(env.get("TRACKER_INTERVAL"))
            ),
            host=env.get("HOST") or DEFAULT_HOST,
            port=_parse_port(env.get("PORT")),
            mode=mode,
            docker=docker,
        )

    def with_overrides(
        self,
        *,
        db_path: Optional[Path] = None,
        sample_seconds: Optional[float] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        mode: Optional[RunMode] = None,
    ) -> "TrackerSettings":
        """Return a copy with CLI-provided values applied."""
        changes: dict[str, object] = {}
        if db_path is not None:
            changes["db_path"] = Path(db_path)
        if sample_seconds is not None:
            changes["sample_interval"] = timedelta(
                seconds=_parse_interval(str(sample_seconds))
            )
        if host is not None:
            changes["host"] = host
        if port is not None:
            changes["port"] = port
        if mode is not None:
            changes["mode"] = mode
        return replace(self, **changes)


def detect_docker(environ: Mapping[str, str]) -> bool:
    if environ.get("DOCKER_ENV") or environ.get("NODE_ENV") == "docker":
        return True
    return Path("/.dockerenv").exists()


def detect_mode(*, platform: str, docker: bool, display: Optional[str]) -> RunMode:
    """Desktop mode needs macOS, and a display when containerized."""
    if platform != "darwin":
        return RunMode.HEADLESS
    if docker and not display:
        return RunMode.HEADLESS
    return RunMode.DESKTOP


def _parse_mode(value: Optional[str]) -> Optional[RunMode]:
    if not value:
        return None
    key = value.strip().lower()
    try:
        return RunMode(key)
    except ValueError:
        pass
    if key in _NODE_ENV_MODES:
        return _NODE_ENV_MODES[key]
    if key == "test":
        return None
    raise ConfigError(f"Unknown tracker mode: {value!r}")


def _parse_port(value: Optional[str]) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError as exc:
        raise ConfigError(f"PORT must be an integer, got {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ConfigError(f"PORT out of range: {port}")
    return port


def _parse_interval(value: Optional[str]) -> float:
    if not value:
        return DEFAULT_SAMPLE_SECONDS
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ConfigError(f"Sampling interval must be a number, got {value!r}") from exc
    if seconds <= 0:
        raise ConfigError("Sampling interval must be positive.")
    return seconds
