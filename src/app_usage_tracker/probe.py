"""Foreground application detection."""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Protocol

from .errors import ProbeError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

FRONTMOST_APP_SCRIPT = """
tell application "System Events"
    set frontApp to name of first application process whose frontmost is true
    return frontApp
end tell
"""


class ForegroundAppProbe(Protocol):
    def sample_foreground_app(self) -> str:
        """Return the focused application's name or raise ``ProbeError``."""
        ...


class AppleScriptProbe:
    """Asks System Events for the frontmost process via ``osascript``.

    Requires accessibility permission for the hosting process under
    System Settings > Privacy & Security > Accessibility.
    """

    def __init__(self, *, timeout: float = 2.0, executable: str = "osascript") -> None:
        self.timeout = timeout
        self.executable = executable

    def sample_foreground_app(self) -> str:
        try:
            result = subprocess.run(
                [self.executable, "-e", FRONTMOST_APP_SCRIPT],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProbeError(f"osascript timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise ProbeError(f"Failed to run {self.executable}: {exc}") from exc
        except ValueError as exc:
            raise ProbeError(f"Unreadable osascript output: {exc}") from exc

        if result.returncode != 0:
            raise ProbeError(
                f"osascript exited with {result.returncode}: {result.stderr.strip()}"
            )
        app_name = result.stdout.strip()
        if not app_name:
            raise ProbeError("osascript returned no application name")
        return app_name


class UnsupportedPlatformProbe:
    """Stand-in for platforms without a foreground detection mechanism."""

    def __init__(self, platform: str = sys.platform) -> None:
        self.platform = platform

    def sample_foreground_app(self) -> str:
        raise UnsupportedPlatformError(
            f"Foreground application tracking requires macOS (running on {self.platform})"
        )


def select_probe(platform: str = sys.platform) -> ForegroundAppProbe:
    if platform == "darwin":
        return AppleScriptProbe()
    logger.info("No foreground probe for platform %s; tracking unavailable.", platform)
    return UnsupportedPlatformProbe(platform)
