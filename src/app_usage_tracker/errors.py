"""Exception hierarchy for the usage tracker."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracker errors."""


class ConfigError(TrackerError):
    """Raised when environment or CLI configuration is invalid."""


class ProbeError(TrackerError):
    """The foreground application could not be determined."""


class UnsupportedPlatformError(ProbeError):
    """Foreground detection is not available on this platform."""


class StorageError(TrackerError):
    """Base class for usage store failures."""


class StorageInitError(StorageError):
    """The backing database could not be opened or initialized."""


class StorageWriteError(StorageError):
    pass


class StorageReadError(StorageError):
    pass
