"""Shared fixtures for the usage tracker tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

import pytest

from app_usage_tracker.db import UsageStore
from app_usage_tracker.errors import ProbeError


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class ScriptedProbe:
    """Returns queued app names; an exception instance in the queue is raised."""

    def __init__(self, samples: Iterable[object] = (), default: Optional[str] = None) -> None:
        self.samples = list(samples)
        self.default = default
        self.calls = 0

    def push(self, *samples: object) -> None:
        self.samples.extend(samples)

    def sample_foreground_app(self) -> str:
        self.calls += 1
        if self.samples:
            sample = self.samples.pop(0)
        elif self.default is not None:
            sample = self.default
        else:
            raise ProbeError("no scripted sample")
        if isinstance(sample, Exception):
            raise sample
        return str(sample)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 15, 9, 0, 0))


@pytest.fixture
def store(tmp_path, clock):
    usage_store = UsageStore(tmp_path / "usage.db", clock=clock)
    usage_store.initialize()
    yield usage_store
    usage_store.close()


@pytest.fixture
def probe() -> ScriptedProbe:
    return ScriptedProbe()
