from __future__ import annotations

import subprocess

import pytest

from app_usage_tracker import probe as probe_module
from app_usage_tracker.errors import ProbeError, UnsupportedPlatformError
from app_usage_tracker.probe import (
    AppleScriptProbe,
    UnsupportedPlatformProbe,
    select_probe,
)


def fake_run(returncode=0, stdout="", stderr=""):
    def run(args, **kwargs):
        assert args[0] == "osascript"
        assert kwargs["timeout"] == 2.0
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)

    return run


def test_applescript_probe_returns_trimmed_name(monkeypatch):
    monkeypatch.setattr(probe_module.subprocess, "run", fake_run(stdout="Safari\n"))
    assert AppleScriptProbe().sample_foreground_app() == "Safari"


@pytest.mark.parametrize(
    "runner",
    [
        fake_run(returncode=1, stderr="execution error"),
        fake_run(stdout="   \n"),
    ],
)
def test_applescript_probe_failures(monkeypatch, runner):
    monkeypatch.setattr(probe_module.subprocess, "run", runner)
    with pytest.raises(ProbeError):
        AppleScriptProbe().sample_foreground_app()


def test_applescript_probe_timeout(monkeypatch):
    def run(args, **kwargs):
        raise subprocess.TimeoutExpired(args, kwargs["timeout"])

    monkeypatch.setattr(probe_module.subprocess, "run", run)
    with pytest.raises(ProbeError, match="timed out"):
        AppleScriptProbe().sample_foreground_app()


def test_applescript_probe_missing_binary():
    probe = AppleScriptProbe(executable="definitely-not-osascript-binary")
    with pytest.raises(ProbeError) as excinfo:
        probe.sample_foreground_app()
    assert not isinstance(excinfo.value, UnsupportedPlatformError)


def test_unsupported_probe_raises_distinct_error():
    with pytest.raises(UnsupportedPlatformError, match="linux"):
        UnsupportedPlatformProbe("linux").sample_foreground_app()
    assert issubclass(UnsupportedPlatformError, ProbeError)


def test_select_probe_by_platform():
    assert isinstance(select_probe("darwin"), AppleScriptProbe)
    assert isinstance(select_probe("win32"), UnsupportedPlatformProbe)


def test_applescript_probe_undecodable_output(monkeypatch):
    def run(args, **kwargs):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(probe_module.subprocess, "run", run)
    with pytest.raises(ProbeError, match="Unreadable"):
        AppleScriptProbe().sample_foreground_app()
