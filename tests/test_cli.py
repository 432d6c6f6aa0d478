from __future__ import annotations

from datetime import datetime

import pytest
from typer.testing import CliRunner

from app_usage_tracker.cli import app
from app_usage_tracker.db import UsageStore

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "usage.db"
    monkeypatch.setenv("DATABASE_PATH", str(path))
    monkeypatch.delenv("TRACKER_MODE", raising=False)
    monkeypatch.delenv("NODE_ENV", raising=False)
    return path


def seed(path, *rows):
    store = UsageStore(path)
    store.initialize()
    for app_name, seconds in rows:
        store.log_usage(app_name, seconds)
    store.close()


def test_stats_prints_apps(db_path):
    seed(db_path, ("Safari", 3661), ("Terminal", 65))
    result = runner.invoke(app, ["stats", "--period", "today"])
    assert result.exit_code == 0, result.output
    assert "Usage for today" in result.output
    assert "Safari" in result.output
    assert "1h 1m 1s" in result.output
    assert "98%" in result.output


def test_stats_empty(db_path):
    result = runner.invoke(app, ["stats", "-p", "all"])
    assert result.exit_code == 0
    assert "No usage recorded for period 'all'." in result.output


def test_daily(db_path):
    seed(db_path, ("Safari", 10))
    result = runner.invoke(app, ["daily", "--days", "1"])
    assert result.exit_code == 0
    assert datetime.now().strftime("%Y-%m-%d") in result.output
    assert "10s" in result.output


def test_clear_with_confirmation(db_path):
    seed(db_path, ("Safari", 10))
    result = runner.invoke(app, ["clear"], input="y\n")
    assert result.exit_code == 0
    assert "All data cleared." in result.output

    store = UsageStore(db_path)
    store.initialize()
    try:
        assert store.get_usage_stats("all").apps == []
    finally:
        store.close()


def test_clear_aborted_keeps_data(db_path):
    seed(db_path, ("Safari", 10))
    result = runner.invoke(app, ["clear"], input="n\n")
    assert result.exit_code == 1

    store = UsageStore(db_path)
    store.initialize()
    try:
        assert store.get_usage_stats("all").total_seconds == 10
    finally:
        store.close()


def test_invalid_env_configuration(db_path, monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 2


def test_unusable_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path))
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 1


def test_serve_passes_settings_to_uvicorn(db_path, monkeypatch):
    from app_usage_tracker import server_runner

    captured = {}

    def fake_run(asgi_app, host, port, log_level):
        captured.update(app=asgi_app, host=host, port=port)

    monkeypatch.setattr(server_runner.uvicorn, "run", fake_run)
    result = runner.invoke(
        app, ["serve", "--port", "4321", "--mode", "headless", "--no-open-browser"]
    )
    assert result.exit_code == 0, result.output
    assert captured["port"] == 4321
    assert captured["host"] == "127.0.0.1"
    assert captured["app"].state.settings.mode.value == "headless"
    assert captured["app"].state.settings.db_path == db_path
