"""Command-line interface for the usage tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import RunMode, TrackerSettings
from .errors import ConfigError, StorageError
from .paths import get_log_path

app = typer.Typer(help="Local-only application usage tracker.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the application data directory."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if log_file:
        handler = logging.FileHandler(get_log_path(), encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logging.getLogger().addHandler(handler)


def _load_settings(
    db_path: Optional[Path] = None,
    sample_seconds: Optional[float] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    mode: Optional[RunMode] = None,
) -> TrackerSettings:
    try:
        return TrackerSettings.from_env().with_overrides(
            db_path=db_path,
            sample_seconds=sample_seconds,
            host=host,
            port=port,
            mode=mode,
        )
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _open_store(settings: TrackerSettings):
    from .db import UsageStore

    store = UsageStore(settings.db_path)
    try:
        store.initialize()
    except StorageError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    return store


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(
        None, "--port", min=1, max=65535, help="TCP port (defaults to $PORT or 3000)."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
    sample_seconds: Optional[float] = typer.Option(
        None, "--interval", min=0.5, help="Sampling interval in seconds."
    ),
    mode: Optional[RunMode] = typer.Option(
        None, "--mode", case_sensitive=False, help="Run as desktop or headless server."
    ),
    open_browser: Optional[bool] = typer.Option(
        None,
        "--open-browser/--no-open-browser",
        help="Open the dashboard in a browser (default: desktop mode only).",
    ),
) -> None:
    """Start the HTTP API (and browser dashboard in desktop mode)."""
    from .server_runner import run_server

    settings = _load_settings(db_path, sample_seconds, host, port, mode)
    run_server(settings, open_browser=open_browser)


@app.command()
def track(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
    sample_seconds: Optional[float] = typer.Option(
        None, "--interval", min=0.5, help="Sampling interval in seconds."
    ),
) -> None:
    """Track the foreground application until interrupted."""
    from .collector import UsageTracker
    from .probe import select_probe

    settings = _load_settings(db_path, sample_seconds)
    store = _open_store(settings)
    tracker = UsageTracker(store, select_probe(), sample_interval=settings.sample_interval)
    try:
        tracker.run_forever()
    finally:
        store.close()


@app.command()
def stats(
    period: str = typer.Option(
        "today", "--period", "-p", help="today, yesterday, week or all."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Print per-application usage for a period."""
    from .reporting import print_usage_stats

    store = _open_store(_load_settings(db_path))
    try:
        print_usage_stats(store.get_usage_stats(period))
    finally:
        store.close()


@app.command()
def daily(
    days: int = typer.Option(7, "--days", min=0, help="Days to look back."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Print total tracked time per day."""
    from .reporting import print_daily_totals

    store = _open_store(_load_settings(db_path))
    try:
        print_daily_totals(store.get_daily_stats(days))
    finally:
        store.close()


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Delete all recorded usage."""
    if not yes:
        typer.confirm("Delete all recorded usage data?", abort=True)
    store = _open_store(_load_settings(db_path))
    try:
        store.clear_all_data()
    finally:
        store.close()
    typer.echo("All data cleared.")
