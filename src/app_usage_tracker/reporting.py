"""Turn grouped usage rows into percentages and readable durations."""

from __future__ import annotations

from typing import Iterable, Sequence

import typer

from .models import AppTotals, AppUsage, DailyTotal, Period, UsageStats


def format_duration(seconds: int) -> str:
    """Render seconds as ``"1h 1m 1s"``, ``"1m 5s"`` or ``"42s"``."""
    total_seconds = int(seconds)
    if total_seconds < 0:
        raise ValueError("duration must be non-negative")
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def percentage_of(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def build_usage_stats(rows: Iterable[AppTotals], period: Period) -> UsageStats:
    """Attach formatted durations and percentages to grouped totals.

    Row order is preserved; the store already sorts by total descending.
    """
    totals = list(rows)
    grand_total = sum(row.total_seconds for row in totals)
    apps = [
        AppUsage(
            app_name=row.app_name,
            total_seconds=row.total_seconds,
            session_count=row.session_count,
            total_time=format_duration(row.total_seconds),
            percentage=percentage_of(row.total_seconds, grand_total),
        )
        for row in totals
    ]
    return UsageStats(
        period=period,
        total_seconds=grand_total,
        total_time=format_duration(grand_total),
        apps=apps,
    )


def build_daily_totals(rows: Iterable[tuple[str, int]]) -> list[DailyTotal]:
    return [
        DailyTotal(date=date, total_seconds=seconds, total_time=format_duration(seconds))
        for date, seconds in rows
    ]


def print_usage_stats(stats: UsageStats, *, limit: int = 10) -> None:
    """Render a usage summary in the console."""
    if not stats.apps:
        typer.echo(f"No usage recorded for period '{stats.period.value}'.")
        return

    typer.echo(f"Usage for {stats.period.value}")
    typer.echo("-" * 48)
    typer.echo(f"Total time: {stats.total_time}")
    typer.echo()
    for app in stats.apps[:limit]:
        typer.echo(
            f"  {app.app_name[:28]:<28} {app.total_time:>11} {app.percentage:>4}%"
        )


def print_daily_totals(days: Sequence[DailyTotal]) -> None:
    if not days:
        typer.echo("No usage recorded for the selected days.")
        return
    for day in days:
        typer.echo(f"  {day.date}  {day.total_time:>11}")
