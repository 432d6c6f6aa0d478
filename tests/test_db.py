from __future__ import annotations

import sqlite3

import pytest

from app_usage_tracker.db import UsageStore
from app_usage_tracker.errors import (
    StorageInitError,
    StorageReadError,
    StorageWriteError,
)
from app_usage_tracker.models import Period


def test_initialize_is_idempotent(store):
    store.log_usage("Safari", 10)
    store.initialize()
    store.initialize()
    assert store.get_usage_stats("all").total_seconds == 10


def test_initialize_fails_for_unusable_path(tmp_path):
    bad_store = UsageStore(tmp_path)  # a directory, not a database file
    with pytest.raises(StorageInitError):
        bad_store.initialize()


def test_log_usage_records_local_date_and_timestamp(store, clock):
    row_id = store.log_usage("Safari", 42)

    [row] = store.fetch_attributions()
    assert row.id == row_id
    assert row.app_name == "Safari"
    assert row.duration_seconds == 42
    assert row.date == "2024-03-15"
    assert row.logged_at == clock.now


@pytest.mark.parametrize(("app_name", "duration"), [("", 5), ("  ", 5), ("Mail", 0), ("Mail", -3)])
def test_log_usage_rejects_invalid_rows(store, app_name, duration):
    with pytest.raises(ValueError):
        store.log_usage(app_name, duration)
    assert store.fetch_attributions() == []


def test_usage_stats_group_and_sort(store):
    store.log_usage("Terminal", 30)
    store.log_usage("Safari", 50)
    store.log_usage("Terminal", 40)
    store.log_usage("Notes", 50)

    stats = store.get_usage_stats("today")

    assert [(a.app_name, a.total_seconds, a.session_count) for a in stats.apps] == [
        ("Terminal", 70, 2),
        ("Safari", 50, 1),
        ("Notes", 50, 1),
    ]
    assert stats.total_seconds == 170
    assert [a.percentage for a in stats.apps] == [41, 29, 29]


def test_periods_filter_by_date(store, clock):
    clock.advance(-10 * 86400)
    store.log_usage("Old", 100)  # 2024-03-05
    clock.advance(3 * 86400)
    store.log_usage("LastWeek", 20)  # 2024-03-08, exactly seven days back
    clock.advance(6 * 86400)
    store.log_usage("Yesterday", 10)  # 2024-03-14
    clock.advance(86400)
    store.log_usage("Today", 5)  # 2024-03-15

    def names(period):
        return {app.app_name for app in store.get_usage_stats(period).apps}

    assert names("today") == {"Today"}
    assert names("yesterday") == {"Yesterday"}
    assert names("week") == {"Today", "Yesterday", "LastWeek"}
    assert names("all") == {"Today", "Yesterday", "LastWeek", "Old"}
    assert names("fortnight") == {"Today"}
    assert store.get_usage_stats("fortnight").period is Period.TODAY


def test_empty_store_has_zero_totals(store):
    for period in Period:
        stats = store.get_usage_stats(period)
        assert stats.apps == []
        assert stats.total_seconds == 0
        assert stats.total_time == "0s"


def test_clear_all_data_empties_every_period(store, clock):
    store.log_usage("Safari", 10)
    clock.advance(-86400)
    store.log_usage("Mail", 10)
    clock.advance(86400)

    store.clear_all_data()

    for period in Period:
        stats = store.get_usage_stats(period)
        assert stats.apps == []
        assert stats.total_seconds == 0


def test_daily_stats_newest_first(store, clock):
    store.log_usage("Safari", 10)
    clock.advance(-86400)
    store.log_usage("Safari", 20)
    store.log_usage("Mail", 5)
    clock.advance(-30 * 86400)
    store.log_usage("Mail", 999)
    clock.advance(31 * 86400)

    days = store.get_daily_stats(7)

    assert [(d.date, d.total_seconds, d.total_time) for d in days] == [
        ("2024-03-15", 10, "10s"),
        ("2024-03-14", 25, "25s"),
    ]


def test_rows_persist_across_reopen(tmp_path, clock):
    path = tmp_path / "nested" / "usage.db"
    first = UsageStore(path, clock=clock)
    first.initialize()
    first.log_usage("Safari", 12)
    first.close()

    second = UsageStore(path, clock=clock)
    second.initialize()
    try:
        assert second.get_usage_stats("today").total_seconds == 12
    finally:
        second.close()


def test_operations_before_initialize_fail(tmp_path):
    uninitialized = UsageStore(tmp_path / "usage.db")
    with pytest.raises(StorageWriteError):
        uninitialized.log_usage("Safari", 1)
    with pytest.raises(StorageReadError):
        uninitialized.get_usage_stats("today")


def test_sqlite_errors_are_wrapped(store):
    store._conn.execute("DROP TABLE usage_logs")
    with pytest.raises(StorageWriteError) as excinfo:
        store.log_usage("Safari", 1)
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)
    with pytest.raises(StorageReadError):
        store.get_usage_stats("all")
