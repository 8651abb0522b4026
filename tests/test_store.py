from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone

import pytest

from reception_desk.config import Settings
from reception_desk.db import Database
from reception_desk.exceptions import BackendUnavailableError
from reception_desk.models import AttendanceFilters, AttendanceRecord, AttendanceStatus, Sector
from reception_desk.registry import AttendanceRegistry
from reception_desk.store import InMemoryAttendanceStore, SQLiteAttendanceStore, build_store

CREATED = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_record(record_id: str, **overrides) -> AttendanceRecord:
    data = dict(
        id=record_id,
        registration="67890",
        name="Carlos Santos",
        position="Professor",
        sector=Sector.DISCIPLINA,
        reason="ocorrência",
        created_at=CREATED,
    )
    data.update(overrides)
    return AttendanceRecord(**data)


def test_sqlite_store_round_trips_lifecycle_fields(database):
    store = SQLiteAttendanceStore(database)
    store.insert(make_record("a1"))
    attended_at = CREATED + timedelta(minutes=2)

    updated = store.update(
        "a1",
        {"attended": True, "attended_at": attended_at, "hide_after": attended_at + timedelta(seconds=40)},
    )

    assert updated.attended is True
    assert updated.attended_at == attended_at
    assert updated.hide_after == attended_at + timedelta(seconds=40)
    assert store.find_by_id("a1") == updated


def test_store_resolves_only_waiting_records(store):
    store.insert(make_record("a1"))
    first = CREATED + timedelta(minutes=1)
    second = CREATED + timedelta(minutes=2)

    resolved = store.mark_attended("a1", first, first + timedelta(seconds=40))

    assert resolved.attended is True
    assert resolved.attended_at == first
    assert store.mark_attended("a1", second, second + timedelta(seconds=40)) is None
    assert store.find_by_id("a1").attended_at == first
    assert store.mark_attended("missing", first, first) is None


def test_sqlite_store_update_missing_returns_none(database):
    assert SQLiteAttendanceStore(database).update("missing", {"name": "x"}) is None


def test_sqlite_store_prefilters_sector_status_and_dates(database):
    store = SQLiteAttendanceStore(database)
    store.insert(make_record("old", created_at=CREATED - timedelta(days=3)))
    store.insert(make_record("rh", sector=Sector.RH))
    store.insert(make_record("done", attended=True, attended_at=CREATED, hide_after=CREATED))

    by_sector = store.find_all(AttendanceFilters(sector=Sector.RH))
    by_status = store.find_all(AttendanceFilters(status=AttendanceStatus.ATTENDED))
    by_day = store.find_all(AttendanceFilters(start_date=date(2026, 3, 2), end_date=date(2026, 3, 2)))

    assert [r.id for r in by_sector] == ["rh"]
    assert [r.id for r in by_status] == ["done"]
    assert {r.id for r in by_day} == {"rh", "done"}


def test_sqlite_store_matches_accented_names(database):
    store = SQLiteAttendanceStore(database)
    store.insert(make_record("a1", name="JOÃO SILVA"))

    assert [r.id for r in store.find_all(AttendanceFilters(name="joão"))] == ["a1"]


def test_stores_return_identical_query_results(tmp_path):
    stores = [InMemoryAttendanceStore(), SQLiteAttendanceStore(Database(tmp_path / "same.db"))]
    for store in stores:
        for offset, sector in enumerate([Sector.RH, Sector.DP, Sector.RH, Sector.PLANEJAMENTO]):
            store.insert(make_record(f"id{offset}", sector=sector, created_at=CREATED + timedelta(hours=offset)))

    results = [
        [r.id for r in AttendanceRegistry(store).query(AttendanceFilters(sector=Sector.RH))]
        for store in stores
    ]

    assert results[0] == results[1] == ["id2", "id0"]


def test_in_memory_store_hands_out_copies():
    store = InMemoryAttendanceStore()
    store.insert(make_record("a1"))

    leaked = store.find_by_id("a1")
    leaked.name = "changed"

    assert store.find_by_id("a1").name == "Carlos Santos"


def test_in_memory_store_rejects_duplicate_ids():
    store = InMemoryAttendanceStore()
    store.insert(make_record("a1"))

    with pytest.raises(ValueError):
        store.insert(make_record("a1"))


def test_backend_failure_is_reported_not_swallowed(database):
    store = SQLiteAttendanceStore(database)
    registry = AttendanceRegistry(store)
    conn = sqlite3.connect(database.path)
    conn.execute("DROP TABLE attendances")
    conn.commit()
    conn.close()

    with pytest.raises(BackendUnavailableError):
        registry.query()
    with pytest.raises(BackendUnavailableError):
        registry.mark_attended("a1")


def test_build_store_follows_settings(tmp_path):
    memory = Settings(api_key="k", database_path=tmp_path / "m.db", storage_backend="memory")
    sqlite_settings = Settings(api_key="k", database_path=tmp_path / "s.db", storage_backend="sqlite")

    assert isinstance(build_store(memory), InMemoryAttendanceStore)
    assert isinstance(build_store(sqlite_settings), SQLiteAttendanceStore)

    memory.storage_backend = "postgres"
    with pytest.raises(RuntimeError):
        build_store(memory)
