from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from reception_desk.config import Settings
from reception_desk.db import Database
from reception_desk.registry import AttendanceRegistry
from reception_desk.store import InMemoryAttendanceStore, SQLiteAttendanceStore

API_KEY = "test-key"


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current += timedelta(**delta)


class FakeNotifier:
    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    def notify_sector(self, sector, message):
        self.calls.append((sector, message))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(tmp_path / "reception.db")


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryAttendanceStore()
    return SQLiteAttendanceStore(Database(tmp_path / "attendances.db"))


@pytest.fixture
def registry(store, notifier, clock) -> AttendanceRegistry:
    return AttendanceRegistry(store, notifier, hide_after_seconds=40, clock=clock)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_key=API_KEY,
        database_path=tmp_path / "app.db",
        storage_backend="sqlite",
        hide_after_seconds=40,
        employees_path=tmp_path / "employees.csv",
    )


@pytest.fixture
def register_sample(registry):
    def _register(**overrides):
        data = {
            "registration": "12345",
            "name": "João Silva",
            "position": "Analista",
            "sector": "RH",
            "reason": "doc update",
        }
        data.update(overrides)
        return registry.register(**data)

    return _register
