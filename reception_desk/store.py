"""Persistence adapters for attendance records."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .config import Settings
from .db import Database, Row
from .models import AttendanceFilters, AttendanceRecord, AttendanceStatus, Sector


class AttendanceStore(Protocol):
    """Storage contract consumed by ``AttendanceRegistry``.

    ``find_all`` may apply as much of the filter as the backend supports; the
    registry re-applies the full predicate and ordering on the result.
    """

    def insert(self, record: AttendanceRecord) -> AttendanceRecord: ...

    def update(self, attendance_id: str, fields: Dict[str, Any]) -> Optional[AttendanceRecord]: ...

    def mark_attended(
        self, attendance_id: str, attended_at: datetime, hide_after: datetime
    ) -> Optional[AttendanceRecord]:
        """Resolve a waiting record; ``None`` when it is missing or already attended."""
        ...

    def delete(self, attendance_id: str) -> bool: ...

    def find_all(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]: ...

    def find_by_id(self, attendance_id: str) -> Optional[AttendanceRecord]: ...


class InMemoryAttendanceStore:
    """Dictionary backed store; hands out copies so callers never share state."""

    def __init__(self) -> None:
        self._records: Dict[str, AttendanceRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"duplicate attendance id {record.id}")
            self._records[record.id] = replace(record)
        return replace(record)

    def update(self, attendance_id: str, fields: Dict[str, Any]) -> Optional[AttendanceRecord]:
        with self._lock:
            current = self._records.get(attendance_id)
            if current is None:
                return None
            updated = replace(current, **fields)
            self._records[attendance_id] = updated
        return replace(updated)

    def mark_attended(
        self, attendance_id: str, attended_at: datetime, hide_after: datetime
    ) -> Optional[AttendanceRecord]:
        with self._lock:
            current = self._records.get(attendance_id)
            if current is None or current.attended:
                return None
            updated = replace(current, attended=True, attended_at=attended_at, hide_after=hide_after)
            self._records[attendance_id] = updated
        return replace(updated)

    def delete(self, attendance_id: str) -> bool:
        with self._lock:
            return self._records.pop(attendance_id, None) is not None

    def find_all(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]:
        with self._lock:
            snapshot = [replace(record) for record in self._records.values()]
        if filters is not None:
            snapshot = [record for record in snapshot if filters.matches(record)]
        snapshot.sort(key=lambda record: record.created_at, reverse=True)
        return snapshot

    def find_by_id(self, attendance_id: str) -> Optional[AttendanceRecord]:
        with self._lock:
            record = self._records.get(attendance_id)
        return replace(record) if record else None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def row_to_record(row: Row) -> AttendanceRecord:
    return AttendanceRecord(
        id=row["id"],
        registration=row["registration"],
        name=row["name"],
        position=row["position"],
        sector=Sector(row["sector"]),
        reason=row["reason"],
        created_at=datetime.fromisoformat(row["created_at"]),
        attended=bool(row["attended"]),
        attended_at=_parse_timestamp(row["attended_at"]),
        hide_after=_parse_timestamp(row["hide_after"]),
    )


def _to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    columns: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Sector):
            value = value.value
        elif isinstance(value, datetime):
            value = _format_timestamp(value)
        elif isinstance(value, bool):
            value = int(value)
        columns[key] = value
    return columns


class SQLiteAttendanceStore:
    """Store backed by the ``attendances`` table of :class:`Database`."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        self.database.insert_attendance(
            _to_columns(
                {
                    "id": record.id,
                    "registration": record.registration,
                    "name": record.name,
                    "position": record.position,
                    "sector": record.sector,
                    "reason": record.reason,
                    "created_at": record.created_at,
                    "attended": record.attended,
                    "attended_at": record.attended_at,
                    "hide_after": record.hide_after,
                }
            )
        )
        return replace(record)

    def update(self, attendance_id: str, fields: Dict[str, Any]) -> Optional[AttendanceRecord]:
        row = self.database.update_attendance(attendance_id, _to_columns(fields))
        return row_to_record(row) if row else None

    def mark_attended(
        self, attendance_id: str, attended_at: datetime, hide_after: datetime
    ) -> Optional[AttendanceRecord]:
        if not self.database.mark_attendance_attended(
            attendance_id, _format_timestamp(attended_at), _format_timestamp(hide_after)
        ):
            return None
        return self.find_by_id(attendance_id)

    def delete(self, attendance_id: str) -> bool:
        return self.database.delete_attendance(attendance_id)

    def find_all(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]:
        where: List[str] = []
        params: List[Any] = []
        if filters is not None:
            if filters.start_date is not None:
                where.append("substr(created_at, 1, 10) >= ?")
                params.append(filters.start_date.isoformat()[:10])
            if filters.end_date is not None:
                where.append("substr(created_at, 1, 10) <= ?")
                params.append(filters.end_date.isoformat()[:10])
            if filters.sector is not None:
                where.append("sector = ?")
                params.append(filters.sector.value)
            if filters.status is not None:
                where.append("attended = ?")
                params.append(1 if filters.status is AttendanceStatus.ATTENDED else 0)
            # SQLite lower() only folds ASCII, so text matching stays in Python.
        records = [row_to_record(row) for row in self.database.find_attendances(where, params)]
        if filters is not None and (filters.name or filters.registration):
            records = [record for record in records if filters.matches(record)]
        return records

    def find_by_id(self, attendance_id: str) -> Optional[AttendanceRecord]:
        row = self.database.get_attendance(attendance_id)
        return row_to_record(row) if row else None


def build_store(settings: Settings, database: Optional[Database] = None) -> AttendanceStore:
    """Pick the attendance store configured by ``STORAGE_BACKEND``."""

    if settings.storage_backend == "memory":
        return InMemoryAttendanceStore()
    if settings.storage_backend == "sqlite":
        return SQLiteAttendanceStore(database or Database(settings.database_path))
    raise RuntimeError(f"unsupported storage backend {settings.storage_backend!r}")


__all__ = [
    "AttendanceStore",
    "InMemoryAttendanceStore",
    "SQLiteAttendanceStore",
    "build_store",
    "row_to_record",
]
