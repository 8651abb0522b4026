"""Attendance lifecycle: registration, resolution, visibility and statistics."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .config import DEFAULT_HIDE_AFTER_SECONDS
from .exceptions import AlreadyAttendedError, NotFoundError, ValidationError
from .models import AttendanceFilters, AttendanceRecord, DashboardStats
from .notifications import Notifier, build_attendance_message
from .store import AttendanceStore
from .validation import parse_sector, require_non_empty

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TEXT_FIELDS = ("registration", "name", "position", "reason")
EDITABLE_FIELDS = TEXT_FIELDS + ("sector",)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceRegistry:
    """Owns attendance records stored behind an :class:`AttendanceStore`.

    Mutations run under a re-entrant lock so that concurrent callers never
    observe a half-applied change and an attendance is resolved at most once.
    Resolved records stay on the live view until ``hide_after``; hiding is
    evaluated at query time and never deletes anything.
    """

    def __init__(
        self,
        store: AttendanceStore,
        notifier: Optional[Notifier] = None,
        *,
        hide_after_seconds: int = DEFAULT_HIDE_AFTER_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        if hide_after_seconds <= 0:
            raise ValueError("hide_after_seconds must be positive")
        self.store = store
        self.notifier = notifier
        self.visibility_window = timedelta(seconds=hide_after_seconds)
        self._clock = clock
        self._lock = threading.RLock()

    def now(self) -> datetime:
        return self._clock()

    # region Mutations
    def register(
        self,
        *,
        registration: str,
        name: str,
        position: str,
        sector: Any,
        reason: str,
    ) -> AttendanceRecord:
        record = AttendanceRecord(
            id=uuid.uuid4().hex,
            registration=require_non_empty(registration, "registration"),
            name=require_non_empty(name, "name"),
            position=require_non_empty(position, "position"),
            sector=parse_sector(sector),
            reason=require_non_empty(reason, "reason"),
            created_at=self.now(),
        )
        with self._lock:
            stored = self.store.insert(record)
        logger.info("Registered attendance %s for sector %s", stored.id, stored.sector.value)
        self._notify(stored)
        return stored

    def _notify(self, record: AttendanceRecord) -> None:
        if self.notifier is None:
            return
        try:
            delivered = self.notifier.notify_sector(record.sector, build_attendance_message(record))
        except Exception:  # noqa: BLE001
            logger.warning("Notification for attendance %s failed", record.id, exc_info=True)
            return
        if not delivered:
            logger.warning("Attendance %s registered but sector %s was not notified", record.id, record.sector.value)

    def update(self, attendance_id: str, **fields: Any) -> AttendanceRecord:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"fields cannot be updated: {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        for key in TEXT_FIELDS:
            if key in fields:
                changes[key] = require_non_empty(fields[key], key)
        if "sector" in fields:
            changes["sector"] = parse_sector(fields["sector"])

        with self._lock:
            if self.store.find_by_id(attendance_id) is None:
                raise NotFoundError(f"attendance {attendance_id} not found")
            updated = self.store.update(attendance_id, changes)
        if updated is None:
            raise NotFoundError(f"attendance {attendance_id} not found")
        logger.info("Updated attendance %s (%s)", attendance_id, ", ".join(sorted(changes)) or "no changes")
        return updated

    def mark_attended(self, attendance_id: str) -> AttendanceRecord:
        with self._lock:
            current = self.store.find_by_id(attendance_id)
            if current is None:
                raise NotFoundError(f"attendance {attendance_id} not found")
            if current.attended:
                raise AlreadyAttendedError(attendance_id)
            attended_at = max(self.now(), current.created_at)
            # Conditional write: another process may share the database.
            updated = self.store.mark_attended(
                attendance_id, attended_at, attended_at + self.visibility_window
            )
            if updated is None:
                if self.store.find_by_id(attendance_id) is None:
                    raise NotFoundError(f"attendance {attendance_id} not found")
                raise AlreadyAttendedError(attendance_id)
        logger.info("Attendance %s attended at %s", attendance_id, attended_at.isoformat())
        return updated

    def remove(self, attendance_id: str) -> None:
        with self._lock:
            if not self.store.delete(attendance_id):
                raise NotFoundError(f"attendance {attendance_id} not found")
        logger.info("Removed attendance %s", attendance_id)

    # endregion

    # region Queries
    def get(self, attendance_id: str) -> AttendanceRecord:
        record = self.store.find_by_id(attendance_id)
        if record is None:
            raise NotFoundError(f"attendance {attendance_id} not found")
        return record

    def query(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]:
        filters = filters or AttendanceFilters()
        records = [record for record in self.store.find_all(filters) if filters.matches(record)]
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records

    def query_visible(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]:
        moment = self.now()
        return [record for record in self.query(filters) if record.is_visible_at(moment)]

    def stats(self) -> DashboardStats:
        records = self.store.find_all()
        attended = sum(1 for record in records if record.attended)
        waiting = len(records) - attended
        return DashboardStats(waiting=waiting, attended=attended, remaining=waiting)

    # endregion


__all__ = ["AttendanceRegistry", "utc_now"]
