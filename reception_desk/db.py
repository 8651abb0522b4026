"""SQLite persistence layer for the reception desk."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .exceptions import BackendUnavailableError, ValidationError

Connection = sqlite3.Connection
Row = sqlite3.Row

logger = logging.getLogger(__name__)

# Attendance columns that callers may write through ``update_attendance``.
ATTENDANCE_COLUMNS = (
    "registration",
    "name",
    "position",
    "sector",
    "reason",
    "attended",
    "attended_at",
    "hide_after",
)


class Database:
    """Lightweight wrapper around SQLite operations.

    Every public method runs in its own short-lived connection and commits as a
    single transaction; SQLite failures surface as ``BackendUnavailableError``.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        try:
            conn = sqlite3.connect(self._path)
        except sqlite3.Error as exc:
            raise BackendUnavailableError(f"cannot open database {self._path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ValidationError(f"constraint violated: {exc}") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("SQLite operation failed: %s", exc)
            raise BackendUnavailableError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS attendances (
                    id TEXT PRIMARY KEY,
                    registration TEXT NOT NULL,
                    name TEXT NOT NULL,
                    position TEXT NOT NULL,
                    sector TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    attended INTEGER NOT NULL DEFAULT 0,
                    attended_at TEXT,
                    hide_after TEXT
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_attendances_created_at ON attendances (created_at)"
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS sector_phones (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    sector TEXT NOT NULL,
                    phone_number TEXT NOT NULL,
                    UNIQUE(sector, phone_number)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS employees (
                    registration TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    position TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    role TEXT NOT NULL,
                    can_view INTEGER NOT NULL DEFAULT 1,
                    can_edit INTEGER NOT NULL DEFAULT 0,
                    can_delete INTEGER NOT NULL DEFAULT 0,
                    can_create INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    # region Attendances
    def insert_attendance(self, record: Dict[str, Any]) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO attendances (
                    id, registration, name, position, sector, reason,
                    created_at, attended, attended_at, hide_after
                )
                VALUES (
                    :id, :registration, :name, :position, :sector, :reason,
                    :created_at, :attended, :attended_at, :hide_after
                )
                """,
                record,
            )

    def update_attendance(self, attendance_id: str, fields: Dict[str, Any]) -> Optional[Row]:
        unknown = set(fields) - set(ATTENDANCE_COLUMNS)
        if unknown:
            raise ValueError(f"cannot update attendance columns: {sorted(unknown)}")
        with self.connect() as conn:
            if fields:
                assignments = ", ".join(f"{column} = :{column}" for column in fields)
                conn.execute(
                    f"UPDATE attendances SET {assignments} WHERE id = :id",
                    {**fields, "id": attendance_id},
                )
            cursor = conn.execute("SELECT * FROM attendances WHERE id = ?", (attendance_id,))
            return cursor.fetchone()

    def mark_attendance_attended(self, attendance_id: str, attended_at: str, hide_after: str) -> bool:
        """Resolve a waiting attendance; ``False`` when it is missing or already attended."""

        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE attendances
                SET attended = 1, attended_at = ?, hide_after = ?
                WHERE id = ? AND attended = 0
                """,
                (attended_at, hide_after, attendance_id),
            )
            return cursor.rowcount > 0

    def delete_attendance(self, attendance_id: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM attendances WHERE id = ?", (attendance_id,))
            return cursor.rowcount > 0

    def get_attendance(self, attendance_id: str) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM attendances WHERE id = ?", (attendance_id,))
            return cursor.fetchone()

    def find_attendances(self, where: Sequence[str], params: Sequence[Any]) -> List[Row]:
        query = "SELECT * FROM attendances"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC"
        with self.connect() as conn:
            return conn.execute(query, tuple(params)).fetchall()

    # endregion

    # region Sector phones
    def list_sector_phones(self, sector: Optional[str] = None) -> List[Row]:
        with self.connect() as conn:
            if sector:
                cursor = conn.execute(
                    "SELECT * FROM sector_phones WHERE sector = ? ORDER BY id", (sector,)
                )
            else:
                cursor = conn.execute("SELECT * FROM sector_phones ORDER BY sector, id")
            return cursor.fetchall()

    def get_sector_phone(self, phone_id: int) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM sector_phones WHERE id = ?", (phone_id,))
            return cursor.fetchone()

    def insert_sector_phone(self, sector: str, phone_number: str) -> int:
        with self.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO sector_phones (sector, phone_number) VALUES (?, ?)",
                (sector, phone_number),
            )
            return int(cursor.lastrowid)

    def update_sector_phone(self, phone_id: int, sector: str, phone_number: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE sector_phones SET sector = ?, phone_number = ? WHERE id = ?",
                (sector, phone_number, phone_id),
            )
            return cursor.rowcount > 0

    def delete_sector_phone(self, phone_id: int) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM sector_phones WHERE id = ?", (phone_id,))
            return cursor.rowcount > 0

    # endregion

    # region Employees
    def upsert_employee(self, employee: Dict[str, Any]) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO employees (registration, name, position)
                VALUES (:registration, :name, :position)
                ON CONFLICT(registration) DO UPDATE SET
                    name=excluded.name,
                    position=excluded.position
                """,
                employee,
            )

    def get_employee(self, registration: str) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM employees WHERE registration = ?", (registration,)
            )
            return cursor.fetchone()

    def get_employees(self) -> List[Row]:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM employees ORDER BY name").fetchall()

    # endregion

    # region Users
    def insert_user(self, user: Dict[str, Any]) -> int:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (username, role, can_view, can_edit, can_delete, can_create)
                VALUES (:username, :role, :can_view, :can_edit, :can_delete, :can_create)
                """,
                user,
            )
            return int(cursor.lastrowid)

    def update_user(self, user_id: int, fields: Dict[str, Any]) -> bool:
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        with self.connect() as conn:
            cursor = conn.execute(
                f"UPDATE users SET {assignments} WHERE id = :id", {**fields, "id": user_id}
            )
            return cursor.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    def get_user(self, user_id: int) -> Optional[Row]:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

    def get_user_by_username(self, username: str) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM users WHERE username = ?", (username,))
            return cursor.fetchone()

    def get_users(self) -> List[Row]:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM users ORDER BY username").fetchall()

    def count_users(self) -> int:
        with self.connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
            return int(row["total"]) if row else 0

    # endregion


__all__ = ["Database", "ATTENDANCE_COLUMNS"]
