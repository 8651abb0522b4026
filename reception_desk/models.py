"""Dataclasses representing reception desk domain models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


class Sector(str, Enum):
    """Departments that receive and resolve attendance requests."""

    RH = "RH"
    DISCIPLINA = "DISCIPLINA"
    DP = "DP"
    PLANEJAMENTO = "PLANEJAMENTO"


class AttendanceStatus(str, Enum):
    WAITING = "waiting"
    ATTENDED = "attended"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass(slots=True)
class AttendanceRecord:
    id: str
    registration: str
    name: str
    position: str
    sector: Sector
    reason: str
    created_at: datetime
    attended: bool = False
    attended_at: Optional[datetime] = None
    hide_after: Optional[datetime] = None

    @property
    def status(self) -> AttendanceStatus:
        return AttendanceStatus.ATTENDED if self.attended else AttendanceStatus.WAITING

    def is_visible_at(self, moment: datetime) -> bool:
        """Whether the record still belongs on the live dashboard at ``moment``."""

        if not self.attended:
            return True
        return self.hide_after is not None and moment < self.hide_after

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "registration": self.registration,
            "name": self.name,
            "position": self.position,
            "sector": self.sector.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
            "attended": self.attended,
            "attended_at": self.attended_at.isoformat() if self.attended_at else None,
            "hide_after": self.hide_after.isoformat() if self.hide_after else None,
        }


def _day(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass(slots=True)
class AttendanceFilters:
    """Optional predicates combined with logical AND.

    Date bounds are inclusive and compared on the calendar day of ``created_at``.
    Name and registration match case-insensitive substrings.
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sector: Optional[Sector] = None
    status: Optional[AttendanceStatus] = None
    name: Optional[str] = None
    registration: Optional[str] = None

    def matches(self, record: AttendanceRecord) -> bool:
        created_day = record.created_at.date()
        if self.start_date is not None and created_day < _day(self.start_date):
            return False
        if self.end_date is not None and created_day > _day(self.end_date):
            return False
        if self.sector is not None and record.sector != self.sector:
            return False
        if self.status is not None and record.status != self.status:
            return False
        if self.name and self.name.lower() not in record.name.lower():
            return False
        if self.registration and self.registration.lower() not in record.registration.lower():
            return False
        return True


@dataclass(slots=True)
class DashboardStats:
    """Dashboard counters.

    ``remaining`` always equals ``waiting``; API clients read both names.
    """

    waiting: int
    attended: int
    remaining: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(slots=True)
class SectorPhone:
    id: int
    sector: Sector
    phone_number: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "sector": self.sector.value, "phone_number": self.phone_number}


@dataclass(slots=True)
class Employee:
    registration: str
    name: str
    position: str


@dataclass(slots=True)
class Permission:
    view: bool = True
    edit: bool = False
    delete: bool = False
    create: bool = False


@dataclass(slots=True)
class User:
    id: int
    username: str
    role: UserRole
    permissions: Permission = field(default_factory=Permission)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "permissions": asdict(self.permissions),
        }


__all__ = [
    "Sector",
    "AttendanceStatus",
    "UserRole",
    "AttendanceRecord",
    "AttendanceFilters",
    "DashboardStats",
    "SectorPhone",
    "Employee",
    "Permission",
    "User",
]
