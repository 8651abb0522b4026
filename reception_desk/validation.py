"""Input validation helpers shared by the registry and the directories."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

from .exceptions import ValidationError
from .models import AttendanceFilters, AttendanceStatus, Sector

ANY = "all"
PHONE_PATTERN = re.compile(r"^\+?\d{8,15}$")


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def parse_sector(value: object) -> Sector:
    if isinstance(value, Sector):
        return value
    try:
        return Sector(str(value).strip().upper())
    except ValueError as exc:
        allowed = ", ".join(s.value for s in Sector)
        raise ValidationError(f"invalid sector {value!r}; expected one of {allowed}") from exc


def parse_optional_sector(value: object) -> Optional[Sector]:
    if value is None or str(value).strip().lower() in ("", ANY):
        return None
    return parse_sector(value)


def parse_optional_status(value: object) -> Optional[AttendanceStatus]:
    if value is None or str(value).strip().lower() in ("", ANY):
        return None
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"invalid status {value!r}; expected waiting, attended or all") from exc


def parse_optional_date(value: object, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"{field_name} must use the YYYY-MM-DD format") from exc


def build_filters(
    *,
    start_date: object = None,
    end_date: object = None,
    sector: object = None,
    status: object = None,
    name: Optional[str] = None,
    registration: Optional[str] = None,
) -> AttendanceFilters:
    """Turn loosely typed filter values (query params, tool args) into filters."""

    return AttendanceFilters(
        start_date=parse_optional_date(start_date, "start_date"),
        end_date=parse_optional_date(end_date, "end_date"),
        sector=parse_optional_sector(sector),
        status=parse_optional_status(status),
        name=name.strip() if name and name.strip() else None,
        registration=registration.strip() if registration and registration.strip() else None,
    )


def normalize_phone_number(value: Optional[str]) -> str:
    raw = require_non_empty(value, "phone_number")
    compact = re.sub(r"[\s()\-.]", "", raw)
    if not PHONE_PATTERN.match(compact):
        raise ValidationError(f"invalid phone number {raw!r}")
    return compact


__all__ = [
    "require_non_empty",
    "parse_sector",
    "parse_optional_sector",
    "parse_optional_status",
    "parse_optional_date",
    "build_filters",
    "normalize_phone_number",
]
