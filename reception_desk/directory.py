"""Employee lookup and per-sector WhatsApp number directories."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .db import Database
from .exceptions import NotFoundError, ValidationError
from .models import Employee, Sector, SectorPhone
from .validation import normalize_phone_number, parse_sector, require_non_empty

logger = logging.getLogger(__name__)


class EmployeeDirectory:
    """Registration number lookup used to pre-fill the attendance form."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def find_by_registration(self, registration: str) -> Optional[Employee]:
        if not registration or not registration.strip():
            return None
        row = self.database.get_employee(registration.strip())
        if not row:
            return None
        return Employee(registration=row["registration"], name=row["name"], position=row["position"])

    def list_all(self) -> List[Employee]:
        return [
            Employee(registration=row["registration"], name=row["name"], position=row["position"])
            for row in self.database.get_employees()
        ]

    def upsert(self, employee: Employee) -> Employee:
        cleaned = Employee(
            registration=require_non_empty(employee.registration, "registration"),
            name=require_non_empty(employee.name, "name"),
            position=require_non_empty(employee.position, "position"),
        )
        self.database.upsert_employee(
            {"registration": cleaned.registration, "name": cleaned.name, "position": cleaned.position}
        )
        return cleaned

    def import_csv(self, path: Path) -> int:
        count = 0
        for employee in load_employees_csv(path):
            self.upsert(employee)
            count += 1
        logger.info("Imported %s employees from %s", count, path)
        return count


def load_employees_csv(path: Path) -> Iterable[Employee]:
    with Path(path).open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        for line, row in enumerate(reader, start=2):
            registration = (row.get("registration") or "").strip()
            name = (row.get("name") or "").strip()
            position = (row.get("position") or "").strip()
            if not registration:
                continue
            if not name or not position:
                logger.warning(
                    "Skipping employee %s on line %s of %s: missing name or position", registration, line, path
                )
                continue
            yield Employee(registration=registration, name=name, position=position)


class SectorPhoneDirectory:
    """CRUD over the WhatsApp numbers that receive each sector's notifications."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _to_model(row) -> SectorPhone:
        return SectorPhone(id=int(row["id"]), sector=Sector(row["sector"]), phone_number=row["phone_number"])

    def list(self, sector: Optional[Sector | str] = None) -> List[SectorPhone]:
        sector_value = parse_sector(sector).value if sector else None
        return [self._to_model(row) for row in self.database.list_sector_phones(sector_value)]

    def get(self, phone_id: int) -> SectorPhone:
        row = self.database.get_sector_phone(phone_id)
        if not row:
            raise NotFoundError(f"sector phone {phone_id} not found")
        return self._to_model(row)

    def numbers_for(self, sector: Sector) -> List[str]:
        return [phone.phone_number for phone in self.list(sector)]

    def _ensure_unique(self, sector: Sector, phone_number: str, *, exclude_id: Optional[int] = None) -> None:
        for phone in self.list(sector):
            if phone.phone_number == phone_number and phone.id != exclude_id:
                raise ValidationError(f"{phone_number} is already registered for sector {sector.value}")

    def add(self, sector: Sector | str, phone_number: str) -> SectorPhone:
        parsed_sector = parse_sector(sector)
        number = normalize_phone_number(phone_number)
        self._ensure_unique(parsed_sector, number)
        phone_id = self.database.insert_sector_phone(parsed_sector.value, number)
        logger.info("Added WhatsApp number %s to sector %s", number, parsed_sector.value)
        return SectorPhone(id=phone_id, sector=parsed_sector, phone_number=number)

    def update(
        self,
        phone_id: int,
        *,
        sector: Optional[Sector | str] = None,
        phone_number: Optional[str] = None,
    ) -> SectorPhone:
        current = self.get(phone_id)
        parsed_sector = parse_sector(sector) if sector is not None else current.sector
        number = normalize_phone_number(phone_number) if phone_number is not None else current.phone_number
        self._ensure_unique(parsed_sector, number, exclude_id=phone_id)
        if not self.database.update_sector_phone(phone_id, parsed_sector.value, number):
            raise NotFoundError(f"sector phone {phone_id} not found")
        return SectorPhone(id=phone_id, sector=parsed_sector, phone_number=number)

    def remove(self, phone_id: int) -> None:
        if not self.database.delete_sector_phone(phone_id):
            raise NotFoundError(f"sector phone {phone_id} not found")
        logger.info("Removed sector phone %s", phone_id)


__all__ = ["EmployeeDirectory", "SectorPhoneDirectory", "load_employees_csv"]
