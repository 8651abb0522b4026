"""Assembly of the reception desk components from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .db import Database
from .directory import EmployeeDirectory, SectorPhoneDirectory
from .notifications import SectorNotifier, WhatsAppClient
from .registry import AttendanceRegistry, Clock, utc_now
from .store import build_store
from .users import UserService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReceptionDesk:
    """Everything a front end needs, owned for the lifetime of one app."""

    settings: Settings
    database: Database
    registry: AttendanceRegistry
    phones: SectorPhoneDirectory
    employees: EmployeeDirectory
    users: UserService
    whatsapp: WhatsAppClient

    def close(self) -> None:
        self.whatsapp.close()


def build_reception_desk(
    settings: Settings,
    *,
    clock: Clock = utc_now,
    whatsapp: Optional[WhatsAppClient] = None,
) -> ReceptionDesk:
    database = Database(settings.database_path)
    phones = SectorPhoneDirectory(database)
    employees = EmployeeDirectory(database)
    users = UserService(database)

    if settings.employees_path and settings.employees_path.exists():
        employees.import_csv(settings.employees_path)

    whatsapp = whatsapp or WhatsAppClient(settings.whatsapp_api_url, settings.whatsapp_api_token)
    if whatsapp.stub_mode:
        logger.warning("WHATSAPP_API_URL is not set. Notifications will only be logged.")

    registry = AttendanceRegistry(
        build_store(settings, database),
        SectorNotifier(phones, whatsapp),
        hide_after_seconds=settings.hide_after_seconds,
        clock=clock,
    )
    logger.info(
        "Reception desk ready (storage=%s, hide_after=%ss)",
        settings.storage_backend,
        settings.hide_after_seconds,
    )
    return ReceptionDesk(
        settings=settings,
        database=database,
        registry=registry,
        phones=phones,
        employees=employees,
        users=users,
        whatsapp=whatsapp,
    )


__all__ = ["ReceptionDesk", "build_reception_desk"]
