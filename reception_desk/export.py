"""CSV export of the historical attendance records."""

from __future__ import annotations

import csv
import io
from typing import Iterable

from .models import AttendanceRecord

HEADERS = (
    "ID",
    "Matrícula",
    "Nome",
    "Cargo",
    "Setor",
    "Motivo",
    "Registrado em",
    "Status",
    "Atendido em",
)
TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"


def export_records_csv(records: Iterable[AttendanceRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(HEADERS)
    for record in records:
        writer.writerow(
            (
                record.id,
                record.registration,
                record.name,
                record.position,
                record.sector.value,
                record.reason,
                record.created_at.strftime(TIMESTAMP_FORMAT),
                "Atendido" if record.attended else "Aguardando",
                record.attended_at.strftime(TIMESTAMP_FORMAT) if record.attended_at else "",
            )
        )
    return buffer.getvalue()


__all__ = ["export_records_csv", "HEADERS"]
