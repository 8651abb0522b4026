"""Medical certificate delivery deadline check used at the front desk."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .exceptions import ValidationError

DEFAULT_LIMIT_HOURS = 72


@dataclass(slots=True)
class CertificateCheck:
    elapsed_hours: int
    elapsed_minutes: int
    within_limit: bool
    limit_hours: int = DEFAULT_LIMIT_HOURS

    def describe(self) -> str:
        verdict = "dentro do prazo" if self.within_limit else "fora do prazo"
        return (
            f"Tempo decorrido: {self.elapsed_hours}h {self.elapsed_minutes}min "
            f"({verdict} de {self.limit_hours} horas)"
        )


def check_certificate_delivery(
    issued_at: datetime,
    delivered_at: datetime,
    limit_hours: int = DEFAULT_LIMIT_HOURS,
) -> CertificateCheck:
    """Tell whether a certificate was handed in within ``limit_hours`` of issue."""

    if (issued_at.tzinfo is None) != (delivered_at.tzinfo is None):
        raise ValidationError("issue and delivery times must both include a timezone or neither")
    if delivered_at < issued_at:
        raise ValidationError("delivery cannot happen before the certificate was issued")
    total_minutes = int((delivered_at - issued_at).total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    within = (delivered_at - issued_at).total_seconds() <= limit_hours * 3600
    return CertificateCheck(
        elapsed_hours=hours,
        elapsed_minutes=minutes,
        within_limit=within,
        limit_hours=limit_hours,
    )


__all__ = ["CertificateCheck", "check_certificate_delivery", "DEFAULT_LIMIT_HOURS"]
