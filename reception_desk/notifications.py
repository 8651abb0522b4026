"""WhatsApp notifications routed to the sector responsible for an attendance."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from .exceptions import NotificationError
from .models import AttendanceRecord, Sector

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_sector(self, sector: Sector, message: str) -> bool: ...


class PhoneBook(Protocol):
    def numbers_for(self, sector: Sector) -> list[str]: ...


def build_attendance_message(record: AttendanceRecord) -> str:
    """Return the WhatsApp text announcing a newly registered attendance."""

    return (
        "*NOVO ATENDIMENTO REGISTRADO*\n"
        "\n"
        f"*Nome:* {record.name}\n"
        f"*Matrícula:* {record.registration}\n"
        f"*Cargo:* {record.position}\n"
        f"*Setor:* {record.sector.value}\n"
        f"*Motivo do atendimento:* {record.reason}\n"
        "\n"
        "Por favor, verifique o sistema para mais detalhes."
    )


class WhatsAppClient:
    """Thin wrapper around an HTTP WhatsApp gateway.

    Without an ``api_url`` the client only logs outgoing messages, which keeps
    local deployments usable before a gateway is provisioned.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_url = api_url
        self._client: Optional[httpx.Client] = None
        if api_url:
            headers = {"Content-Type": "application/json"}
            if token:
                headers["Authorization"] = f"Bearer {token}"
            self._client = httpx.Client(headers=headers, timeout=timeout, transport=transport)

    @property
    def stub_mode(self) -> bool:
        return self._client is None

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def send(self, phone_number: str, message: str) -> bool:
        if self._client is None:
            logger.info("WhatsApp stub: message to %s:\n%s", phone_number, message)
            return True
        try:
            response = self._client.post(self.api_url, json={"to": phone_number, "message": message})
        except httpx.HTTPError as exc:
            raise NotificationError(phone_number, str(exc)) from exc
        if response.status_code >= 400:
            raise NotificationError(phone_number, f"HTTP {response.status_code}: {response.text[:200]}")
        return True


class SectorNotifier:
    """Fan a message out to every phone number registered for a sector."""

    def __init__(self, phones: PhoneBook, client: WhatsAppClient) -> None:
        self.phones = phones
        self.client = client

    def notify_sector(self, sector: Sector, message: str) -> bool:
        numbers = self.phones.numbers_for(sector)
        if not numbers:
            logger.warning("No WhatsApp numbers configured for sector %s", sector.value)
            return False

        delivered = 0
        for number in numbers:
            try:
                if self.client.send(number, message):
                    delivered += 1
            except NotificationError as exc:
                logger.warning("%s", exc)
        logger.info("Sector %s notified on %s/%s numbers", sector.value, delivered, len(numbers))
        return delivered > 0


__all__ = [
    "Notifier",
    "WhatsAppClient",
    "SectorNotifier",
    "build_attendance_message",
]
