"""Domain exceptions raised by the reception desk services."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is missing or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when an operation references an id that does not exist."""


class AlreadyAttendedError(DomainError):
    """Raised when marking an attendance that was already attended."""

    def __init__(self, attendance_id: str) -> None:
        super().__init__(f"attendance {attendance_id} was already attended")
        self.attendance_id = attendance_id


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class BackendUnavailableError(DomainError):
    """Raised when the persistence backend fails."""


class NotificationError(RuntimeError):
    """Raised when the WhatsApp gateway rejects or cannot receive a message."""

    def __init__(self, phone_number: str, error: str) -> None:
        super().__init__(f"WhatsApp delivery to {phone_number} failed: {error}")
        self.phone_number = phone_number
        self.error = error


__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "AlreadyAttendedError",
    "AuthorizationError",
    "BackendUnavailableError",
    "NotificationError",
]
