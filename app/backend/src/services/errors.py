"""Domain errors raised by the invoice services."""

from __future__ import annotations

from typing import Any


class InvoiceServiceError(Exception):
    """Base class for invoice service failures."""


class InvoiceNotFoundError(InvoiceServiceError):
    """Raised when an invoice, contact or business is outside the caller's scope."""

    def __init__(self, message: str = "Invoice not found") -> None:
        super().__init__(message)
        self.message = message


class InvoiceInputError(InvoiceServiceError):
    """Raised when a request passes schema checks but is still incomplete."""

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvoiceStateError(InvoiceServiceError):
    """Raised when an operation is not allowed in the invoice's current status."""

    def __init__(self, message: str, status: str) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class SequenceAllocationError(InvoiceServiceError):
    """Raised when the durable invoice counter cannot be incremented."""


class ComplianceRenderError(InvoiceServiceError):
    """Raised when the compliance renderer rejects or fails a request."""

    def __init__(self, phase: str, message: str, payload: Any | None = None) -> None:
        super().__init__(f"{phase}: {message}")
        self.phase = phase
        self.message = message
        self.payload = payload

    def as_warning(self) -> dict[str, Any]:
        """Return the structured warning block attached to API responses."""

        return {"phase": self.phase, "message": self.message, "response": self.payload}


class MailDeliveryError(InvoiceServiceError):
    """Raised when the mail transport refuses a message."""


__all__ = [
    "ComplianceRenderError",
    "InvoiceInputError",
    "InvoiceNotFoundError",
    "InvoiceServiceError",
    "InvoiceStateError",
    "MailDeliveryError",
    "SequenceAllocationError",
]
