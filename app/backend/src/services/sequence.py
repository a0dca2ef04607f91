"""Invoice number allocation backed by the database."""

from __future__ import annotations

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings
from app.backend.src.models import InvoiceNumberSequence

from .errors import SequenceAllocationError

LOGGER = structlog.get_logger(__name__)

NUMBER_WIDTH = 6


def format_invoice_number(value: int, prefix: str | None = None) -> str:
    """Return ``value`` as a prefixed, zero padded invoice number."""

    if prefix is None:
        prefix = get_settings().invoice_number_prefix
    return f"{prefix}{value:0{NUMBER_WIDTH}d}"


def next_invoice_number(session: Session) -> str:
    """Allocate the next invoice number.

    The value comes from an autoincrement insert, so the store serializes
    concurrent allocations across processes. Numbers consumed by a
    transaction that later rolls back are not reissued.
    """

    row = InvoiceNumberSequence()
    try:
        session.add(row)
        session.flush()
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.error("invoice_number_allocation_failed", error=str(exc))
        raise SequenceAllocationError("Failed to generate invoice number") from exc

    number = format_invoice_number(row.id)
    LOGGER.info("invoice_number_allocated", invoice_number=number)
    return number


__all__ = ["format_invoice_number", "next_invoice_number"]
