"""Durable counter backing invoice number allocation."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class InvoiceNumberSequence(Base):
    """One row per allocated invoice number; the primary key is the counter."""

    __tablename__ = "invoice_number_sequence"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    allocated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


__all__ = ["InvoiceNumberSequence"]
