"""Persistence helpers for invoices and their items."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from app.backend.src.models import Invoice, InvoiceItem
from app.backend.src.schemas.invoice import InvoiceSummary
from app.backend.src.schemas.invoice_item import InvoiceItemInput

from .errors import InvoiceNotFoundError


class InvoiceRepository:
    """CRUD over invoice rows and their items.

    Writes only flush; the caller decides when the unit of work commits so
    an invoice and its items land in the same transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_invoice(self, fields: dict[str, Any]) -> Invoice:
        invoice = Invoice(status="draft", **fields)
        self.session.add(invoice)
        self.session.flush()
        return invoice

    def replace_items(
        self, invoice_id: int, items: Iterable[InvoiceItemInput]
    ) -> list[InvoiceItem]:
        """Delete every item of the invoice and insert ``items`` in their place."""

        self.session.execute(
            delete(InvoiceItem)
            .where(InvoiceItem.invoice_id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        rows = [
            InvoiceItem(
                invoice_id=invoice_id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
            )
            for item in items
        ]
        self.session.add_all(rows)
        self.session.flush()

        invoice = self.session.get(Invoice, invoice_id)
        if invoice is not None:
            self.session.expire(invoice, ["items"])
        return rows

    def get_invoice(
        self,
        invoice_id: int,
        business_ids: Sequence[int],
        *,
        for_update: bool = False,
    ) -> Invoice:
        """Return the invoice when it belongs to one of ``business_ids``.

        Invoices outside the scope are reported exactly like missing ones.
        """

        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .where(Invoice.business_id.in_(list(business_ids)))
        )
        if for_update:
            statement = statement.with_for_update()

        invoice = self.session.execute(statement).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError()
        return invoice

    def list_invoices(self, business_ids: Sequence[int]) -> list[Invoice]:
        statement = (
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.business_id.in_(list(business_ids)))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )
        return list(self.session.execute(statement).scalars())

    def list_items(self, invoice_id: int) -> list[InvoiceItem]:
        statement = (
            select(InvoiceItem)
            .where(InvoiceItem.invoice_id == invoice_id)
            .order_by(InvoiceItem.id)
        )
        return list(self.session.execute(statement).scalars())

    def update_invoice(self, invoice: Invoice, **fields: Any) -> Invoice:
        for name, value in fields.items():
            setattr(invoice, name, value)
        invoice.updated_at = datetime.now(timezone.utc)
        self.session.add(invoice)
        self.session.flush()
        return invoice

    def delete_invoice(self, invoice: Invoice) -> None:
        """Delete the invoice's items, then the invoice itself."""

        invoice_id = invoice.id
        self.session.execute(
            delete(InvoiceItem)
            .where(InvoiceItem.invoice_id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            delete(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        self.session.expunge(invoice)
        self.session.flush()

    def summarize(self, business_id: int) -> InvoiceSummary:
        """Return the number of invoices and their summed totals for a business."""

        count, total = self.session.execute(
            select(func.count(Invoice.id), func.coalesce(func.sum(Invoice.total), 0))
            .where(Invoice.business_id == business_id)
        ).one()
        return InvoiceSummary(
            business_id=business_id,
            invoice_count=int(count or 0),
            total_amount=float(total or 0),
        )


__all__ = ["InvoiceRepository"]
