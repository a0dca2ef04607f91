"""Invoice lifecycle: create, edit, validate, send and delete.

Local writes always commit before the compliance renderer is called, so a slow
or failing renderer can never hold a transaction open or undo an invoice.
Renderer failures come back as a warning on an otherwise successful result.
Contact totals and stored document content are secondary writes: they are
attempted, logged when they fail and never surfaced to the caller.

Status moves ``draft -> validated -> sent``. Editing returns an invoice to
``draft``; sending requires ``validated`` or ``sent``.
"""

from __future__ import annotations

import base64
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.models import Business, Contact, Invoice, InvoiceItem
from app.backend.src.schemas.invoice import (
    CLIENT_SNAPSHOT_FIELDS,
    InvoiceCreate,
    InvoicePayload,
    InvoiceSummary,
    InvoiceUpdate,
    SendInvoiceRequest,
    ValidationResult,
)

from .compliance_renderer import ComplianceRenderer, RenderedDocuments
from .contact_aggregates import apply_contact_delta
from .delivery import EMAIL_CHANNEL, DeliveryDispatcher
from .errors import (
    ComplianceRenderError,
    InvoiceInputError,
    InvoiceNotFoundError,
    InvoiceStateError,
)
from .invoice_repository import InvoiceRepository
from .invoice_validation import run_checks
from .metrics import invoice_operations_total
from .notifications import ResendMailer
from .sequence import next_invoice_number

LOGGER = structlog.get_logger(__name__)

SENDABLE_STATUSES = frozenset({"validated", "sent"})
RENDER_WARNING = "External document generation failed"

# Contact fields used to fill a client snapshot the request left empty.
_CONTACT_SNAPSHOT_SOURCES = {
    "client_name": "name",
    "client_city": "city",
    "client_street": "street",
    "client_post_code": "post_code",
    "client_email": "email",
    "client_tax_number": "tax_number",
}

_CLEARED_COMPLIANCE_STATE: dict[str, Any] = {
    "validated_at": None,
    "sent_at": None,
    "sent_method": None,
    "sent_to": None,
    "pdf_url": None,
    "xml_url": None,
    "pdf_content": None,
    "xml_content": None,
}


@dataclass
class InvoiceOperationResult:
    """An invoice after create/edit/re-render plus the external outcome."""

    invoice: Invoice
    documents: RenderedDocuments | None = None
    warning: str | None = None
    external_error: dict[str, Any] | None = None

    @property
    def rendered(self) -> bool:
        return self.documents is not None


@dataclass
class SendResult:
    invoice: Invoice
    channel: str
    message: str
    message_id: str | None = None
    simulated: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceOrchestrator:
    """Sequences the repository, counters, renderer and delivery for each operation."""

    def __init__(
        self,
        session: Session,
        renderer: ComplianceRenderer | None = None,
        dispatcher: DeliveryDispatcher | None = None,
    ) -> None:
        self.session = session
        self.repository = InvoiceRepository(session)
        self.renderer = renderer or ComplianceRenderer()
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> DeliveryDispatcher:
        if self._dispatcher is None:
            self._dispatcher = DeliveryDispatcher(ResendMailer())
        return self._dispatcher

    # ------------------------------------------------------------------
    # Scope and input resolution
    # ------------------------------------------------------------------
    @staticmethod
    def _resolve_business_id(business_ids: Sequence[int], requested: int | None) -> int:
        if not business_ids:
            raise InvoiceNotFoundError("Business not found")
        if requested is None:
            return business_ids[0]
        if requested not in business_ids:
            raise InvoiceNotFoundError("Business not found")
        return requested

    def _resolve_contact(self, contact_id: int | None, business_id: int) -> Contact | None:
        if contact_id is None:
            return None
        contact = self.session.get(Contact, contact_id)
        if contact is None or contact.business_id != business_id:
            raise InvoiceNotFoundError("Contact not found")
        return contact

    @staticmethod
    def _client_snapshot(payload: InvoicePayload, contact: Contact | None) -> dict[str, str]:
        snapshot: dict[str, Any] = {name: getattr(payload, name) for name in CLIENT_SNAPSHOT_FIELDS}
        if contact is not None:
            for name, source in _CONTACT_SNAPSHOT_SOURCES.items():
                if not snapshot[name]:
                    snapshot[name] = getattr(contact, source) or None

        missing = [name for name, value in snapshot.items() if not value]
        if missing:
            raise InvoiceInputError("Invalid invoice data", details={"missing_fields": missing})
        return snapshot

    @staticmethod
    def _financial_fields(payload: InvoicePayload) -> dict[str, Any]:
        return {
            "issue_date": payload.issue_date,
            "due_date": payload.due_date,
            "subtotal": payload.subtotal,
            "tax": payload.tax,
            "total": payload.total,
            "notes": payload.notes,
            "terms": payload.terms,
        }

    def _commit(self, event: str, **context: Any) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.error(event, error=str(exc), **context)
            raise

    # ------------------------------------------------------------------
    # External phase
    # ------------------------------------------------------------------
    def _store_documents(self, invoice: Invoice, documents: RenderedDocuments) -> None:
        """Persist render output on the invoice; failures are logged only."""

        try:
            self.repository.update_invoice(
                invoice,
                pdf_url=documents.pdf_url,
                xml_url=documents.xml_url,
                pdf_content=documents.pdf_content,
                xml_content=documents.xml_content,
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.warning(
                "invoice_document_persist_failed",
                invoice_id=invoice.id,
                error=str(exc),
            )

    def _render(self, invoice: Invoice) -> InvoiceOperationResult:
        items = self.repository.list_items(invoice.id)
        business = self.session.get(Business, invoice.business_id)
        try:
            documents = self.renderer.render(invoice, items, business)
        except ComplianceRenderError as exc:
            return InvoiceOperationResult(
                invoice=invoice,
                warning=RENDER_WARNING,
                external_error=exc.as_warning(),
            )

        self._store_documents(invoice, documents)
        return InvoiceOperationResult(invoice=invoice, documents=documents)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def create(
        self,
        payload: InvoiceCreate,
        business_ids: Sequence[int],
        user_id: int | None = None,
    ) -> InvoiceOperationResult:
        business_id = self._resolve_business_id(business_ids, payload.business_id)
        contact = self._resolve_contact(payload.contact_id, business_id)
        snapshot = self._client_snapshot(payload, contact)

        invoice_number = next_invoice_number(self.session)
        invoice = self.repository.create_invoice(
            {
                "invoice_number": invoice_number,
                "business_id": business_id,
                "contact_id": contact.id if contact else None,
                "created_by": user_id,
                **snapshot,
                **self._financial_fields(payload),
            }
        )
        self.repository.replace_items(invoice.id, payload.items)
        self._commit("invoice_create_failed", invoice_number=invoice_number)

        invoice_operations_total.labels(operation="create").inc()
        LOGGER.info(
            "invoice_created",
            invoice_id=invoice.id,
            invoice_number=invoice_number,
            business_id=business_id,
            total=invoice.total,
        )

        apply_contact_delta(self.session, invoice.contact_id, 1, invoice.total)
        return self._render(invoice)

    def edit(
        self,
        invoice_id: int,
        payload: InvoiceUpdate,
        business_ids: Sequence[int],
    ) -> InvoiceOperationResult:
        invoice = self.repository.get_invoice(invoice_id, business_ids, for_update=True)
        # An omitted contactId keeps the current link; an explicit null clears it.
        if "contact_id" in payload.model_fields_set:
            requested_contact_id = payload.contact_id
        else:
            requested_contact_id = invoice.contact_id
        contact = self._resolve_contact(requested_contact_id, invoice.business_id)
        snapshot = self._client_snapshot(payload, contact)

        old_total = invoice.total or 0
        old_contact_id = invoice.contact_id
        new_contact_id = contact.id if contact else None

        self.repository.update_invoice(
            invoice,
            contact_id=new_contact_id,
            status="draft",
            **snapshot,
            **self._financial_fields(payload),
            **_CLEARED_COMPLIANCE_STATE,
        )
        self.repository.replace_items(invoice.id, payload.items)
        self._commit("invoice_edit_failed", invoice_id=invoice_id)

        invoice_operations_total.labels(operation="edit").inc()
        new_total = invoice.total or 0
        LOGGER.info(
            "invoice_edited",
            invoice_id=invoice_id,
            value_difference=new_total - old_total,
        )

        if old_contact_id == new_contact_id:
            apply_contact_delta(self.session, new_contact_id, 0, new_total - old_total)
        else:
            apply_contact_delta(self.session, old_contact_id, -1, -old_total)
            apply_contact_delta(self.session, new_contact_id, 1, new_total)

        return self._render(invoice)

    def rerender(self, invoice_id: int) -> InvoiceOperationResult:
        """Run only the external phase again for an existing invoice."""

        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError()
        return self._render(invoice)

    def validate(self, invoice_id: int, business_ids: Sequence[int]) -> ValidationResult:
        invoice = self.repository.get_invoice(invoice_id, business_ids)
        items = self.repository.list_items(invoice.id)
        result = run_checks(invoice, items)

        if result.valid and invoice.status != "sent":
            self.repository.update_invoice(invoice, status="validated", validated_at=_now())
            self._commit("invoice_validate_failed", invoice_id=invoice_id)

        invoice_operations_total.labels(operation="validate").inc()
        LOGGER.info(
            "invoice_validated",
            invoice_id=invoice_id,
            valid=result.valid,
            failed_checks=[check.name for check in result.checks if not check.passed],
        )
        return result

    def send(
        self,
        invoice_id: int,
        request: SendInvoiceRequest,
        business_ids: Sequence[int],
    ) -> SendResult:
        invoice = self.repository.get_invoice(invoice_id, business_ids)
        if invoice.status not in SENDABLE_STATUSES:
            raise InvoiceStateError("Invoice must be validated before sending", invoice.status)

        if request.method != EMAIL_CHANNEL:
            message = self.dispatcher.send_stub(invoice, request.method)
            return SendResult(
                invoice=invoice,
                channel=request.method,
                message=message,
                simulated=True,
            )

        business = self.session.get(Business, invoice.business_id)
        message_id = self.dispatcher.send_email(
            invoice,
            business,
            recipients=request.recipients,
            cc=request.cc,
            bcc=request.bcc,
            subject=request.subject,
            message=request.message,
            attach_pdf=request.include_attachment,
            attach_xml=request.include_xml,
        )

        self.repository.update_invoice(
            invoice,
            status="sent",
            sent_at=_now(),
            sent_method=EMAIL_CHANNEL,
            sent_to=",".join(request.recipients),
        )
        self._commit("invoice_send_status_failed", invoice_id=invoice_id)

        invoice_operations_total.labels(operation="send").inc()
        LOGGER.info("invoice_sent", invoice_id=invoice_id, message_id=message_id)
        return SendResult(
            invoice=invoice,
            channel=EMAIL_CHANNEL,
            message="Invoice sent successfully",
            message_id=message_id,
        )

    def delete(self, invoice_id: int, business_ids: Sequence[int]) -> None:
        """Delete the invoice and take it out of its contact's totals.

        The contact is adjusted after the delete commits so a failed delete
        leaves the totals untouched.
        """

        invoice = self.repository.get_invoice(invoice_id, business_ids, for_update=True)
        total = invoice.total or 0
        contact_id = invoice.contact_id

        self.repository.delete_invoice(invoice)
        self._commit("invoice_delete_failed", invoice_id=invoice_id)

        invoice_operations_total.labels(operation="delete").inc()
        LOGGER.info("invoice_deleted", invoice_id=invoice_id, contact_id=contact_id)
        apply_contact_delta(self.session, contact_id, -1, -total)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, invoice_id: int, business_ids: Sequence[int]) -> Invoice:
        return self.repository.get_invoice(invoice_id, business_ids)

    def list(self, business_ids: Sequence[int]) -> list[Invoice]:
        return self.repository.list_invoices(business_ids)

    def items(self, invoice: Invoice) -> list[InvoiceItem]:
        return self.repository.list_items(invoice.id)

    def document(self, invoice_id: int, business_ids: Sequence[int], kind: str) -> bytes | str:
        """Return the stored PDF bytes or XML text of an invoice."""

        invoice = self.repository.get_invoice(invoice_id, business_ids)
        if kind == "pdf":
            if not invoice.pdf_content:
                raise InvoiceNotFoundError("PDF content not found for this invoice")
            return base64.b64decode(invoice.pdf_content)
        if kind == "xml":
            if not invoice.xml_content:
                raise InvoiceNotFoundError("XML content not found for this invoice")
            return invoice.xml_content
        raise InvoiceInputError(f"Unknown document type: {kind}")

    def summary(self, business_id: int, business_ids: Sequence[int]) -> InvoiceSummary:
        if business_id not in business_ids:
            raise InvoiceNotFoundError("Business not found")
        return self.repository.summarize(business_id)


__all__ = ["InvoiceOperationResult", "InvoiceOrchestrator", "SendResult"]
