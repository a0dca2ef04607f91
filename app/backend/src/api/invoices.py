"""Invoice related endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.core.security import BusinessScope, get_business_scope
from app.backend.src.models import Invoice
from app.backend.src.schemas.invoice import (
    InvoiceCreate,
    InvoiceRead,
    InvoiceSummary,
    InvoiceUpdate,
    SendInvoiceRequest,
)
from app.backend.src.services.compliance_renderer import ComplianceRenderer
from app.backend.src.services.delivery import DeliveryDispatcher
from app.backend.src.services.errors import (
    InvoiceInputError,
    InvoiceNotFoundError,
    InvoiceStateError,
    MailDeliveryError,
    SequenceAllocationError,
)
from app.backend.src.services.invoice_orchestrator import (
    InvoiceOperationResult,
    InvoiceOrchestrator,
)
from app.backend.src.services.notifications import ResendMailer
from ..db import get_session_dependency
from tasks.invoice_tasks import render_invoice_documents

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoice", tags=["invoices"])


# --------------------------------------------------------------------------
# Dependencies
# --------------------------------------------------------------------------
def get_compliance_renderer() -> Iterator[ComplianceRenderer]:
    renderer = ComplianceRenderer()
    try:
        yield renderer
    finally:
        renderer.close()


def get_delivery_dispatcher() -> Iterator[DeliveryDispatcher]:
    mailer = ResendMailer()
    try:
        yield DeliveryDispatcher(mailer)
    finally:
        mailer.close()


def get_orchestrator(
    session: Session = Depends(get_session_dependency),
    renderer: ComplianceRenderer = Depends(get_compliance_renderer),
    dispatcher: DeliveryDispatcher = Depends(get_delivery_dispatcher),
) -> InvoiceOrchestrator:
    return InvoiceOrchestrator(session, renderer=renderer, dispatcher=dispatcher)


# --------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------
@contextmanager
def _translate_errors(operation: str, **context: Any) -> Iterator[None]:
    """Map domain failures onto HTTP responses."""

    try:
        yield
    except InvoiceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except InvoiceInputError as exc:
        detail: Any = exc.message
        if exc.details is not None:
            detail = {"error": exc.message, "details": exc.details}
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc
    except InvoiceStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except SequenceAllocationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate invoice number",
        ) from exc
    except MailDeliveryError as exc:
        LOGGER.error("invoice_email_failed", error=str(exc), **context)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send email",
        ) from exc
    except SQLAlchemyError as exc:
        LOGGER.error(f"invoice_{operation}_failed", error=str(exc), **context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {operation} invoice",
        ) from exc


def _serialize_invoice(invoice: Invoice) -> dict[str, Any]:
    return InvoiceRead.model_validate(invoice).model_dump(mode="json")


def _operation_response(result: InvoiceOperationResult) -> dict[str, Any]:
    """Build the create/edit body; render output is reported even if storing it failed."""

    data = _serialize_invoice(result.invoice)
    if result.documents is not None:
        data.update(
            pdf_url=result.documents.pdf_url,
            xml_url=result.documents.xml_url,
            has_pdf=result.documents.has_pdf,
            has_xml=result.documents.has_xml,
        )

    body: dict[str, Any] = {"success": True, "data": data}
    if result.warning:
        body["warning"] = result.warning
        body["external_error"] = result.external_error
    return body


# --------------------------------------------------------------------------
# Endpoints
# --------------------------------------------------------------------------
@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    with _translate_errors("create", user_id=scope.user_id):
        result = orchestrator.create(payload, scope.business_ids, user_id=scope.user_id)
    return _operation_response(result)


@router.put("/edit/{invoice_id}")
def edit_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    with _translate_errors("edit", invoice_id=invoice_id):
        result = orchestrator.edit(invoice_id, payload, scope.business_ids)
    return _operation_response(result)


@router.get("/get")
def list_invoices(
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    return [_serialize_invoice(invoice) for invoice in orchestrator.list(scope.business_ids)]


@router.get("/get/{invoice_id}")
def get_invoice(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    with _translate_errors("get", invoice_id=invoice_id):
        invoice = orchestrator.get(invoice_id, scope.business_ids)
    return _serialize_invoice(invoice)


@router.delete("/delete/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> Response:
    with _translate_errors("delete", invoice_id=invoice_id):
        orchestrator.delete(invoice_id, scope.business_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/validate")
def validate_invoice(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    with _translate_errors("validate", invoice_id=invoice_id):
        result = orchestrator.validate(invoice_id, scope.business_ids)
    return {"success": True, "results": result.model_dump()}


@router.post("/{invoice_id}/send")
def send_invoice(
    invoice_id: int,
    request: SendInvoiceRequest,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    with _translate_errors("send", invoice_id=invoice_id, channel=request.method):
        result = orchestrator.send(invoice_id, request, scope.business_ids)

    body: dict[str, Any] = {"success": True, "message": result.message}
    if result.simulated:
        body["simulated"] = True
    else:
        body["email_info"] = {
            "id": result.message_id,
            "recipients": request.recipients,
        }
    return body


@router.post("/{invoice_id}/render", status_code=status.HTTP_202_ACCEPTED)
def queue_render(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Queue a background compliance render for an existing invoice."""

    with _translate_errors("render", invoice_id=invoice_id):
        orchestrator.get(invoice_id, scope.business_ids)

    task = render_invoice_documents.delay(invoice_id)
    LOGGER.info("invoice_render_queued", invoice_id=invoice_id, task_id=task.id)
    return {"success": True, "task_id": task.id, "status": "queued"}


@router.get("/{invoice_id}/pdf")
def download_pdf(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> Response:
    with _translate_errors("download", invoice_id=invoice_id):
        invoice = orchestrator.get(invoice_id, scope.business_ids)
        content = orchestrator.document(invoice_id, scope.business_ids, "pdf")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="invoice-{invoice.invoice_number}.pdf"'
        },
    )


@router.get("/{invoice_id}/xml")
def download_xml(
    invoice_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> Response:
    with _translate_errors("download", invoice_id=invoice_id):
        invoice = orchestrator.get(invoice_id, scope.business_ids)
        content = orchestrator.document(invoice_id, scope.business_ids, "xml")
    return Response(
        content=content,
        media_type="application/xml",
        headers={
            "Content-Disposition": f'attachment; filename="invoice-{invoice.invoice_number}.xml"'
        },
    )


@router.get("/summary/{business_id}", response_model=InvoiceSummary)
def invoice_summary(
    business_id: int,
    scope: BusinessScope = Depends(get_business_scope),
    orchestrator: InvoiceOrchestrator = Depends(get_orchestrator),
) -> InvoiceSummary:
    with _translate_errors("summarize", business_id=business_id):
        return orchestrator.summary(business_id, scope.business_ids)


__all__ = [
    "get_compliance_renderer",
    "get_delivery_dispatcher",
    "get_orchestrator",
    "router",
]
