"""Celery tasks for invoice document rendering."""

from __future__ import annotations

from time import perf_counter
from typing import Any

import structlog

from app.backend.src.db import session_scope
from app.backend.src.services.errors import InvoiceNotFoundError
from app.backend.src.services.invoice_orchestrator import InvoiceOrchestrator
from app.backend.src.services.metrics import render_task_duration_seconds
from .worker import celery

LOGGER = structlog.get_logger(__name__)


@celery.task(name="tasks.render_invoice_documents")
def render_invoice_documents(invoice_id: int) -> dict[str, Any]:
    """Re-run the compliance render for an invoice that has no documents yet."""

    start = perf_counter()
    outcome = "failed"
    try:
        with session_scope() as session:
            orchestrator = InvoiceOrchestrator(session)
            try:
                result = orchestrator.rerender(invoice_id)
            finally:
                orchestrator.renderer.close()
            outcome = "success" if result.rendered else "render_failed"
            LOGGER.info(
                "render_task_completed",
                invoice_id=invoice_id,
                outcome=outcome,
            )
            return {
                "invoice_id": invoice_id,
                "rendered": result.rendered,
                "pdf_url": result.invoice.pdf_url,
                "xml_url": result.invoice.xml_url,
                "external_error": result.external_error,
            }
    except InvoiceNotFoundError:
        outcome = "not_found"
        LOGGER.warning("render_task_invoice_missing", invoice_id=invoice_id)
        return {"invoice_id": invoice_id, "rendered": False, "external_error": None}
    finally:
        render_task_duration_seconds.labels(outcome=outcome).observe(perf_counter() - start)


__all__ = ["render_invoice_documents"]
