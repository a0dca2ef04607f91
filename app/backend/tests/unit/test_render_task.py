"""Tests for the background compliance render task."""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import httpx
import pytest

from app.backend.src.db import Base, get_engine, session_scope
from app.backend.src.models import Business, Invoice, InvoiceItem
from app.backend.src.services import invoice_orchestrator
from app.backend.src.services.compliance_renderer import ComplianceRenderer
from tasks import worker
from tasks.invoice_tasks import render_invoice_documents


def _compliance(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("DDDI_GetNew"):
        return httpx.Response(200, json={"Status": "OK", "Result": {"Result": {"Invoice": {"Invoice": {}}}}})
    if path.endswith("DDDI_Save"):
        return httpx.Response(
            200,
            json={"Status": "OK", "Result": {"ReturnDoc": {"PDFP": "https://docs.example/a.pdf"}}},
        )
    return httpx.Response(200, content=b"%PDF-1.4")


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def offline_renderer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        invoice_orchestrator,
        "ComplianceRenderer",
        lambda: ComplianceRenderer(client=httpx.Client(transport=httpx.MockTransport(_compliance))),
    )


@pytest.fixture()
def invoice_id() -> int:
    with session_scope() as session:
        business = Business(name="Demo Trading")
        session.add(business)
        session.flush()
        invoice = Invoice(
            invoice_number="INV-000321",
            business_id=business.id,
            client_name="Acme Widgets",
            issue_date=date(2026, 1, 5),
            due_date=date(2026, 2, 4),
            subtotal=100.0,
            tax=10.0,
            total=110.0,
            status="draft",
        )
        session.add(invoice)
        session.flush()
        session.add(InvoiceItem(invoice_id=invoice.id, description="Widget", quantity=2, unit_price=50.0, tax_rate=10.0))
        return invoice.id


def test_task_renders_and_stores_documents(invoice_id: int) -> None:
    result = render_invoice_documents(invoice_id)

    assert result["rendered"] is True
    assert result["pdf_url"] == "https://docs.example/a.pdf"
    assert result["xml_url"] is None
    with session_scope() as session:
        invoice = session.get(Invoice, invoice_id)
        assert invoice is not None
        assert invoice.has_pdf is True
        assert invoice.has_xml is False


def test_task_reports_missing_invoice() -> None:
    result = render_invoice_documents(999)

    assert result == {"invoice_id": 999, "rendered": False, "external_error": None}


def test_render_task_is_routed_to_documents_queue() -> None:
    conf = worker.celery.conf

    assert conf.task_default_queue == worker.RENDER_QUEUE == "documents"
    assert [queue.name for queue in conf.task_queues] == ["documents"]
    assert conf.task_routes["tasks.render_invoice_documents"] == {"queue": "documents"}
    assert "tasks.render_invoice_documents" in worker.celery.tasks


def test_redis_ssl_options_use_existing_ca_file(tmp_path: Path) -> None:
    ca_file = tmp_path / "redis-ca.pem"
    ca_file.write_text("-----BEGIN CERTIFICATE-----\n")

    options = worker._redis_ssl_options(str(ca_file))

    assert options["ssl_ca_certs"] == str(ca_file)
    assert "ssl_cert_reqs" in options


def test_redis_ssl_options_fall_back_without_ca_file(tmp_path: Path) -> None:
    options = worker._redis_ssl_options(str(tmp_path / "missing.pem"))

    assert "ssl_ca_certs" not in options
    assert "ssl_cert_reqs" in options
    assert "ssl_ca_certs" not in worker._redis_ssl_options(None)
