"""Tests for the compliance renderer adapter."""

from __future__ import annotations

import base64
import json
import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import httpx
import pytest

from app.backend.src.core.config import get_settings
from app.backend.src.models import Business, Invoice, InvoiceItem
from app.backend.src.services.compliance_renderer import ComplianceRenderer
from app.backend.src.services.errors import ComplianceRenderError

PDF_URL = "https://docs.example/INV-000001.pdf"
XML_URL = "https://docs.example/INV-000001.xml"
PDF_BYTES = b"%PDF-1.4 rendered"


def _invoice() -> tuple[Invoice, list[InvoiceItem], Business]:
    invoice = Invoice(
        invoice_number="INV-000001",
        business_id=1,
        client_name="Acme Widgets",
        client_email="billing@acme.example",
        client_city="Sydney",
        client_street="1 Market Street",
        client_post_code="2000",
        client_tax_number="AU11223491505",
        issue_date=date(2026, 1, 5),
        due_date=date(2026, 2, 4),
        subtotal=100.0,
        tax=10.0,
        total=110.0,
        notes="Thanks",
    )
    items = [InvoiceItem(description="Widget", quantity=2, unit_price=50.0, tax_rate=10.0)]
    business = Business(name="Demo Trading", tax_id="AU51824753556", default_currency="AUD")
    return invoice, items, business


class ComplianceStub:
    """Answers the compliance endpoints and records every request."""

    def __init__(self, *, get_new_status: str = "OK", save_status: str = "OK") -> None:
        self.get_new_status = get_new_status
        self.save_status = save_status
        self.requests: list[httpx.Request] = []
        self.failing_paths: set[str] = set()
        self.return_doc: dict = {"PDFP": PDF_URL, "XMLP": XML_URL}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failing_paths:
            return httpx.Response(404)
        if path.endswith("DDDI_GetNew"):
            return httpx.Response(
                200,
                json={
                    "Status": self.get_new_status,
                    "Result": {"Result": {"Invoice": {"Invoice": {"DocNumber": None, "DocType": "380"}}}},
                },
            )
        if path.endswith("DDDI_Save"):
            return httpx.Response(
                200,
                json={
                    "Status": self.save_status,
                    "Result": {"ReturnDoc": self.return_doc},
                },
            )
        if path.endswith(".pdf"):
            return httpx.Response(200, content=PDF_BYTES)
        if path.endswith(".xml"):
            return httpx.Response(200, text="<Invoice>INV-000001</Invoice>")
        return httpx.Response(500)

    def body(self, suffix: str) -> dict:
        request = next(req for req in self.requests if req.url.path.endswith(suffix))
        return json.loads(request.content)


def _renderer(stub: ComplianceStub) -> ComplianceRenderer:
    settings = get_settings().model_copy(update={"compliance_api_key": "secret-key"})
    return ComplianceRenderer(settings=settings, client=httpx.Client(transport=httpx.MockTransport(stub)))


def test_render_runs_all_phases() -> None:
    stub = ComplianceStub()
    invoice, items, business = _invoice()

    documents = _renderer(stub).render(invoice, items, business)

    assert documents.pdf_url == PDF_URL
    assert documents.xml_url == XML_URL
    assert base64.b64decode(documents.pdf_content) == PDF_BYTES
    assert documents.xml_content == "<Invoice>INV-000001</Invoice>"
    assert documents.has_pdf and documents.has_xml
    assert [req.url.path.rsplit("/", 1)[-1] for req in stub.requests] == [
        "EUeInvoices.DDDI_GetNew",
        "EUeInvoices.DDDI_Save",
        "INV-000001.pdf",
        "INV-000001.xml",
    ]
    assert stub.requests[0].headers["Authorization"] == "IoT secret-key"


def test_save_request_carries_invoice_data() -> None:
    stub = ComplianceStub()
    invoice, items, business = _invoice()

    _renderer(stub).render(invoice, items, business)

    assert stub.body("DDDI_GetNew") == {"Complexity": "Maximal", "IncludeInfo": False}
    save = stub.body("DDDI_Save")
    assert save["Steps"] == [35, 55, 85]
    assert save["ReturnDoc"] == ["PDFP", "XMLP"]
    document = save["Object"]["Invoice"]
    assert document["DocType"] == "380"
    assert document["DocNumber"] == "INV-000001"
    assert document["DocIssueDate"] == "2026-01-05T00:00:00"
    assert document["DocDueDate"] == "2026-02-04"
    assert document["BuyerName"] == "Acme Widgets"
    assert document["SellerVatNum"] == "AU51824753556"
    assert document["DocTotalAmount"] == 110.0
    assert document["_details"]["Items"] == [
        {
            "ItemName": "Widget",
            "ItemQuantity": 2,
            "ItemNetPrice": 50.0,
            "ItemVatRate": 10.0,
            "ItemUmcCode": "piece",
            "ItemVatCode": "10",
        }
    ]
    assert document["_details"]["Payments"][0]["PayAmount"] == 110.0


def test_skeleton_failure_stops_before_save() -> None:
    stub = ComplianceStub(get_new_status="ERROR")
    invoice, items, business = _invoice()

    with pytest.raises(ComplianceRenderError) as excinfo:
        _renderer(stub).render(invoice, items, business)

    assert excinfo.value.phase == "skeleton"
    assert len(stub.requests) == 1


def test_save_status_other_than_ok_is_a_failure() -> None:
    stub = ComplianceStub(save_status="ERROR")
    invoice, items, business = _invoice()

    with pytest.raises(ComplianceRenderError) as excinfo:
        _renderer(stub).render(invoice, items, business)

    warning = excinfo.value.as_warning()
    assert warning["phase"] == "save"
    assert warning["response"]["Status"] == "ERROR"


def test_unreachable_service_is_a_failure() -> None:
    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    renderer = ComplianceRenderer(client=httpx.Client(transport=httpx.MockTransport(offline)))
    invoice, items, business = _invoice()

    with pytest.raises(ComplianceRenderError) as excinfo:
        renderer.render(invoice, items, business)

    assert excinfo.value.phase == "skeleton"


def test_document_downloads_are_independent() -> None:
    stub = ComplianceStub()
    stub.failing_paths.add("/INV-000001.pdf")
    invoice, items, business = _invoice()

    documents = _renderer(stub).render(invoice, items, business)

    assert documents.pdf_url == PDF_URL
    assert documents.pdf_content is None
    assert documents.xml_content == "<Invoice>INV-000001</Invoice>"


def test_non_string_document_url_is_treated_as_missing() -> None:
    stub = ComplianceStub()
    stub.return_doc = {"PDFP": 12345, "XMLP": XML_URL}
    invoice, items, business = _invoice()

    documents = _renderer(stub).render(invoice, items, business)

    assert documents.pdf_url is None
    assert documents.pdf_content is None
    assert documents.xml_content == "<Invoice>INV-000001</Invoice>"
    assert [req.url.path.rsplit("/", 1)[-1] for req in stub.requests][-1] == "INV-000001.xml"
