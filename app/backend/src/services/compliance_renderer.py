"""Client for the third-party e-invoicing compliance renderer.

A render is three phases against the remote service:

* **skeleton** - ``DDDI_GetNew`` returns a blank invoice document.
* **save** - ``DDDI_Save`` stores the populated document and renders the
  PDF and XML representations, returning their URLs.
* **documents** - the PDF and XML are downloaded from those URLs.

The first two phases must both report ``Status == "OK"``; anything else raises
:class:`ComplianceRenderError`. Downloads are best effort and independent of
each other. No request is retried.
"""

from __future__ import annotations

import base64
import copy
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.models import Business, Invoice, InvoiceItem

from .errors import ComplianceRenderError
from .metrics import compliance_render_total

LOGGER = structlog.get_logger(__name__)

SUCCESS_STATUS = "OK"
GET_NEW_ENDPOINT = "EUeInvoices.DDDI_GetNew"
SAVE_ENDPOINT = "EUeInvoices.DDDI_Save"
RENDER_STEPS = [35, 55, 85]
RETURN_DOCUMENTS = ["PDFP", "XMLP"]
DEFAULT_UNIT_CODE = "piece"
PAYMENT_TYPE = "CREDITTRANSFER"


@dataclass
class RenderedDocuments:
    """Outcome of a successful render."""

    pdf_url: str | None
    xml_url: str | None
    pdf_content: str | None = None
    xml_content: str | None = None
    response: dict[str, Any] = field(default_factory=dict)

    @property
    def has_pdf(self) -> bool:
        return bool(self.pdf_content)

    @property
    def has_xml(self) -> bool:
        return bool(self.xml_content)


def _dig(payload: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def _document_url(saved: dict[str, Any], kind: str) -> str | None:
    value = _dig(saved, "Result", "ReturnDoc", kind)
    if isinstance(value, str) and value.strip():
        return value.strip()
    if value is not None:
        LOGGER.warning("compliance_document_url_invalid", kind=kind, value=repr(value)[:200])
    return None


def _amount(value: float | None) -> float:
    return round(float(value or 0), 2)


class ComplianceRenderer:
    """Adapter for the compliance rendering API."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.compliance_timeout_seconds)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _endpoint(self, name: str) -> str:
        return f"{self.settings.compliance_api_base_url.rstrip('/')}/{name}"

    def _post(self, phase: str, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST ``body`` and return the decoded JSON if the service accepted it."""

        headers = {
            "Authorization": self.settings.compliance_authorization,
            "Content-Type": "application/json",
        }
        try:
            response = self._http().post(self._endpoint(endpoint), json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise ComplianceRenderError(phase, f"Request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {"body": response.text[:500]}

        if not response.is_success:
            raise ComplianceRenderError(
                phase, f"HTTP {response.status_code} from compliance service", payload
            )
        if not isinstance(payload, dict) or payload.get("Status") != SUCCESS_STATUS:
            raise ComplianceRenderError(phase, "Compliance service reported failure", payload)
        return payload

    def fetch_skeleton(self) -> dict[str, Any]:
        """Request a blank document template."""

        payload = self._post(
            "skeleton",
            GET_NEW_ENDPOINT,
            {"Complexity": "Maximal", "IncludeInfo": False},
        )
        skeleton = _dig(payload, "Result", "Result", "Invoice", "Invoice")
        return copy.deepcopy(skeleton) if isinstance(skeleton, dict) else {}

    def build_document(
        self,
        skeleton: dict[str, Any],
        invoice: Invoice,
        items: Sequence[InvoiceItem],
        business: Business | None = None,
    ) -> dict[str, Any]:
        """Populate ``skeleton`` with the invoice, buyer, seller and payment data."""

        document = dict(skeleton)
        seller_vat = (business.tax_id if business else None) or self.settings.compliance_seller_vat_number
        currency = (business.default_currency if business else None) or self.settings.compliance_currency

        document.update(
            {
                "DocNumber": invoice.invoice_number,
                "DocIssueDate": f"{invoice.issue_date.isoformat()}T00:00:00" if invoice.issue_date else None,
                "DocDueDate": invoice.due_date.isoformat() if invoice.due_date else None,
                "DocTotalAmount": _amount(invoice.total),
                "DocTotalVatAmount": _amount(invoice.tax),
                "DocTotalVatAmountCC": _amount(invoice.tax),
                "DocCurrencyCode": currency,
                "DocNote": invoice.notes,
                "BuyerName": invoice.client_name,
                "BuyerEmail": invoice.client_email,
                "BuyerStreet": invoice.client_street,
                "BuyerCity": invoice.client_city,
                "BuyerPostCode": invoice.client_post_code,
                "BuyerTaxNum": invoice.client_tax_number,
                "BuyerVatNum": invoice.client_tax_number,
                "SellerVatNum": seller_vat,
            }
        )
        if self.settings.compliance_buyer_order_ref:
            document["DocBuyerOrderRef"] = self.settings.compliance_buyer_order_ref

        document["_details"] = {
            "Items": [
                {
                    "ItemName": item.description,
                    "ItemQuantity": item.quantity,
                    "ItemNetPrice": item.unit_price,
                    "ItemVatRate": item.tax_rate,
                    "ItemUmcCode": DEFAULT_UNIT_CODE,
                    "ItemVatCode": f"{item.tax_rate:g}",
                }
                for item in items
            ],
            "Payments": [
                {
                    "TypeOfPayment": PAYMENT_TYPE,
                    "PayCode": PAYMENT_TYPE,
                    "PayAmount": _amount(invoice.total),
                }
            ],
        }
        return document

    def save(
        self,
        skeleton: dict[str, Any],
        invoice: Invoice,
        items: Sequence[InvoiceItem],
        business: Business | None = None,
    ) -> dict[str, Any]:
        """Store the populated document and ask for PDF and XML renditions."""

        document = self.build_document(skeleton, invoice, items, business)
        return self._post(
            "save",
            SAVE_ENDPOINT,
            {
                "Complexity": "Maximal",
                "Steps": RENDER_STEPS,
                "ReturnDoc": RETURN_DOCUMENTS,
                "Object": {"Invoice": document},
            },
        )

    def _download(self, url: str, kind: str) -> httpx.Response | None:
        try:
            response = self._http().get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.warning("compliance_document_fetch_failed", kind=kind, url=url, error=str(exc))
            return None
        if not response.is_success:
            LOGGER.warning(
                "compliance_document_fetch_failed",
                kind=kind,
                url=url,
                status_code=response.status_code,
            )
            return None
        return response

    def fetch_documents(
        self, pdf_url: str | None, xml_url: str | None
    ) -> tuple[str | None, str | None]:
        """Download both renditions; a failed download yields ``None`` for that kind.

        The PDF is returned base64 encoded so it can live in a text column.
        """

        pdf_content: str | None = None
        xml_content: str | None = None

        if pdf_url:
            response = self._download(pdf_url, "pdf")
            if response is not None:
                pdf_content = base64.b64encode(response.content).decode("ascii")

        if xml_url:
            response = self._download(xml_url, "xml")
            if response is not None:
                xml_content = response.text

        return pdf_content, xml_content

    def render(
        self,
        invoice: Invoice,
        items: Sequence[InvoiceItem],
        business: Business | None = None,
    ) -> RenderedDocuments:
        """Run all three phases for ``invoice``."""

        LOGGER.info("compliance_render_started", invoice_number=invoice.invoice_number)
        try:
            skeleton = self.fetch_skeleton()
            saved = self.save(skeleton, invoice, items, business)
        except ComplianceRenderError as exc:
            compliance_render_total.labels(outcome=f"{exc.phase}_failed").inc()
            LOGGER.warning(
                "compliance_render_failed",
                invoice_number=invoice.invoice_number,
                phase=exc.phase,
                error=exc.message,
            )
            raise

        pdf_url = _document_url(saved, "PDFP")
        xml_url = _document_url(saved, "XMLP")
        pdf_content, xml_content = self.fetch_documents(pdf_url, xml_url)

        compliance_render_total.labels(outcome="success").inc()
        LOGGER.info(
            "compliance_render_completed",
            invoice_number=invoice.invoice_number,
            has_pdf=bool(pdf_content),
            has_xml=bool(xml_content),
        )
        return RenderedDocuments(
            pdf_url=pdf_url,
            xml_url=xml_url,
            pdf_content=pdf_content,
            xml_content=xml_content,
            response=saved,
        )


__all__ = ["ComplianceRenderer", "RenderedDocuments"]
