"""Invoice schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .invoice_item import InvoiceItemInput, InvoiceItemRead

CLIENT_SNAPSHOT_FIELDS: tuple[str, ...] = (
    "client_name",
    "client_city",
    "client_street",
    "client_post_code",
    "client_email",
    "client_tax_number",
)


class InvoicePayload(BaseModel):
    """Fields shared by invoice creation and editing.

    Client snapshot fields may be omitted when ``contact_id`` is supplied; the
    orchestrator fills them from the stored contact and rejects the request if
    any remain empty.
    """

    contact_id: int | None = Field(default=None, alias="contactId")
    client_name: str | None = Field(default=None, alias="clientName")
    client_city: str | None = Field(default=None, alias="clientCity")
    client_street: str | None = Field(default=None, alias="clientStreet")
    client_post_code: str | None = Field(default=None, alias="clientPostCode")
    client_email: str | None = Field(default=None, alias="clientEmail")
    client_tax_number: str | None = Field(default=None, alias="clientTaxNumber")
    issue_date: date = Field(alias="issueDate")
    due_date: date = Field(alias="dueDate")
    subtotal: float = Field(ge=0)
    tax: float = Field(ge=0)
    total: float = Field(ge=0)
    items: list[InvoiceItemInput] = Field(min_length=1)
    notes: str | None = None
    terms: str | None = None

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator(*CLIENT_SNAPSHOT_FIELDS)
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        return value or None


class InvoiceCreate(InvoicePayload):
    """Payload for creating an invoice."""

    business_id: int | None = Field(default=None, alias="businessId")


class InvoiceUpdate(InvoicePayload):
    """Payload for editing an invoice; replaces every editable field and all items.

    Leaving out ``contactId`` keeps the invoice's current contact. Sending
    ``"contactId": null`` unlinks it.
    """


class InvoiceRead(BaseModel):
    id: int
    invoice_number: str
    business_id: int
    contact_id: int | None
    client_name: str
    client_email: str | None
    client_city: str | None
    client_street: str | None
    client_post_code: str | None
    client_tax_number: str | None
    issue_date: date | None
    due_date: date | None
    subtotal: float
    tax: float
    total: float
    status: str
    notes: str | None
    terms: str | None
    pdf_url: str | None
    xml_url: str | None
    has_pdf: bool
    has_xml: bool
    validated_at: datetime | None
    sent_at: datetime | None
    sent_method: str | None
    created_at: datetime | None
    updated_at: datetime | None
    items: list[InvoiceItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class ValidationCheck(BaseModel):
    name: str
    passed: bool
    message: str


class ValidationResult(BaseModel):
    valid: bool
    checks: list[ValidationCheck]


def _split_addresses(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class SendInvoiceRequest(BaseModel):
    """Delivery options for sending an invoice.

    Address lists accept either JSON arrays or comma separated strings.
    """

    method: Literal["email", "sftp", "portal"]
    recipients: list[str] = []
    cc: list[str] = []
    bcc: list[str] = []
    subject: str | None = None
    message: str | None = None
    include_attachment: bool = Field(default=False, alias="includeAttachment")
    include_xml: bool = Field(default=False, alias="includeXml")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("recipients", "cc", "bcc", mode="before")
    @classmethod
    def _normalize_addresses(cls, value: object) -> object:
        return _split_addresses(value)


class InvoiceSummary(BaseModel):
    business_id: int
    invoice_count: int
    total_amount: float


__all__ = [
    "CLIENT_SNAPSHOT_FIELDS",
    "InvoiceCreate",
    "InvoicePayload",
    "InvoiceRead",
    "InvoiceSummary",
    "InvoiceUpdate",
    "SendInvoiceRequest",
    "ValidationCheck",
    "ValidationResult",
]
