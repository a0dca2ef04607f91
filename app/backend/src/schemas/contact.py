"""Contact schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ContactRead(BaseModel):
    """Contact details returned to invoice forms."""

    id: int
    business_id: int
    name: str
    email: str | None
    phone: str | None
    street: str | None
    city: str | None
    post_code: str | None
    tax_number: str | None
    invoice_count: int
    total_value: float

    model_config = ConfigDict(from_attributes=True)


__all__ = ["ContactRead"]
