"""Invoice item schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class InvoiceItemInput(BaseModel):
    """A line item as submitted by the client."""

    description: str = Field(min_length=1)
    quantity: float = Field(gt=0)
    unit_price: float = Field(ge=0, alias="unitPrice")
    tax_rate: float = Field(alias="taxRate")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class InvoiceItemRead(BaseModel):
    id: int
    invoice_id: int
    description: str
    quantity: float
    unit_price: float
    tax_rate: float

    model_config = ConfigDict(from_attributes=True)


__all__ = ["InvoiceItemInput", "InvoiceItemRead"]
