"""Invoice model."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

INVOICE_STATUSES: tuple[str, ...] = ("draft", "validated", "sent")


class Invoice(Base):
    """An invoice issued by a business, with its compliance document artifacts."""

    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','validated','sent')",
            name="ck_invoices_status_valid",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    business_id: Mapped[int] = mapped_column(
        ForeignKey("businesses.id"), nullable=False, index=True
    )
    contact_id: Mapped[int | None] = mapped_column(
        ForeignKey("contacts.id"), nullable=True, index=True
    )
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    # Client snapshot taken when the invoice is written; not a live join.
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    client_street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_post_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    client_tax_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    tax: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)

    pdf_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    xml_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    pdf_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    xml_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    validated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_method: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sent_to: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    business: Mapped["Business"] = relationship("Business", back_populates="invoices")
    contact: Mapped["Contact | None"] = relationship("Contact", back_populates="invoices")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.id",
    )

    @property
    def has_pdf(self) -> bool:
        """Return ``True`` when the rendered PDF is stored on the invoice."""

        return bool(self.pdf_content)

    @property
    def has_xml(self) -> bool:
        """Return ``True`` when the rendered XML is stored on the invoice."""

        return bool(self.xml_content)


__all__ = ["INVOICE_STATUSES", "Invoice"]
