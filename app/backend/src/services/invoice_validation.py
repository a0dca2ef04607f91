"""Compliance checklist run before an invoice may be sent."""

from __future__ import annotations

from collections.abc import Sequence

from app.backend.src.models import Invoice, InvoiceItem
from app.backend.src.schemas.invoice import ValidationCheck, ValidationResult

TAX_TOLERANCE = 0.01


def expected_tax(items: Sequence[InvoiceItem]) -> float:
    """Sum of quantity x unit price x rate over the items."""

    return sum(item.quantity * item.unit_price * item.tax_rate / 100 for item in items)


def _check(name: str, passed: bool, ok: str, failed: str) -> ValidationCheck:
    return ValidationCheck(name=name, passed=passed, message=ok if passed else failed)


def _required_fields_present(invoice: Invoice, items: Sequence[InvoiceItem]) -> bool:
    if not (invoice.invoice_number and invoice.client_name and invoice.issue_date and invoice.due_date):
        return False
    if not items:
        return False
    return all(
        item.description and item.quantity > 0 and item.unit_price >= 0 for item in items
    )


def run_checks(invoice: Invoice, items: Sequence[InvoiceItem]) -> ValidationResult:
    """Evaluate all eight checks; the result depends only on the inputs."""

    tax_ok = abs((invoice.tax or 0) - expected_tax(items)) <= TAX_TOLERANCE
    checks = [
        _check(
            "Invoice Number",
            bool(invoice.invoice_number),
            "Valid invoice number",
            "Missing invoice number",
        ),
        _check(
            "Client Information",
            bool(invoice.client_name),
            "Client information present",
            "Missing client information",
        ),
        _check(
            "Invoice Date",
            invoice.issue_date is not None,
            "Valid issue date",
            "Missing issue date",
        ),
        _check(
            "Due Date",
            invoice.due_date is not None,
            "Valid due date",
            "Missing due date",
        ),
        _check(
            "Invoice Items",
            len(items) > 0,
            "Invoice contains items",
            "Invoice has no items",
        ),
        _check(
            "Tax Calculation",
            tax_ok,
            "Tax calculations are correct",
            f"Tax amount does not match item tax rates (expected {expected_tax(items):.2f})",
        ),
        _check(
            "Total Amount",
            (invoice.total or 0) > 0,
            "Valid total amount",
            "Total amount must be greater than zero",
        ),
        _check(
            "Required Fields",
            _required_fields_present(invoice, items),
            "All required fields are filled",
            "Some required fields are missing",
        ),
    ]
    return ValidationResult(valid=all(check.passed for check in checks), checks=checks)


__all__ = ["TAX_TOLERANCE", "expected_tax", "run_checks"]
