"""Tests for the eight-point invoice checklist."""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import pytest

from app.backend.src.models import Invoice, InvoiceItem
from app.backend.src.services.invoice_validation import expected_tax, run_checks

CHECK_NAMES = [
    "Invoice Number",
    "Client Information",
    "Invoice Date",
    "Due Date",
    "Invoice Items",
    "Tax Calculation",
    "Total Amount",
    "Required Fields",
]


def _invoice(**overrides: object) -> Invoice:
    fields: dict[str, object] = {
        "invoice_number": "INV-000001",
        "business_id": 1,
        "client_name": "Acme Widgets",
        "issue_date": date(2026, 1, 5),
        "due_date": date(2026, 2, 4),
        "subtotal": 100.0,
        "tax": 10.0,
        "total": 110.0,
    }
    fields.update(overrides)
    return Invoice(**fields)


def _widgets() -> list[InvoiceItem]:
    return [InvoiceItem(description="Widget", quantity=2, unit_price=50.0, tax_rate=10.0)]


def _failed(result) -> set[str]:  # type: ignore[no-untyped-def]
    return {check.name for check in result.checks if not check.passed}


def test_widget_invoice_passes_every_check() -> None:
    result = run_checks(_invoice(), _widgets())

    assert result.valid is True
    assert [check.name for check in result.checks] == CHECK_NAMES
    assert all(check.passed for check in result.checks)


def test_checks_are_idempotent() -> None:
    invoice, items = _invoice(), _widgets()

    assert run_checks(invoice, items) == run_checks(invoice, items)


def test_missing_items_fail_items_and_required_fields() -> None:
    result = run_checks(_invoice(tax=0.0), [])

    assert result.valid is False
    assert len(result.checks) == 8
    assert _failed(result) == {"Invoice Items", "Required Fields"}


def test_zero_total_fails_total_amount() -> None:
    result = run_checks(_invoice(total=0.0), _widgets())

    assert _failed(result) == {"Total Amount"}


def test_missing_dates_fail_their_checks() -> None:
    result = run_checks(_invoice(issue_date=None, due_date=None), _widgets())

    assert _failed(result) == {"Invoice Date", "Due Date", "Required Fields"}


def test_mismatched_tax_fails_tax_calculation() -> None:
    result = run_checks(_invoice(tax=12.0), _widgets())

    assert _failed(result) == {"Tax Calculation"}
    tax_check = next(check for check in result.checks if check.name == "Tax Calculation")
    assert "10.00" in tax_check.message


def test_tax_within_a_cent_is_accepted() -> None:
    result = run_checks(_invoice(tax=10.005), _widgets())

    assert result.valid is True


def test_item_with_zero_quantity_fails_required_fields() -> None:
    items = [InvoiceItem(description="Widget", quantity=0, unit_price=50.0, tax_rate=10.0)]

    result = run_checks(_invoice(tax=0.0), items)

    assert _failed(result) == {"Required Fields"}


@pytest.mark.parametrize(
    ("items", "expected"),
    [
        ([], 0.0),
        (
            [
                InvoiceItem(description="A", quantity=3, unit_price=10.0, tax_rate=10.0),
                InvoiceItem(description="B", quantity=1, unit_price=200.0, tax_rate=0.0),
            ],
            3.0,
        ),
    ],
)
def test_expected_tax(items: list[InvoiceItem], expected: float) -> None:
    assert expected_tax(items) == pytest.approx(expected)
