"""Tests for invoice number allocation."""

from __future__ import annotations

import os
import re
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import pytest
from sqlalchemy.exc import OperationalError

from app.backend.src.db import Base, get_engine, get_session, session_scope
from app.backend.src.services.errors import SequenceAllocationError
from app.backend.src.services.sequence import format_invoice_number, next_invoice_number


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def test_format_pads_to_six_digits() -> None:
    assert format_invoice_number(42, prefix="INV-") == "INV-000042"
    assert format_invoice_number(1234567, prefix="INV-") == "INV-1234567"


def test_format_uses_configured_prefix_by_default() -> None:
    assert re.fullmatch(r"INV-\d{6}", format_invoice_number(7))


def test_sequential_allocations_are_increasing() -> None:
    numbers = []
    for _ in range(5):
        with session_scope() as session:
            numbers.append(next_invoice_number(session))

    values = [int(number.removeprefix("INV-")) for number in numbers]
    assert values == sorted(values)
    assert len(set(numbers)) == 5


def test_concurrent_allocations_never_collide() -> None:
    def allocate(_: int) -> str:
        with session_scope() as session:
            return next_invoice_number(session)

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(allocate, range(40)))

    assert len(numbers) == 40
    assert len(set(numbers)) == 40


def test_failed_allocation_raises_domain_error(monkeypatch: pytest.MonkeyPatch) -> None:
    with get_session() as session:
        def broken_flush(*args: object, **kwargs: object) -> None:
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "flush", broken_flush)
        with pytest.raises(SequenceAllocationError):
            next_invoice_number(session)
