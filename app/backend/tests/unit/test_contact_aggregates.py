"""Tests for the contact running totals."""

from __future__ import annotations

import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import pytest
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from app.backend.src.db import Base, get_engine, get_session, session_scope
from app.backend.src.models import Business, Contact
from app.backend.src.services.contact_aggregates import apply_contact_delta


@pytest.fixture(autouse=True)
def setup_database() -> None:  # type: ignore[no-untyped-def]
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def contact_id() -> int:
    with session_scope() as session:
        business = Business(name="Aggregates Ltd")
        session.add(business)
        session.flush()
        contact = Contact(business_id=business.id, name="Acme", invoice_count=1, total_value=50.0)
        session.add(contact)
        session.flush()
        return contact.id


def _totals(contact_id: int) -> tuple[int, float]:
    with session_scope() as session:
        contact = session.get(Contact, contact_id)
        assert contact is not None
        return contact.invoice_count, contact.total_value


def test_positive_delta_is_applied(contact_id: int) -> None:
    with session_scope() as session:
        assert apply_contact_delta(session, contact_id, 1, 110.0) is True

    assert _totals(contact_id) == (2, pytest.approx(160.0))


def test_value_only_delta_keeps_count(contact_id: int) -> None:
    with session_scope() as session:
        assert apply_contact_delta(session, contact_id, 0, -20.0) is True

    assert _totals(contact_id) == (1, pytest.approx(30.0))


def test_negative_delta_clamps_at_zero(contact_id: int) -> None:
    with session_scope() as session:
        assert apply_contact_delta(session, contact_id, -3, -500.0) is True

    assert _totals(contact_id) == (0, 0)


def test_missing_contact_id_is_a_noop() -> None:
    with session_scope() as session:
        assert apply_contact_delta(session, None, 1, 10.0) is False


def test_unknown_contact_is_reported(contact_id: int) -> None:
    with capture_logs() as logs, session_scope() as session:
        assert apply_contact_delta(session, contact_id + 999, 1, 10.0) is False

    assert any(entry["event"] == "contact_aggregate_contact_missing" for entry in logs)


def test_store_failure_is_logged_and_swallowed(
    contact_id: int, monkeypatch: pytest.MonkeyPatch
) -> None:
    with get_session() as session:
        def broken_execute(*args: object, **kwargs: object) -> None:
            raise OperationalError("UPDATE contacts", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "execute", broken_execute)
        with capture_logs() as logs:
            assert apply_contact_delta(session, contact_id, 1, 10.0) is False

    failures = [entry for entry in logs if entry["event"] == "contact_aggregate_update_failed"]
    assert failures and failures[0]["contact_id"] == contact_id
    assert _totals(contact_id) == (1, pytest.approx(50.0))
