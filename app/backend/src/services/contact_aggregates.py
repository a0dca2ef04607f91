"""Running invoice totals kept on each contact."""

from __future__ import annotations

import structlog
from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.models import Contact

LOGGER = structlog.get_logger(__name__)


def _clamped(column, delta):
    """SQL expression for ``max(column + delta, 0)`` that works on every backend."""

    return case((column + delta < 0, 0), else_=column + delta)


def apply_contact_delta(
    session: Session,
    contact_id: int | None,
    count_delta: int,
    value_delta: float,
) -> bool:
    """Adjust a contact's ``invoice_count`` and ``total_value``.

    The change is a single UPDATE evaluated by the store, so concurrent deltas
    on the same contact do not lose updates. It runs in its own transaction
    after the invoice write has been committed. Failures are logged and
    reported through the return value; they never propagate.
    """

    if contact_id is None:
        return False

    statement = (
        update(Contact)
        .where(Contact.id == contact_id)
        .values(
            invoice_count=_clamped(Contact.invoice_count, count_delta),
            total_value=_clamped(Contact.total_value, value_delta),
        )
        .execution_options(synchronize_session="fetch")
    )

    try:
        result = session.execute(statement)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.warning(
            "contact_aggregate_update_failed",
            contact_id=contact_id,
            count_delta=count_delta,
            value_delta=value_delta,
            error=str(exc),
        )
        return False

    if not result.rowcount:
        LOGGER.warning("contact_aggregate_contact_missing", contact_id=contact_id)
        return False

    LOGGER.info(
        "contact_aggregate_updated",
        contact_id=contact_id,
        count_delta=count_delta,
        value_delta=value_delta,
    )
    return True


__all__ = ["apply_contact_delta"]
