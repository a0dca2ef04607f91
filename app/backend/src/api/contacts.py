"""Contact lookup used by invoice forms."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.backend.src.core.security import BusinessScope, get_business_scope
from app.backend.src.models import Contact
from app.backend.src.schemas.contact import ContactRead
from ..db import get_session_dependency

router = APIRouter(prefix="/invoice", tags=["contacts"])


@router.get("/contacts", response_model=list[ContactRead])
def list_contacts(
    scope: BusinessScope = Depends(get_business_scope),
    session: Session = Depends(get_session_dependency),
) -> list[Contact]:
    """Return every contact of the caller's businesses, ordered by name."""

    statement = (
        select(Contact)
        .where(Contact.business_id.in_(scope.business_ids))
        .order_by(Contact.name, Contact.id)
    )
    return list(session.execute(statement).scalars())


__all__ = ["router"]
