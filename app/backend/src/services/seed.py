"""Utilities for seeding development data."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.backend.src.models import Business, BusinessMember, Contact, User

DEFAULT_BUSINESS_NAME = "Demo Trading Pty Ltd"
DEFAULT_BUSINESS_EMAIL = "accounts@demo-trading.example"
DEFAULT_BUSINESS_TAX_ID = "AU51824753556"
DEFAULT_USER_EMAIL = "demo.user@demo-trading.example"
DEFAULT_USER_NAME = "Demo User"
DEFAULT_CONTACT = {
    "name": "Acme Widgets",
    "email": "billing@acme.example",
    "street": "1 Market Street",
    "city": "Sydney",
    "post_code": "2000",
    "tax_number": "AU11223491505",
}


@dataclass
class SeedResult:
    """Information about the seeded business, user and contact."""

    business: Business
    user: User
    contact: Contact
    business_created: bool
    user_created: bool
    contact_created: bool


def seed_development_business(
    session: Session,
    *,
    business_name: str = DEFAULT_BUSINESS_NAME,
    user_email: str = DEFAULT_USER_EMAIL,
    user_name: str = DEFAULT_USER_NAME,
    auth0_sub: str | None = None,
) -> SeedResult:
    """Ensure a demo business with one admin member and one contact exists.

    Existing records are reused; an Auth0 subject is linked to the demo user
    when supplied.
    """

    business = session.execute(
        select(Business).where(Business.name == business_name)
    ).scalar_one_or_none()
    business_created = business is None
    if business is None:
        business = Business(
            name=business_name,
            email=DEFAULT_BUSINESS_EMAIL,
            tax_id=DEFAULT_BUSINESS_TAX_ID,
        )
        session.add(business)
        session.flush()

    user = session.execute(select(User).where(User.email == user_email)).scalar_one_or_none()
    user_created = user is None
    if user is None:
        user = User(email=user_email, name=user_name, auth0_sub=auth0_sub)
        session.add(user)
        session.flush()
    elif auth0_sub and user.auth0_sub != auth0_sub:
        user.auth0_sub = auth0_sub

    membership = session.execute(
        select(BusinessMember)
        .where(BusinessMember.user_id == user.id)
        .where(BusinessMember.business_id == business.id)
    ).scalar_one_or_none()
    if membership is None:
        session.add(BusinessMember(user_id=user.id, business_id=business.id, role="admin"))

    contact = session.execute(
        select(Contact)
        .where(Contact.business_id == business.id)
        .where(Contact.name == DEFAULT_CONTACT["name"])
    ).scalar_one_or_none()
    contact_created = contact is None
    if contact is None:
        contact = Contact(business_id=business.id, **DEFAULT_CONTACT)
        session.add(contact)

    session.flush()
    return SeedResult(
        business=business,
        user=user,
        contact=contact,
        business_created=business_created,
        user_created=user_created,
        contact_created=contact_created,
    )


__all__ = ["SeedResult", "seed_development_business"]
