"""Seed the development database with a demo business, user and contact."""

import os

from app.backend.src.db import get_engine, session_scope
from app.backend.src.models.base import Base
from app.backend.src.services.seed import seed_development_business


def _status(created: bool) -> str:
    return "created" if created else "unchanged"


def main() -> None:
    """Create tables (if needed) and ensure the demo records exist."""

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with session_scope() as session:
        auth0_sub = os.environ.get("AUTH0_DEMO_SUB")
        result = seed_development_business(session, auth0_sub=auth0_sub)

        print("Development data ready!")
        print(
            f"Business ({_status(result.business_created)}): "
            f"{result.business.name} [id={result.business.id}]"
        )
        print(
            f"User ({_status(result.user_created)}): "
            f"{result.user.name} <{result.user.email}> [id={result.user.id}]"
        )
        print(
            f"Contact ({_status(result.contact_created)}): "
            f"{result.contact.name} [id={result.contact.id}]"
        )
        if auth0_sub:
            print(f"Linked Auth0 subject: {auth0_sub}")
        else:
            print("Set AUTH0_DEMO_SUB to link an Auth0 subject during seeding.")


if __name__ == "__main__":
    main()
