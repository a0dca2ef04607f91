"""Security helpers for Auth0 integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable

import httpx
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings
from ..db import get_session_dependency
from app.backend.src.models import User

LOGGER = structlog.get_logger(__name__)

ALGORITHMS = ["RS256"]
_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class BusinessScope:
    """The caller and the businesses whose invoices they may touch."""

    user_id: int
    business_ids: list[int] = field(default_factory=list)


# -------------------------------------------------------
# JWKS + Token Utilities
# -------------------------------------------------------

@lru_cache()
def _fetch_jwks(domain: str) -> dict[str, Any]:
    """Fetch (and cache) the JWKS for the given Auth0 domain."""
    jwks_url = f"https://{domain}/.well-known/jwks.json"
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(jwks_url)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as exc:
        LOGGER.error("jwks_fetch_failed", domain=domain, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to retrieve JWKS",
        ) from exc


def _get_rsa_key(token: str, domain: str) -> dict[str, str] | None:
    """Return the RSA key that matches the token header."""
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        ) from exc

    if "kid" not in unverified_header:
        return None

    jwks = _fetch_jwks(domain)
    for key in jwks.get("keys", []):
        if key.get("kid") == unverified_header["kid"]:
            return {
                "kty": key.get("kty"),
                "kid": key.get("kid"),
                "use": key.get("use"),
                "n": key.get("n"),
                "e": key.get("e"),
            }
    return None


def _normalize_audience_values(values: Iterable[str]) -> list[str]:
    """Return a list of canonical audience strings with slash variants."""
    normalized: list[str] = []
    for value in values:
        candidate = value.strip()
        if not candidate:
            continue

        trimmed = candidate.rstrip("/")
        for option in (candidate, trimmed, f"{trimmed}/" if trimmed else ""):
            if option and option not in normalized:
                normalized.append(option)
    return normalized


def _collect_audience_values(raw_value: str | None) -> list[str]:
    """Split the configured audience string into individual values."""
    if not raw_value:
        return []
    expanded: list[str] = []
    for candidate in raw_value.replace("\n", " ").split():
        for part in candidate.split(","):
            value = part.strip()
            if value and value not in expanded:
                expanded.append(value)
    return expanded


def _decode_token(token: str, *, domain: str, audiences: list[str]) -> dict[str, Any]:
    """Decode and validate an Auth0 access token."""
    rsa_key = _get_rsa_key(token, domain)
    if not rsa_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unable to validate token",
        )

    try:
        payload = jwt.decode(
            token,
            rsa_key,
            algorithms=ALGORITHMS,
            issuer=f"https://{domain}/",
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc

    audience_claim = payload.get("aud")
    if isinstance(audience_claim, str):
        token_audiences = [audience_claim]
    elif isinstance(audience_claim, (list, tuple, set)):
        token_audiences = [entry for entry in audience_claim if isinstance(entry, str)]
    else:
        token_audiences = []
    if not token_audiences:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing audience",
        )

    if not set(_normalize_audience_values(token_audiences)) & set(
        _normalize_audience_values(audiences)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token audience",
        )
    return payload


# -------------------------------------------------------
# User Resolution
# -------------------------------------------------------

def _resolve_user(session: Session, payload: dict[str, Any]) -> User:
    """Map a verified Auth0 payload to an application user.

    Users are matched by Auth0 subject first, then by email (linking the
    subject on first sight). Unknown users are created without memberships.
    """
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject",
        )

    user = session.execute(select(User).where(User.auth0_sub == subject)).scalar_one_or_none()
    if user:
        return user

    email = payload.get("email") or payload.get("https://smartinvoice/email")
    if not email:
        LOGGER.warning("auth_token_missing_email", subject=subject)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User record not found",
        )

    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user:
        user.auth0_sub = subject
        session.add(user)
        session.commit()
        LOGGER.info("auth_user_linked", user_id=user.id, email=email)
        return user

    display_name = (payload.get("name") or payload.get("nickname") or email).strip()
    user = User(email=email, name=display_name, auth0_sub=subject)
    session.add(user)
    session.commit()
    LOGGER.info("auth_user_created", user_id=user.id, email=email)
    return user


# -------------------------------------------------------
# Current User + Business Scope
# -------------------------------------------------------

def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
    session: Session = Depends(get_session_dependency),
) -> User:
    """Resolve the authenticated user from the Auth0 bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    settings = get_settings()
    configured_audiences = _collect_audience_values(settings.auth0_audience)
    if not settings.auth0_domain or not configured_audiences:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Auth0 configuration is incomplete",
        )

    payload = _decode_token(
        credentials.credentials,
        domain=settings.auth0_domain,
        audiences=configured_audiences,
    )
    user = _resolve_user(session, payload)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    return user


def get_business_scope(user: User = Depends(get_current_user)) -> BusinessScope:
    """Return the caller's business memberships; callers without any are rejected."""
    business_ids = list(user.business_ids)
    if not business_ids:
        LOGGER.warning("auth_user_without_business", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not a member of any business",
        )
    return BusinessScope(user_id=user.id, business_ids=business_ids)


__all__ = [
    "BusinessScope",
    "get_business_scope",
    "get_current_user",
]
