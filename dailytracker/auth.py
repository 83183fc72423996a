"""Bearer-token authentication against the hosted auth service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Header, HTTPException

from .config import (
    AUTH_SERVICE_KEY,
    AUTH_SERVICE_URL,
    AUTH_TIMEOUT_SECONDS,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail="Unauthorized")


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def fetch_user(token: str) -> Optional[AuthenticatedUser]:
    """Ask the auth service who owns ``token``; None when it is rejected."""

    if not AUTH_SERVICE_URL or not AUTH_SERVICE_KEY:
        raise ConfigurationError(
            "Auth service not configured; set AUTH_SERVICE_URL and AUTH_SERVICE_KEY"
        )

    headers = {"Authorization": f"Bearer {token}", "apikey": AUTH_SERVICE_KEY}
    try:
        async with httpx.AsyncClient(timeout=AUTH_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{AUTH_SERVICE_URL}/auth/v1/user", headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Auth service request failed: %s", exc)
        return None

    if response.status_code != 200:
        return None

    payload = response.json()
    user_id = payload.get("id") if isinstance(payload, dict) else None
    if not user_id:
        return None
    return AuthenticatedUser(id=str(user_id), email=payload.get("email"))


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
) -> AuthenticatedUser:
    token = bearer_token(authorization)
    if token is None:
        raise _unauthorized()

    user = await fetch_user(token)
    if user is None:
        raise _unauthorized()
    return user
