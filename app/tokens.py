"""Access tokens (JWT) and one-time opaque tokens for email flows."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from app.settings import settings

ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when an access token cannot be decoded or has expired."""


def make_access(
    *,
    user_id: int,
    email: str,
    role: str,
    ttl_s: int | None = None,
    key: str | None = None,
) -> str:
    """Create a signed access token carrying ``userId``, ``email`` and ``role``."""
    now = datetime.now(UTC)
    ttl = settings.jwt_ttl_seconds if ttl_s is None else ttl_s
    claims: dict[str, Any] = {
        "userId": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
        "jti": uuid4().hex,
    }
    return jwt.encode(claims, key or settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_access(token: str, *, key: str | None = None) -> dict[str, Any]:
    """Verify signature and expiry. Raises TokenError on any failure."""
    try:
        claims = jwt.decode(
            token,
            key or settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "userId"]},
        )
    except jwt.PyJWTError as e:
        raise TokenError(str(e)) from e
    if not isinstance(claims.get("userId"), int):
        raise TokenError("userId claim must be an integer")
    return claims


def make_opaque_token(nbytes: int = 32) -> str:
    """Random hex token for verification and password-reset links."""
    return secrets.token_hex(nbytes)


__all__ = ["ALGORITHM", "TokenError", "make_access", "decode_access", "make_opaque_token"]
