from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.core import get_async_db
from app.db.models import Session, User
from app.http_errors import forbidden, unauthorized
from app.tokens import TokenError, decode_access

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def bearer_token(request: Request) -> str | None:
    """Token from ``Authorization: Bearer <jwt>``, or None."""
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


async def get_current_user(
    request: Request, db: AsyncSession = Depends(get_async_db)
) -> CurrentUser:
    """Authenticate the request against the JWT and the sessions table.

    The resolved identity is also stored on ``request.state.user`` so the
    audit middleware can attribute the exchange.
    """
    token = bearer_token(request)
    if not token:
        raise unauthorized("Access token required")

    try:
        claims = decode_access(token)
    except TokenError as e:
        logger.info("auth.invalid_token", extra={"meta": {"reason": str(e)}})
        raise forbidden("Invalid token")

    now = datetime.now(UTC)
    stmt = (
        select(User.id, User.email, User.role)
        .join(Session, Session.user_id == User.id)
        .where(
            Session.token == token,
            Session.user_id == claims["userId"],
            Session.expires_at > now,
        )
        .limit(1)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        raise unauthorized("Invalid or expired session")

    user = CurrentUser(user_id=row.id, email=row.email, role=row.role)
    request.state.user = user
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise forbidden("Unauthorized")
    return user


__all__ = ["CurrentUser", "bearer_token", "get_current_user", "require_admin"]
