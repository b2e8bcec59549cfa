"""Session and one-time token bookkeeping shared by the auth routes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    EmailVerificationToken,
    PasswordResetToken,
    Session,
    User,
)
from app.settings import settings
from app.tokens import make_access, make_opaque_token

OneTimeToken = type[EmailVerificationToken] | type[PasswordResetToken]


def utcnow() -> datetime:
    return datetime.now(UTC)


async def issue_session(db: AsyncSession, user: User) -> str:
    """Sign an access token for ``user`` and record it in ``sessions``."""
    token = make_access(user_id=user.id, email=user.email, role=user.role)
    db.add(
        Session(
            user_id=user.id,
            token=token,
            expires_at=utcnow() + timedelta(days=settings.SESSION_TTL_DAYS),
        )
    )
    await db.flush()
    return token


async def revoke_session(db: AsyncSession, token: str) -> int:
    result = await db.execute(delete(Session).where(Session.token == token))
    return result.rowcount or 0


async def create_one_time_token(
    db: AsyncSession, model: OneTimeToken, user_id: int, *, ttl: timedelta
) -> str:
    """Replace the user's unused tokens of this kind with a fresh one."""
    await db.execute(
        delete(model).where(model.user_id == user_id, model.used.is_(False))
    )
    token = make_opaque_token()
    db.add(model(user_id=user_id, token=token, expires_at=utcnow() + ttl))
    await db.flush()
    return token


async def consume_one_time_token(db: AsyncSession, model: OneTimeToken, token: str):
    """Mark a live token used and return its row, or None if invalid/expired."""
    row = await db.scalar(
        select(model)
        .where(
            model.token == token,
            model.used.is_(False),
            model.expires_at > utcnow(),
        )
        .with_for_update()
    )
    if row is None:
        return None
    row.used = True
    await db.flush()
    return row


async def find_user_by_email(db: AsyncSession, email: str) -> User | None:
    return await db.scalar(select(User).where(User.email == email))


def public_user(user: User) -> dict:
    data = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "email_verified": bool(user.email_verified),
        "setup_completed": bool(user.setup_completed),
    }
    if user.created_at is not None:
        data["created_at"] = user.created_at.isoformat()
    return data
