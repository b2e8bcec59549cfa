from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.core import get_async_db
from app.db.models import User
from app.deps.user import CurrentUser, require_admin

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/users")
async def list_users(
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    rows = (
        await db.execute(
            select(User.id, User.email, User.name, User.role, User.created_at).order_by(
                User.id
            )
        )
    ).all()
    return [
        {
            "id": r.id,
            "email": r.email,
            "name": r.name,
            "role": r.role,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in rows
    ]
