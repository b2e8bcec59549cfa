from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Update, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import User
from app.profile.completion import ProfileEvaluation, evaluate_profile, normalize_fields
from app.profile.models import ProfileUpdate

logger = logging.getLogger(__name__)

PROFILE_FIELDS: tuple[str, ...] = (
    "name",
    "bio",
    "phone",
    "location",
    "preferred_contact",
    "company_type",
    "years_experience",
    "project_types",
    "preferred_cities",
    "budget_range",
    "working_style",
    "availability",
    "specializations",
    "languages",
)


class ProfileNotFound(Exception):
    pass


def build_profile_update(user_id: int, changes: dict[str, Any], *, complete: bool) -> Update:
    """UPDATE for the written fields, plus ``setup_completed = TRUE`` when ``complete``.

    The flag is never written as false here.
    """
    stmt = update(User).where(User.id == user_id)
    if changes:
        stmt = stmt.values(**changes)
    if complete:
        stmt = stmt.values(setup_completed=True)
    return stmt


def stored_profile(user: User) -> dict[str, Any]:
    return {name: getattr(user, name) for name in PROFILE_FIELDS}


async def update_profile(
    session: AsyncSession, user_id: int, payload: ProfileUpdate
) -> tuple[User, ProfileEvaluation]:
    """Apply ``payload`` to the user's row and flip ``setup_completed`` when earned.

    Runs inside the caller's transaction: the row is locked, the role is read
    fresh, and a single UPDATE carries both the fields and the flag.
    """
    user = await session.get(User, user_id, with_for_update=True)
    if user is None:
        raise ProfileNotFound(user_id)

    provided = payload.profile_fields()
    if "years_experience" in provided and provided["years_experience"] is None:
        provided["years_experience"] = 0
    changes = normalize_fields(provided)

    evaluation = evaluate_profile(user.role, {**stored_profile(user), **changes})
    mark_complete = evaluation.complete or payload.force_complete

    logger.info(
        "🔍 PROFILE_COMPLETION_CHECK",
        extra={
            "meta": {
                "user_id": user_id,
                "role": user.role,
                "complete": evaluation.complete,
                "missing": list(evaluation.missing),
                "forced": payload.force_complete,
                "fields_written": sorted(changes),
            }
        },
    )

    if changes or (mark_complete and not user.setup_completed):
        await session.execute(
            build_profile_update(user_id, changes, complete=mark_complete)
        )
        if mark_complete and not user.setup_completed:
            logger.info(
                "✏️ SETUP_COMPLETED_SET",
                extra={
                    "meta": {
                        "user_id": user_id,
                        "reason": "complete" if evaluation.complete else "forced",
                    }
                },
            )
    await session.refresh(user)
    return user, evaluation
