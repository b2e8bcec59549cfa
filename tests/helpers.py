"""Helpers shared by the HTTP tests."""

import uuid

from sqlalchemy import select, update

from app.db.core import AsyncSessionLocal
from app.db.models import FormSubmission, User
from app.db.session import session_scope

STRONG_PASSWORD = "Secret!23"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def signup(client, *, role=None, email=None, password=STRONG_PASSWORD, **extra):
    """Create an account and return ``(user, headers)``."""
    body = {"email": email or unique_email(role or "user"), "password": password}
    if role:
        body["role"] = role
    body.update(extra)
    r = client.post("/api/auth/signup", json=body)
    assert r.status_code == 201, r.text
    data = r.json()
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


def make_admin(client, user_id: int) -> None:
    async def _promote():
        async with session_scope(AsyncSessionLocal) as db:
            await db.execute(update(User).where(User.id == user_id).values(role="admin"))

    client.portal.call(_promote)


def load_user(client, user_id: int) -> User:
    async def _load():
        async with session_scope(AsyncSessionLocal) as db:
            return await db.get(User, user_id)

    return client.portal.call(_load)


def audit_rows(client, route_fragment: str) -> list[FormSubmission]:
    """Flush the audit queue, then return rows whose route contains the fragment."""
    client.portal.call(client.app.state.audit_queue.join)

    async def _rows():
        async with session_scope(AsyncSessionLocal) as db:
            result = await db.scalars(
                select(FormSubmission)
                .where(FormSubmission.route.contains(route_fragment))
                .order_by(FormSubmission.id)
            )
            return list(result.all())

    return client.portal.call(_rows)
