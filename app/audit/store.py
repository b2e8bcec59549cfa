# app/audit/store.py
from sqlalchemy import func, select

from app.audit.models import AuditEvent
from app.db.core import AsyncSessionLocal
from app.db.models import FormSubmission
from app.db.session import session_scope


def to_row(event: AuditEvent) -> FormSubmission:
    return FormSubmission(
        user_id=event.user_id,
        route=event.route[:255],
        method=event.method,
        status=event.status_code,
        request_body=event.request_body,
        request_query=event.request_query,
        response_body=event.response_body,
        user_agent=event.user_agent[:500] if event.user_agent else None,
        ip_address=event.ip_address,
        email=event.email,
    )


async def persist_audit_event(event: AuditEvent) -> None:
    """Insert one form_submissions row in its own transaction."""
    async with session_scope(AsyncSessionLocal) as session:
        session.add(to_row(event))


async def count_submissions() -> int:
    async with session_scope(AsyncSessionLocal) as session:
        return (await session.scalar(select(func.count(FormSubmission.id)))) or 0
