"""Best-effort audit trail of HTTP exchanges (the ``form_submissions`` table)."""

from app.audit.models import AuditEvent
from app.audit.policy import AuditPolicy
from app.audit.queue import AuditQueue, get_audit_queue

__all__ = ["AuditEvent", "AuditPolicy", "AuditQueue", "get_audit_queue"]
