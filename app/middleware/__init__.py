# app/middleware/__init__.py
"""
Application middleware: request ids and the audit trail.
"""

from .audit_mw import AuditMiddleware
from .loader import add_mw, register_canonical_middlewares
from .request_id import RequestIDMiddleware

__all__ = [
    "AuditMiddleware",
    "RequestIDMiddleware",
    "add_mw",
    "register_canonical_middlewares",
]
