"""Middleware registration in a fixed order.

``add_middleware`` prepends, so the stack reads bottom-up here:
the audit recorder sits closest to the routes, request ids wrap it, and CORS
is outermost so preflights never reach the rest.
"""

import inspect
import logging

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from app.audit.policy import AuditPolicy
from app.audit.queue import AuditQueue, get_audit_queue
from app.settings import Settings, settings as default_settings

from .audit_mw import AuditMiddleware
from .request_id import RequestIDMiddleware

logger = logging.getLogger(__name__)


def add_mw(app: FastAPI, mw_cls, *, name: str, **options) -> None:
    """``app.add_middleware`` that refuses anything but a BaseHTTPMiddleware class.

    Raises:
        RuntimeError: at composition time, so a bad import never reaches traffic
    """
    if not (inspect.isclass(mw_cls) and issubclass(mw_cls, BaseHTTPMiddleware)):
        raise RuntimeError(
            f"Middleware {name!r} is not a BaseHTTPMiddleware subclass: {mw_cls!r}"
        )
    app.add_middleware(mw_cls, **options)
    logger.debug("➕ middleware %s registered", name)


def register_canonical_middlewares(
    app: FastAPI,
    *,
    cfg: Settings | None = None,
    audit_queue: AuditQueue | None = None,
    audit_policy: AuditPolicy | None = None,
) -> None:
    """Install Audit, RequestID and CORS. Request flow: CORS → RequestID → Audit."""
    cfg = cfg or default_settings

    if cfg.AUDIT_ENABLED:
        policy = audit_policy or AuditPolicy.from_settings(cfg)
        add_mw(
            app,
            AuditMiddleware,
            name="audit",
            queue=audit_queue or get_audit_queue(),
            policy=policy,
        )
        logger.info("📝 AUDIT_MIDDLEWARE_ENABLED", extra={"meta": policy.describe()})
    else:
        logger.info("📝 AUDIT_MIDDLEWARE_DISABLED")

    add_mw(app, RequestIDMiddleware, name="request_id")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
