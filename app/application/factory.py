from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles

from app.audit.policy import AuditPolicy
from app.audit.queue import AuditQueue, get_audit_queue
from app.settings import Settings, settings as default_settings
from app.startup import lifespan

logger = logging.getLogger(__name__)

APP_TITLE = "BuildTrust API"
APP_VERSION = "1.0.0"

TAGS_METADATA = [
    {"name": "Auth", "description": "Signup, login, sessions and profile updates."},
    {"name": "Documents", "description": "User verification documents."},
    {"name": "Projects", "description": "Client project postings and media."},
    {"name": "Users", "description": "Admin user listing."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]


def build_application(
    cfg: Settings | None = None,
    *,
    audit_queue: AuditQueue | None = None,
    audit_policy: AuditPolicy | None = None,
) -> FastAPI:
    """Assemble the FastAPI application with routers, middleware and handlers."""
    cfg = cfg or default_settings
    logger.info("🔧 APP_COMPOSE_START", extra={"meta": {"env": cfg.ENV}})

    app = FastAPI(
        title=APP_TITLE,
        version=APP_VERSION,
        lifespan=lifespan,
        openapi_tags=TAGS_METADATA,
    )
    app.state.settings = cfg
    app.state.audit_queue = audit_queue or get_audit_queue()

    _register_routers(app)
    _configure_middlewares(app, cfg, audit_policy)
    _mount_static_assets(app, cfg)
    _register_error_handlers(app)

    logger.info("🎉 APP_COMPOSE_DONE", extra={"meta": {"routes": len(app.routes)}})
    return app


def _register_routers(app: FastAPI) -> None:
    from app.api import auth, documents, health, projects, users

    routers = [m.router for m in (health, auth, documents, projects, users)]
    _check_route_collisions(routers)
    for router in routers:
        app.include_router(router)


def _configure_middlewares(
    app: FastAPI, cfg: Settings, audit_policy: AuditPolicy | None
) -> None:
    from app.middleware.loader import register_canonical_middlewares

    register_canonical_middlewares(
        app, cfg=cfg, audit_queue=app.state.audit_queue, audit_policy=audit_policy
    )


def _mount_static_assets(app: FastAPI, cfg: Settings) -> None:
    uploads_dir = Path(cfg.UPLOADS_DIR)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        "/uploads",
        StaticFiles(directory=str(uploads_dir), html=False, follow_symlink=False),
        name="uploads",
    )


def _check_route_collisions(routers: Iterable[APIRouter]) -> None:
    """Fail composition when two handlers claim the same method and path.

    Walks the routers before they are included; included routers are not
    flattened into ``APIRoute`` entries on ``app.routes``.
    """
    owners: dict[tuple[str, str], list[str]] = defaultdict(list)
    for route in (r for router in routers for r in router.routes):
        if not isinstance(route, APIRoute):
            continue
        handler = f"{route.endpoint.__module__}.{route.endpoint.__qualname__}"
        for method in route.methods - {"HEAD"}:
            owners[(method, route.path)].append(handler)

    clashes = sorted(
        f"{method} {path}: {', '.join(handlers)}"
        for (method, path), handlers in owners.items()
        if len(handlers) > 1
    )
    if clashes:
        raise RuntimeError("Duplicate routes registered:\n" + "\n".join(clashes))


def _register_error_handlers(app: FastAPI) -> None:
    from app.error_handlers import register_error_handlers

    register_error_handlers(app)
