from __future__ import annotations

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.db.core import health_check_async
from app.settings import settings

router = APIRouter(prefix="/api", tags=["Health"])  # unauthenticated; never audited

_STARTED_AT = time.time()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/health")
async def health() -> JSONResponse:
    """Liveness probe. Never touches the database."""
    return _no_store(
        JSONResponse({"status": "ok", "message": "BuildTrust API is running"})
    )


@router.get("/status")
async def status(request: Request) -> JSONResponse:
    """Readiness: database reachability plus audit pipeline counters."""
    db_ok = await health_check_async()
    body = {
        "status": "ok" if db_ok else "degraded",
        "env": settings.ENV,
        "uptime_s": round(time.time() - _STARTED_AT, 1),
        "database": "up" if db_ok else "down",
        "audit": {"enabled": settings.AUDIT_ENABLED, **request.app.state.audit_queue.stats()},
    }
    return _no_store(JSONResponse(body, status_code=200 if db_ok else 503))
