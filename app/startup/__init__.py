from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.audit.queue import AuditQueue, get_audit_queue
from app.db.core import dispose_engines
from app.db.migrate import run_all_migrations

logger = logging.getLogger(__name__)

AUDIT_SHUTDOWN_TIMEOUT_S = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan manager used by the app instance.

    Startup: create the schema, then start the audit consumer.
    Shutdown: give the audit queue a bounded chance to drain, then close the
    database engine.
    """
    started = time.perf_counter()

    # 1) DB schema before anything can write
    await run_all_migrations()

    # 2) Single audit consumer for this process
    queue: AuditQueue = getattr(app.state, "audit_queue", None) or get_audit_queue()
    queue.start()

    logger.info(
        "🚀 Startup complete",
        extra={"meta": {"duration_ms": round((time.perf_counter() - started) * 1000, 1)}},
    )
    try:
        yield
    finally:
        logger.info("🛑 Shutting down")
        try:
            await queue.stop(timeout=AUDIT_SHUTDOWN_TIMEOUT_S)
        except Exception:
            logger.warning("audit queue stop failed", exc_info=True)
        await dispose_engines()
        logger.info("👋 Shutdown complete")


__all__ = ["lifespan"]
