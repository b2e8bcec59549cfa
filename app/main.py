"""ASGI entrypoint: ``uvicorn app.main:app``.

Importing this module does not build the application. The first ASGI call
(or attribute access) does, so tests and tooling can pin the environment
before settings are read.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI

from app.application import build_application, enforce_jwt_strength
from app.logging_config import configure_logging

logger = logging.getLogger(__name__)

_app: FastAPI | None = None


def create_app() -> FastAPI:
    configure_logging()
    enforce_jwt_strength()
    return build_application()


def get_app() -> FastAPI:
    """Return the process-wide application, building it on first use."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


class _DeferredApp:
    """ASGI callable that defers to ``get_app()``."""

    async def __call__(self, scope, receive, send) -> None:
        await get_app()(scope, receive, send)

    def __getattr__(self, name: str) -> Any:
        return getattr(get_app(), name)

    def __repr__(self) -> str:
        return f"<deferred {_app!r}>" if _app is not None else "<deferred app: not built>"


app = _DeferredApp()


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    logger.info("🚀 BuildTrust API listening", extra={"meta": {"host": host, "port": port}})
    uvicorn.run("app.main:app", host=host, port=port)
