from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.http_errors import error_response, validation_details

log = logging.getLogger(__name__)


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    status = getattr(exc, "status_code", 500)
    headers = dict(getattr(exc, "headers", None) or {})
    detail = getattr(exc, "detail", None)

    # Already-shaped payloads pass through
    if isinstance(detail, dict) and "error" in detail:
        return error_response(
            str(detail["error"]),
            status=status,
            details=detail.get("details"),
            headers=headers,
        )

    message = detail if isinstance(detail, str) and detail else "Request failed"
    if status >= 500:
        headers.setdefault("Retry-After", "1")
    return error_response(message, status=status, headers=headers)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = validation_details(exc.errors())
    log.info(
        "request.validation_failed",
        extra={
            "meta": {
                "path": request.url.path,
                "method": request.method,
                "fields": [d["field"] for d in details],
            }
        },
    )
    return error_response("Validation error", status=400, details=details)


async def handle_unexpected_error(request: Request, exc: Exception):
    log.exception(
        "unhandled.exception",
        extra={"meta": {"path": request.url.path, "method": request.method}},
    )
    return error_response("Internal server error", status=500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    # Model validation run directly inside handlers
    app.add_exception_handler(PydanticValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
