from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi import HTTPException
from fastapi.responses import JSONResponse


def error_body(message: str, details: Any | None = None) -> dict[str, Any]:
    """Build the ``{"error": message[, "details": ...]}`` envelope."""
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def error_response(
    message: str,
    *,
    status: int,
    details: Any | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Return a JSONResponse carrying the standard error envelope."""
    return JSONResponse(
        error_body(message, details),
        status_code=status,
        headers=dict(headers) if headers else None,
    )


def bad_request(message: str = "Bad request") -> HTTPException:
    return HTTPException(status_code=400, detail=message)


def unauthorized(
    message: str = "Unauthorized", *, headers: Mapping[str, str] | None = None
) -> HTTPException:
    """401 with a Bearer challenge unless ``headers`` overrides it."""
    hdrs = {"WWW-Authenticate": "Bearer"}
    if headers:
        hdrs.update(dict(headers))
    return HTTPException(status_code=401, detail=message, headers=hdrs)


def forbidden(message: str = "Forbidden") -> HTTPException:
    return HTTPException(status_code=403, detail=message)


def not_found(message: str = "Not found") -> HTTPException:
    return HTTPException(status_code=404, detail=message)


def server_error(message: str = "Internal server error") -> HTTPException:
    return HTTPException(status_code=500, detail=message)


def validation_details(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``[{field, message, type}]``."""
    out = []
    for err in errors:
        loc = list(err.get("loc") or ())
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        out.append(
            {
                "field": ".".join(str(p) for p in loc),
                "message": str(err.get("msg", "")),
                "type": str(err.get("type", "")),
            }
        )
    return out


__all__ = [
    "error_body",
    "error_response",
    "bad_request",
    "unauthorized",
    "forbidden",
    "not_found",
    "server_error",
    "validation_details",
]
