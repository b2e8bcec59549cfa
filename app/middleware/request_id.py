import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.logging_config import req_id_var

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the logging context and echo it back."""

    async def dispatch(self, request: Request, call_next):
        # Let CORS handle preflight
        if request.method == "OPTIONS":
            return await call_next(request)

        # Prefer client-provided ID to enable end-to-end correlation
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.req_id = req_id
        token = req_id_var.set(req_id)
        response: Response | None = None
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            if response is not None:
                response.headers.setdefault("X-Request-ID", req_id)
            logger.debug(
                "http.request",
                extra={
                    "meta": {
                        "method": request.method,
                        "path": request.url.path,
                        "status": response.status_code if response else 500,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    }
                },
            )
            req_id_var.reset(token)
        return response
