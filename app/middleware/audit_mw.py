# app/middleware/audit_mw.py
import json
import logging

from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.audit.models import AuditEvent
from app.audit.policy import AuditPolicy
from app.audit.queue import AuditQueue, get_audit_queue

logger = logging.getLogger(__name__)


def _is_json(content_type: str | None) -> bool:
    return "json" in (content_type or "").lower()


def _is_textual(content_type: str | None) -> bool:
    ct = (content_type or "").lower()
    return "json" in ct or ct.startswith("text/")


class AuditMiddleware(BaseHTTPMiddleware):
    """Record every finished exchange as an audit event.

    The response is streamed through untouched; a copy of at most
    ``truncate_length`` characters is kept on the side. The event is queued
    from a background callback that runs once the response has been sent.
    """

    def __init__(
        self,
        app,
        queue: AuditQueue | None = None,
        policy: AuditPolicy | None = None,
    ):
        super().__init__(app)
        self._queue = queue
        self._policy = policy

    @property
    def queue(self) -> AuditQueue:
        return self._queue or get_audit_queue()

    @property
    def policy(self) -> AuditPolicy:
        if self._policy is None:
            self._policy = AuditPolicy.from_settings()
        return self._policy

    async def dispatch(self, request: Request, call_next):
        policy = self.policy
        route = request.url.path
        if request.url.query:
            route = f"{route}?{request.url.query}"
        method = request.method.upper()

        if not policy.should_record(route, method):
            return await call_next(request)

        body = None
        if policy.wants_request_body(method) and _is_json(
            request.headers.get("content-type")
        ):
            raw = await request.body()
            if raw:
                try:
                    body = json.loads(raw)
                except ValueError:
                    body = None

        try:
            response: Response = await call_next(request)
        except Exception:
            # Unhandled error below us: still leave a trace, then propagate
            await self._record(request, route, method, body, 500, None)
            raise

        capture = policy.capture_response_body and _is_textual(
            response.headers.get("content-type")
        )
        cap = policy.truncate_length * 4 + 4
        captured = bytearray()
        overflow = False
        upstream = response.body_iterator

        async def tee():
            nonlocal overflow
            async for chunk in upstream:
                if capture and not overflow:
                    data = chunk.encode("utf-8") if isinstance(chunk, str) else chunk
                    room = cap - len(captured)
                    captured.extend(data[:room])
                    if len(data) > room:
                        overflow = True
                yield chunk

        response.body_iterator = tee()

        prior = response.background
        status_code = response.status_code

        async def after_send():
            if prior is not None:
                await prior()
            text = None
            if capture and captured:
                text = bytes(captured).decode("utf-8", errors="ignore")
                if overflow and len(text) <= policy.truncate_length:
                    text = text + policy.truncate_suffix
                else:
                    text = policy.truncate(text)
            await self._record(request, route, method, body, status_code, text)

        response.background = BackgroundTask(after_send)
        return response

    async def _record(
        self,
        request: Request,
        route: str,
        method: str,
        body,
        status_code: int,
        response_text: str | None,
    ) -> None:
        try:
            policy = self.policy
            if not policy.should_record(route, method, status_code):
                return

            user = getattr(request.state, "user", None)
            email = getattr(user, "email", None)
            if not email and isinstance(body, dict):
                candidate = body.get("email")
                email = candidate if isinstance(candidate, str) and candidate else None

            event = AuditEvent(
                user_id=getattr(user, "user_id", None),
                route=route,
                method=method,
                status_code=status_code,
                request_body=(
                    policy.serialize_request_body(body)
                    if policy.wants_request_body(method)
                    else None
                ),
                request_query=policy.serialize_query(request.query_params.multi_items()),
                response_body=response_text if policy.capture_response_body else None,
                user_agent=request.headers.get("user-agent"),
                ip_address=request.client.host if request.client else None,
                email=email,
            )
            self.queue.enqueue(event)
        except Exception:
            # never fail the request due to audit issues
            logger.warning(
                "📝 AUDIT_CAPTURE_FAILED",
                exc_info=True,
                extra={"meta": {"route": route, "method": method}},
            )
