"""Process-wide logging setup.

Every record carries the id of the request it was emitted under. Structured
context goes in ``extra={"meta": {...}}`` and is emitted as a nested object by
the JSON formatter.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime

SERVICE_NAME = "buildtrust-api"

# Set by RequestIDMiddleware for the lifetime of one request
req_id_var: ContextVar[str] = ContextVar("req_id", default="-")

_PROBE_PATHS = ("/api/health", "/api/status")
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "asyncio")
_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(req_id)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "service": SERVICE_NAME,
            "req_id": getattr(record, "req_id", None) or req_id_var.get(),
            "msg": record.getMessage(),
        }
        env = os.getenv("ENV")
        if env:
            entry["env"] = env
        meta = getattr(record, "meta", None)
        if meta is not None:
            entry["meta"] = meta
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        try:
            return json.dumps(entry, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            entry.pop("meta", None)
            return json.dumps(entry, ensure_ascii=False, default=str)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = req_id_var.get()
        return True


class HealthCheckFilter(logging.Filter):
    """Drop access-log lines for liveness and readiness probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        path = getattr(record, "path", None)
        if path is None and record.args:
            # uvicorn.access passes the path as a positional arg
            path = " ".join(str(a) for a in record.args)
        return not (path and any(p in path for p in _PROBE_PATHS))


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging() -> None:
    """Install the root handler. Safe to call more than once.

    ``LOG_LEVEL`` sets the threshold (default INFO); ``LOG_TO_STDOUT`` swaps
    JSON on stderr for human-readable lines on stdout.
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    text_mode = _flag("LOG_TO_STDOUT")

    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    if text_mode:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"meta": {"level": level_name, "format": "text" if text_mode else "json"}},
    )
