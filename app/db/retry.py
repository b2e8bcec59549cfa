"""Retry wrapper for transient "too many connections" database errors."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MySQL: ER_CON_COUNT_ERROR, ER_USER_LIMIT_REACHED
CONNECTION_LIMIT_CODES = frozenset({1040, 1226})


def _error_code(exc: BaseException) -> int | None:
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", None) or ()
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_connection_limit_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    if _error_code(exc) in CONNECTION_LIMIT_CODES:
        return True
    msg = str(exc).lower()
    return "too many connections" in msg or "max_user_connections" in msg


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "🔁 DB_CONNECTION_LIMIT_RETRY",
        extra={
            "meta": {
                "attempt": state.attempt_number,
                "sleep_s": round(state.next_action.sleep, 3) if state.next_action else None,
                "error": str(exc) if exc else None,
            }
        },
    )


async def retry_on_connection_limit(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 5,
    base_delay: float = 1.0,
    jitter: float = 0.5,
) -> T:
    """Run ``fn`` and retry it while the server refuses new connections.

    Backoff is ``base_delay * 2**n`` plus up to ``jitter`` seconds of noise.
    Any other error propagates on the first failure.
    """
    retry = AsyncRetrying(
        retry=retry_if_exception(is_connection_limit_error),
        wait=wait_exponential(multiplier=base_delay, min=base_delay)
        + wait_random(0, jitter),
        stop=stop_after_attempt(attempts),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retry:
        with attempt:
            return await fn()
    raise AssertionError("unreachable")  # pragma: no cover
