# app/audit/queue.py
"""In-process audit queue drained by a single background consumer.

Producers call :meth:`AuditQueue.enqueue` synchronously; it never blocks and
never raises. The consumer wakes on the first arrival, waits ``drain_delay``
seconds so a burst of requests lands in one pass, then writes events in FIFO
order with ``item_pause`` seconds between writes. A failed write is logged and
the event is discarded; the drain carries on with the next one.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from app.audit.models import AuditEvent

logger = logging.getLogger(__name__)

AuditWriter = Callable[[AuditEvent], Awaitable[None]]


async def _default_writer(event: AuditEvent) -> None:
    from app.audit.store import persist_audit_event

    await persist_audit_event(event)


class AuditQueue:
    def __init__(
        self,
        writer: AuditWriter | None = None,
        *,
        drain_delay: float = 1.0,
        item_pause: float = 0.1,
        maxsize: int = 0,
    ) -> None:
        self.writer: AuditWriter = writer or _default_writer
        self.drain_delay = drain_delay
        self.item_pause = item_pause
        self.maxsize = maxsize
        self._queue: asyncio.Queue[AuditEvent] = asyncio.Queue(maxsize)
        self._task: asyncio.Task | None = None
        self.enqueued = 0
        self.written = 0
        self.failed = 0
        self.dropped = 0

    @classmethod
    def from_settings(cls, cfg=None, writer: AuditWriter | None = None) -> AuditQueue:
        if cfg is None:
            from app.settings import settings as cfg

        return cls(
            writer,
            drain_delay=max(cfg.AUDIT_DRAIN_DELAY_MS, 0) / 1000.0,
            item_pause=max(cfg.AUDIT_ITEM_PAUSE_MS, 0) / 1000.0,
            maxsize=max(cfg.AUDIT_QUEUE_MAXSIZE, 0),
        )

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, event: AuditEvent) -> bool:
        """Queue ``event`` for persistence. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "📝 AUDIT_QUEUE_FULL",
                extra={
                    "meta": {
                        "route": event.route,
                        "method": event.method,
                        "maxsize": self.maxsize,
                        "dropped": self.dropped,
                    }
                },
            )
            return False
        self.enqueued += 1
        return True

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> asyncio.Task:
        """Start the consumer task. Calling it again while running is a no-op."""
        if self._task is not None and not self._task.done():
            return self._task
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._drain_forever(), name="audit-drain")
        logger.info(
            "📝 AUDIT_CONSUMER_STARTED",
            extra={
                "meta": {
                    "drain_delay_s": self.drain_delay,
                    "item_pause_s": self.item_pause,
                    "maxsize": self.maxsize,
                }
            },
        )
        return self._task

    async def _drain_forever(self) -> None:
        while True:
            first = await self._queue.get()
            if self.drain_delay > 0:
                await asyncio.sleep(self.drain_delay)
            await self._persist(first)
            while True:
                try:
                    item = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                await self._persist(item)

    async def _persist(self, event: AuditEvent) -> None:
        try:
            if self.item_pause > 0:
                await asyncio.sleep(self.item_pause)
            await self.writer(event)
            self.written += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.warning(
                "📝 AUDIT_WRITE_FAILED",
                extra={
                    "meta": {
                        "route": event.route,
                        "method": event.method,
                        "status": event.status_code,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                },
            )
        finally:
            self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        """Give the queue ``timeout`` seconds to drain, then stop the consumer.

        Events still queued afterwards are dropped.
        """
        task = self._task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except TimeoutError:
                logger.warning(
                    "📝 AUDIT_DRAIN_TIMEOUT",
                    extra={"meta": {"timeout_s": timeout, "pending": self.pending}},
                )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None

        left = self.pending
        if left:
            self.dropped += left
            logger.warning(
                "📝 AUDIT_EVENTS_DROPPED_ON_SHUTDOWN", extra={"meta": {"count": left}}
            )
        # A fresh queue is not bound to the loop that is shutting down
        self._queue = asyncio.Queue(self.maxsize)
        logger.info("📝 AUDIT_CONSUMER_STOPPED", extra={"meta": self.stats()})

    def stats(self) -> dict[str, int | bool]:
        return {
            "running": self.running,
            "pending": self.pending,
            "enqueued": self.enqueued,
            "written": self.written,
            "failed": self.failed,
            "dropped": self.dropped,
        }


_AUDIT_QUEUE: AuditQueue | None = None


def get_audit_queue() -> AuditQueue:
    """Process-wide audit queue, configured from settings on first use."""
    global _AUDIT_QUEUE
    if _AUDIT_QUEUE is None:
        _AUDIT_QUEUE = AuditQueue.from_settings()
    return _AUDIT_QUEUE


__all__ = ["AuditQueue", "AuditWriter", "get_audit_queue"]
