import asyncio
from types import SimpleNamespace

import pytest

from app.audit.models import AuditEvent
from app.audit.queue import AuditQueue


def _event(route: str, status: int = 200) -> AuditEvent:
    return AuditEvent(route=route, method="POST", status_code=status)


class RecordingWriter:
    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()
        self.seen: list[str] = []

    async def __call__(self, event: AuditEvent) -> None:
        self.seen.append(event.route)
        if event.route in self.fail_on:
            raise RuntimeError(f"boom on {event.route}")


async def test_events_are_written_in_fifo_order():
    writer = RecordingWriter()
    queue = AuditQueue(writer, drain_delay=0, item_pause=0)
    queue.start()
    for i in range(5):
        assert queue.enqueue(_event(f"/r{i}")) is True
    await asyncio.wait_for(queue.join(), 2)
    await queue.stop()

    assert writer.seen == [f"/r{i}" for i in range(5)]
    assert queue.written == 5
    assert queue.failed == 0


async def test_failed_write_does_not_block_later_events(caplog):
    writer = RecordingWriter(fail_on={"/bad"})
    queue = AuditQueue(writer, drain_delay=0, item_pause=0)
    queue.start()
    for route in ("/a", "/bad", "/c"):
        queue.enqueue(_event(route))
    await asyncio.wait_for(queue.join(), 2)
    await queue.stop()

    assert writer.seen == ["/a", "/bad", "/c"]
    assert queue.written == 2
    assert queue.failed == 1
    assert "AUDIT_WRITE_FAILED" in caplog.text


async def test_failed_write_is_not_retried():
    writer = RecordingWriter(fail_on={"/bad"})
    queue = AuditQueue(writer, drain_delay=0, item_pause=0)
    queue.start()
    queue.enqueue(_event("/bad"))
    await asyncio.wait_for(queue.join(), 2)
    await asyncio.sleep(0.01)
    await queue.stop()
    assert writer.seen == ["/bad"]


async def test_enqueue_before_start_is_drained_once_started():
    writer = RecordingWriter()
    queue = AuditQueue(writer, drain_delay=0, item_pause=0)
    queue.enqueue(_event("/early"))
    assert queue.pending == 1
    queue.start()
    await asyncio.wait_for(queue.join(), 2)
    await queue.stop()
    assert writer.seen == ["/early"]


async def test_drain_delay_batches_a_burst():
    writer = RecordingWriter()
    queue = AuditQueue(writer, drain_delay=0.05, item_pause=0)
    queue.start()
    queue.enqueue(_event("/1"))
    await asyncio.sleep(0)
    queue.enqueue(_event("/2"))
    # Nothing is written while the consumer waits out the delay
    assert writer.seen == []
    await asyncio.wait_for(queue.join(), 2)
    await queue.stop()
    assert writer.seen == ["/1", "/2"]


async def test_start_is_idempotent():
    queue = AuditQueue(RecordingWriter(), drain_delay=0, item_pause=0)
    first = queue.start()
    assert queue.start() is first
    assert queue.running
    await queue.stop()
    assert not queue.running


async def test_full_queue_drops_without_raising():
    queue = AuditQueue(RecordingWriter(), drain_delay=0, item_pause=0, maxsize=1)
    assert queue.enqueue(_event("/1")) is True
    assert queue.enqueue(_event("/2")) is False
    assert queue.dropped == 1
    assert queue.enqueued == 1


async def test_stop_drains_pending_events():
    writer = RecordingWriter()
    queue = AuditQueue(writer, drain_delay=0, item_pause=0.01)
    queue.start()
    for i in range(3):
        queue.enqueue(_event(f"/s{i}"))
    await queue.stop(timeout=2)
    assert writer.seen == ["/s0", "/s1", "/s2"]
    assert queue.dropped == 0


async def test_stop_timeout_drops_leftovers():
    release = asyncio.Event()

    async def stuck_writer(event):
        await release.wait()

    queue = AuditQueue(stuck_writer, drain_delay=0, item_pause=0)
    queue.start()
    for i in range(3):
        queue.enqueue(_event(f"/t{i}"))
    await queue.stop(timeout=0.05)

    # One event was in flight when the consumer was cancelled
    assert queue.dropped == 2
    assert queue.pending == 0
    assert not queue.running


async def test_queue_can_restart_after_stop():
    writer = RecordingWriter()
    queue = AuditQueue(writer, drain_delay=0, item_pause=0)
    queue.start()
    await queue.stop()
    queue.start()
    queue.enqueue(_event("/again"))
    await asyncio.wait_for(queue.join(), 2)
    await queue.stop()
    assert writer.seen == ["/again"]


def test_from_settings():
    cfg = SimpleNamespace(
        AUDIT_DRAIN_DELAY_MS=1000, AUDIT_ITEM_PAUSE_MS=100, AUDIT_QUEUE_MAXSIZE=50
    )
    queue = AuditQueue.from_settings(cfg)
    assert queue.drain_delay == pytest.approx(1.0)
    assert queue.item_pause == pytest.approx(0.1)
    assert queue.maxsize == 50


def test_stats_shape():
    stats = AuditQueue(RecordingWriter()).stats()
    assert stats == {
        "running": False,
        "pending": 0,
        "enqueued": 0,
        "written": 0,
        "failed": 0,
        "dropped": 0,
    }
