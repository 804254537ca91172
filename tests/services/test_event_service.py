"""
Tests for outbound events.
"""

import pytest

from mentor.models import EventType
from mentor.services.event_service import (
    EventDispatcher,
    create_default_dispatcher,
    get_events,
    record_event,
)


async def _record(session, entity_id, event_type=EventType.THREAD_CREATED):
    await record_event(session, "thread", entity_id, event_type, actor="usr-1", payload={"n": entity_id})
    await session.commit()


@pytest.mark.asyncio
async def test_record_event_joins_caller_transaction(async_session):
    await record_event(async_session, "thread", "thr-1", EventType.THREAD_CREATED, actor="usr-1")
    await async_session.rollback()

    assert await get_events(async_session, "thread", "thr-1") == []


@pytest.mark.asyncio
async def test_dispatch_in_id_order(async_session):
    for entity_id in ["thr-1", "thr-2", "thr-3"]:
        await _record(async_session, entity_id)

    seen = []

    async def handler(event):
        seen.append(event.entity_id)

    dispatcher = EventDispatcher()
    dispatcher.register(EventType.THREAD_CREATED, handler)

    assert await dispatcher.dispatch_pending(async_session) == 3
    assert seen == ["thr-1", "thr-2", "thr-3"]

    # Nothing left to deliver
    assert await dispatcher.dispatch_pending(async_session) == 0
    assert seen == ["thr-1", "thr-2", "thr-3"]


@pytest.mark.asyncio
async def test_failed_handler_leaves_event_pending(async_session):
    await _record(async_session, "thr-1")
    await _record(async_session, "thr-2")

    calls = []

    async def flaky(event):
        calls.append(event.entity_id)
        if event.entity_id == "thr-1" and calls.count("thr-1") == 1:
            raise RuntimeError("webhook down")

    dispatcher = EventDispatcher()
    dispatcher.register(EventType.THREAD_CREATED, flaky)

    assert await dispatcher.dispatch_pending(async_session) == 1
    [first] = await get_events(async_session, "thread", "thr-1")
    [second] = await get_events(async_session, "thread", "thr-2")
    assert first.dispatched_at is None
    assert second.dispatched_at is not None

    # Retried on the next run
    assert await dispatcher.dispatch_pending(async_session) == 1
    assert calls == ["thr-1", "thr-2", "thr-1"]


@pytest.mark.asyncio
async def test_every_handler_must_succeed(async_session):
    await _record(async_session, "thr-1")
    delivered = []

    async def ok(event):
        delivered.append(event.id)

    async def broken(event):
        raise RuntimeError("boom")

    dispatcher = EventDispatcher()
    dispatcher.register(EventType.THREAD_CREATED, ok)
    dispatcher.register(EventType.THREAD_CREATED, broken)

    assert await dispatcher.dispatch_pending(async_session) == 0
    [event] = await get_events(async_session, "thread", "thr-1")
    assert event.dispatched_at is None


@pytest.mark.asyncio
async def test_default_dispatcher_logs_activity(async_session, caplog):
    await _record(async_session, "thr-9", EventType.THREAD_ABANDONED)

    with caplog.at_level("INFO", logger="mentor.services.event_service"):
        assert await create_default_dispatcher().dispatch_pending(async_session) == 1

    assert "thread thr-9 thread.abandoned by usr-1" in caplog.text


def test_default_dispatcher_covers_every_event_type():
    dispatcher = create_default_dispatcher()

    for event_type in EventType:
        assert dispatcher.handlers_for(event_type)
