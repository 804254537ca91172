"""
Tests for message storage and prompt assembly.
"""

import pytest
import pytest_asyncio

from mentor.models import MessageCreate, MessageRole, ThreadCreate, UserRole
from mentor.services.message_service import (
    build_prompt,
    create_message,
    get_first_by_role,
    get_history,
    get_token_sum,
    model_role,
    upsert_summary,
)
from mentor.services.thread_service import create_thread


@pytest.fixture
def add(async_session):
    async def _add(thread_id, role, content, tokens=0):
        return await create_message(
            async_session,
            MessageCreate(thread_id=thread_id, role=role, content=content, token_count=tokens),
        )

    return _add


@pytest_asyncio.fixture
async def thread(async_session, seed):
    result = await create_thread(
        async_session,
        ThreadCreate(ai_mentor_lesson_id=seed.mentor_lesson_id, user_id=seed.student_id),
        role=UserRole.STUDENT,
    )
    return result["data"]


@pytest.mark.asyncio
async def test_messages_keep_insertion_order(async_session, thread, add):
    for i in range(5):
        await add(thread.id, MessageRole.USER if i % 2 else MessageRole.ASSISTANT, f"m{i}")

    history = await get_history(async_session, thread.id)

    assert [m.content for m in history] == ["m0", "m1", "m2", "m3", "m4"]
    assert [m.id for m in history] == sorted(m.id for m in history)


@pytest.mark.asyncio
async def test_token_sum_skips_context_and_archived(async_session, thread, add):
    await add(thread.id, MessageRole.SYSTEM, "system prompt", tokens=100)
    await add(thread.id, MessageRole.USER, "hello", tokens=5)
    await add(thread.id, MessageRole.ASSISTANT, "hi there", tokens=7)

    assert await get_token_sum(async_session, thread.id) == 12

    await upsert_summary(async_session, thread.id, "they greeted", token_count=2)

    assert await get_token_sum(async_session, thread.id) == 0


@pytest.mark.asyncio
async def test_upsert_summary_keeps_single_summary(async_session, thread, add):
    """A second summarization replaces the first summary."""
    await add(thread.id, MessageRole.USER, "first")
    await upsert_summary(async_session, thread.id, "summary one", token_count=2)
    await add(thread.id, MessageRole.USER, "second")
    await upsert_summary(async_session, thread.id, "summary two", token_count=2)

    summary = await get_first_by_role(async_session, thread.id, MessageRole.SUMMARY)
    assert summary.content == "summary two"

    archived = await get_history(async_session, thread.id, archived=True)
    assert [m.content for m in archived] == ["first", "second"]
    assert await get_history(async_session, thread.id, archived=False) == []


@pytest.mark.asyncio
async def test_build_prompt_order(async_session, thread, add):
    """System prompt, summary, live history, then the new message."""
    await add(thread.id, MessageRole.SYSTEM, "You are Sprout")
    await add(thread.id, MessageRole.USER, "old question")
    await upsert_summary(async_session, thread.id, "We covered chlorophyll", token_count=3)
    await add(thread.id, MessageRole.ASSISTANT, "Where were we?")
    await add(thread.id, MessageRole.TOOL, '{"score": 1}')
    await add(thread.id, MessageRole.USER, "glucose")

    prompt = await build_prompt(async_session, thread.id, "what next?")

    assert prompt == [
        {"role": "system", "content": "You are Sprout"},
        {"role": "system", "content": "We covered chlorophyll"},
        {"role": "assistant", "content": "Where were we?"},
        {"role": "user", "content": "glucose"},
        {"role": "user", "content": "what next?"},
    ]


@pytest.mark.asyncio
async def test_build_prompt_without_context(async_session, thread):
    prompt = await build_prompt(async_session, thread.id, "hello")

    assert prompt == [{"role": "user", "content": "hello"}]


def test_summary_is_sent_as_system():
    assert model_role(MessageRole.SUMMARY) == "system"
    assert model_role(MessageRole.USER) == "user"
    assert model_role(MessageRole.ASSISTANT) == "assistant"
