"""
Message Service for the mentor core.

Stores conversation messages and assembles the history sent to the
mentor model. Summaries replace archived history; the system prompt and
summary are single per-thread messages kept outside the token budget.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.models import (
    CONTEXT_ROLES,
    Message,
    MessageCreate,
    MessageModel,
    MessageRole,
    ThreadModel,
    utcnow,
)


async def create_message(session: AsyncSession, data: MessageCreate, commit: bool = True) -> Message:
    """
    Append a message to a thread and record it as the thread's latest activity.

    Args:
        session: Database session
        data: Message data (token count already computed)
        commit: Commit immediately; pass False to batch several messages

    Returns:
        Created message
    """
    message_model = MessageModel(
        thread_id=data.thread_id,
        role=data.role.value,
        content=data.content,
        token_count=data.token_count,
        tool_name=data.tool_name,
    )
    session.add(message_model)
    await session.execute(
        update(ThreadModel).where(ThreadModel.id == data.thread_id).values(updated_at=utcnow())
    )

    if commit:
        await session.commit()
    else:
        await session.flush()
    await session.refresh(message_model)

    return Message.model_validate(message_model)


async def get_history(
    session: AsyncSession,
    thread_id: str,
    archived: bool | None = False,
    role: MessageRole | None = None,
) -> list[Message]:
    """
    Get conversation messages (no system prompt or summary) in insertion order.

    Args:
        session: Database session
        thread_id: Thread ID
        archived: Filter on archived flag; None returns both
        role: Only return messages with this role
    """
    query = select(MessageModel).where(
        MessageModel.thread_id == thread_id,
        MessageModel.role.not_in(CONTEXT_ROLES),
    )
    if archived is not None:
        query = query.where(MessageModel.archived == archived)
    if role is not None:
        query = query.where(MessageModel.role == role.value)

    result = await session.execute(query.order_by(MessageModel.id))
    return [Message.model_validate(m) for m in result.scalars().all()]


async def get_first_by_role(
    session: AsyncSession, thread_id: str, role: MessageRole
) -> Message | None:
    """Get the first message of a role in a thread (system prompt, summary)."""
    result = await session.execute(
        select(MessageModel)
        .where(MessageModel.thread_id == thread_id, MessageModel.role == role.value)
        .order_by(MessageModel.id)
        .limit(1)
    )
    message_model = result.scalar_one_or_none()
    return Message.model_validate(message_model) if message_model else None


async def get_token_sum(session: AsyncSession, thread_id: str) -> int:
    """Sum token counts of unarchived conversation messages."""
    result = await session.execute(
        select(func.coalesce(func.sum(MessageModel.token_count), 0)).where(
            MessageModel.thread_id == thread_id,
            MessageModel.archived.is_(False),
            MessageModel.role.not_in(CONTEXT_ROLES),
        )
    )
    return int(result.scalar_one())


async def archive_messages(session: AsyncSession, thread_id: str) -> None:
    """Archive every conversation message of a thread (not committed)."""
    await session.execute(
        update(MessageModel)
        .where(
            MessageModel.thread_id == thread_id,
            MessageModel.role.not_in(CONTEXT_ROLES),
        )
        .values(archived=True)
    )


async def upsert_summary(
    session: AsyncSession, thread_id: str, content: str, token_count: int
) -> Message:
    """
    Archive the conversation and store ``content`` as the thread's single summary.

    Both changes are committed together.
    """
    await archive_messages(session, thread_id)

    result = await session.execute(
        select(MessageModel).where(
            MessageModel.thread_id == thread_id,
            MessageModel.role == MessageRole.SUMMARY.value,
        )
    )
    summary = result.scalar_one_or_none()

    if summary:
        summary.content = content
        summary.token_count = token_count
    else:
        summary = MessageModel(
            thread_id=thread_id,
            role=MessageRole.SUMMARY.value,
            content=content,
            token_count=token_count,
        )
        session.add(summary)

    await session.commit()
    await session.refresh(summary)
    return Message.model_validate(summary)


async def build_prompt(session: AsyncSession, thread_id: str, content: str) -> list[dict[str, str]]:
    """
    Assemble the model input for a new user message.

    Order: system prompt, summary, unarchived history, then the new
    user message. Summaries are sent with the "system" role.

    Returns:
        List of ``{"role", "content"}`` dicts
    """
    history = await get_history(session, thread_id, archived=False)
    system_prompt = await get_first_by_role(session, thread_id, MessageRole.SYSTEM)
    summary = await get_first_by_role(session, thread_id, MessageRole.SUMMARY)

    prompt: list[dict[str, str]] = []
    if system_prompt:
        prompt.append({"role": "system", "content": system_prompt.content})
    if summary:
        prompt.append({"role": "system", "content": summary.content})

    prompt.extend(
        {"role": model_role(m.role), "content": m.content}
        for m in history
        if m.role != MessageRole.TOOL
    )
    prompt.append({"role": MessageRole.USER.value, "content": content})
    return prompt


def model_role(role: MessageRole) -> str:
    """Map a stored role to the role understood by chat models."""
    if role == MessageRole.SUMMARY:
        return MessageRole.SYSTEM.value
    return role.value
