"""
Thread Management Service for the mentor core.

Creates AI-mentor conversation threads and enforces ownership and
lifecycle rules on them.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from mentor.models import (
    AiMentorLessonModel,
    CourseModel,
    EnrollmentModel,
    LessonModel,
    Message,
    MessageModel,
    MessageRole,
    MentorLessonContext,
    MentorType,
    Thread,
    ThreadCreate,
    ThreadModel,
    ThreadStatus,
    UserRole,
    utcnow,
)
from mentor.models.event import EventType
from mentor.services.event_service import record_event
from mentor.utils.ids import PREFIX_THREAD, generate_entity_id

logger = logging.getLogger(__name__)

# Roles a user can see in their own thread history
VISIBLE_ROLES = (MessageRole.USER.value, MessageRole.ASSISTANT.value, MessageRole.TOOL.value)

_STATUS_EVENTS = {
    ThreadStatus.COMPLETED: EventType.THREAD_COMPLETED,
    ThreadStatus.ABANDONED: EventType.THREAD_ABANDONED,
}


class LessonNotFoundError(NotFoundError):
    """Raised when the requested lesson has no mentor configuration."""

    pass


class LessonAccessDeniedError(ForbiddenError):
    """Raised when the lesson access check rejects thread creation."""

    pass


class ThreadNotFoundError(NotFoundError):
    """Raised when a thread cannot be found."""

    pass


class ThreadAccessDeniedError(ForbiddenError):
    """Raised when a user acts on a thread they do not own."""

    pass


class ThreadNotActiveError(InvalidInputError):
    """Raised when an operation requires an active thread."""

    pass


# ============================================================================
# Lesson access checks
# ============================================================================

# (session, user_id, role, lesson_id) -> allowed
LessonAccessCheck = Callable[[AsyncSession, str, UserRole, str], Awaitable[bool]]


async def allow_all(session: AsyncSession, user_id: str, role: UserRole, lesson_id: str) -> bool:
    """Access check that admits every caller."""
    return True


async def require_enrollment(
    session: AsyncSession, user_id: str, role: UserRole, lesson_id: str
) -> bool:
    """
    Admit admins, the course author, and students enrolled in the course.
    """
    if role == UserRole.ADMIN:
        return True

    result = await session.execute(
        select(CourseModel.id, CourseModel.author_id)
        .join(LessonModel, LessonModel.course_id == CourseModel.id)
        .where(LessonModel.id == lesson_id)
    )
    row = result.first()
    if row is None:
        return False

    course_id, author_id = row
    if author_id == user_id:
        return True

    enrolled = await session.execute(
        select(EnrollmentModel.id).where(
            EnrollmentModel.course_id == course_id,
            EnrollmentModel.student_id == user_id,
        )
    )
    return enrolled.scalar_one_or_none() is not None


def lesson_access_check_for(enforce: bool) -> LessonAccessCheck:
    """Pick the access check matching MENTOR_ENFORCE_LESSON_ACCESS."""
    return require_enrollment if enforce else allow_all


# ============================================================================
# Thread operations
# ============================================================================


async def create_thread(
    session: AsyncSession,
    data: ThreadCreate,
    role: UserRole,
    access_check: LessonAccessCheck | None = None,
) -> dict[str, Thread]:
    """
    Create a thread for a mentor-lesson.

    Resolves the lesson behind the mentor-lesson first; nothing is written
    when it is missing or the access check refuses.

    Args:
        session: Database session
        data: Thread creation data
        role: Role of the requesting user
        access_check: Lesson access hook (defaults to ``allow_all``)

    Returns:
        ``{"data": thread}``

    Raises:
        LessonNotFoundError: If the mentor-lesson does not exist
        LessonAccessDeniedError: If the access check rejects the caller
    """
    result = await session.execute(
        select(AiMentorLessonModel.lesson_id).where(
            AiMentorLessonModel.id == data.ai_mentor_lesson_id
        )
    )
    lesson_id = result.scalar_one_or_none()
    if lesson_id is None:
        raise LessonNotFoundError(f"Lesson not found for {role.value}")

    check = access_check or allow_all
    if not await check(session, data.user_id, role, lesson_id):
        raise LessonAccessDeniedError(f"User {data.user_id} has no access to lesson {lesson_id}")

    thread_model = ThreadModel(
        id=generate_entity_id(PREFIX_THREAD),
        ai_mentor_lesson_id=data.ai_mentor_lesson_id,
        lesson_id=lesson_id,
        user_id=data.user_id,
        tenant_id=data.tenant_id,
        user_language=data.user_language,
        status=ThreadStatus.ACTIVE.value,
    )
    session.add(thread_model)

    await record_event(
        session,
        entity_type="thread",
        entity_id=thread_model.id,
        event_type=EventType.THREAD_CREATED,
        actor=data.user_id,
        payload={"lesson_id": lesson_id, "ai_mentor_lesson_id": data.ai_mentor_lesson_id},
    )

    await session.commit()
    await session.refresh(thread_model)

    logger.info(f"Created thread {thread_model.id} for user {data.user_id} on lesson {lesson_id}")
    return {"data": Thread.model_validate(thread_model)}


async def _get_thread_model(session: AsyncSession, thread_id: str) -> ThreadModel:
    thread_model = await session.get(ThreadModel, thread_id)
    if not thread_model:
        raise ThreadNotFoundError(f"Thread {thread_id} not found")
    return thread_model


async def get_thread(session: AsyncSession, thread_id: str, user_id: str) -> Thread:
    """
    Get a thread owned by ``user_id``.

    Raises:
        ThreadNotFoundError: If the thread doesn't exist
        ThreadAccessDeniedError: If the thread belongs to another user
    """
    thread_model = await _get_thread_model(session, thread_id)
    if thread_model.user_id != user_id:
        raise ThreadAccessDeniedError("You don't have access to this thread")
    return Thread.model_validate(thread_model)


async def get_active_thread(session: AsyncSession, thread_id: str, user_id: str) -> Thread:
    """Get an owned thread, requiring it to be active."""
    thread = await get_thread(session, thread_id, user_id)
    if thread.status != ThreadStatus.ACTIVE:
        raise ThreadNotActiveError("Thread must be active")
    return thread


async def list_threads(session: AsyncSession, lesson_id: str, user_id: str) -> list[Thread]:
    """List a user's threads for a lesson, newest first."""
    result = await session.execute(
        select(ThreadModel)
        .where(ThreadModel.lesson_id == lesson_id, ThreadModel.user_id == user_id)
        .order_by(ThreadModel.created_at.desc(), ThreadModel.id)
    )
    return [Thread.model_validate(t) for t in result.scalars().all()]


async def get_thread_messages(session: AsyncSession, thread_id: str, user_id: str) -> list[Message]:
    """
    Get the visible history of an owned thread in insertion order.

    System prompts and summaries are excluded; archived messages are kept.
    """
    await get_thread(session, thread_id, user_id)

    result = await session.execute(
        select(MessageModel)
        .where(MessageModel.thread_id == thread_id, MessageModel.role.in_(VISIBLE_ROLES))
        .order_by(MessageModel.id)
    )
    return [Message.model_validate(m) for m in result.scalars().all()]


async def set_thread_status(
    session: AsyncSession,
    thread_id: str,
    user_id: str,
    status: ThreadStatus,
    actor: str | None = None,
) -> Thread:
    """
    Move an owned thread to ``status``.

    Completed and abandoned threads are terminal; moving them again
    raises ThreadNotActiveError.
    """
    thread_model = await _get_thread_model(session, thread_id)
    if thread_model.user_id != user_id:
        raise ThreadAccessDeniedError("You don't have access to this thread")

    if thread_model.status != ThreadStatus.ACTIVE.value:
        raise ThreadNotActiveError("Thread must be active")

    if status == ThreadStatus.ACTIVE:
        return Thread.model_validate(thread_model)

    thread_model.status = status.value
    await record_event(
        session,
        entity_type="thread",
        entity_id=thread_id,
        event_type=_STATUS_EVENTS[status],
        actor=actor or user_id,
    )

    await session.commit()
    await session.refresh(thread_model)

    logger.info(f"Thread {thread_id} -> {status.value}")
    return Thread.model_validate(thread_model)


async def abandon_stale_threads(session: AsyncSession, idle_for: timedelta) -> list[str]:
    """
    Abandon active threads with no activity within ``idle_for``.

    Activity is any status change or new message (both set ``updated_at``).

    Returns:
        IDs of the abandoned threads
    """
    cutoff = utcnow() - idle_for

    result = await session.execute(
        select(ThreadModel).where(
            ThreadModel.status == ThreadStatus.ACTIVE.value,
            ThreadModel.updated_at < cutoff,
        )
    )
    stale = list(result.scalars().all())

    for thread_model in stale:
        thread_model.status = ThreadStatus.ABANDONED.value
        await record_event(
            session,
            entity_type="thread",
            entity_id=thread_model.id,
            event_type=EventType.THREAD_ABANDONED,
            actor="system",
            payload={"idle_seconds": int(idle_for.total_seconds())},
        )

    await session.commit()

    if stale:
        logger.info(f"Abandoned {len(stale)} stale threads")
    return [t.id for t in stale]


async def get_mentor_lesson_context(session: AsyncSession, thread_id: str) -> MentorLessonContext:
    """
    Load the mentor-lesson configuration behind a thread, with the lesson title.
    """
    result = await session.execute(
        select(
            LessonModel.title,
            AiMentorLessonModel.name,
            AiMentorLessonModel.instructions,
            AiMentorLessonModel.completion_conditions,
            AiMentorLessonModel.mentor_type,
        )
        .select_from(ThreadModel)
        .join(AiMentorLessonModel, ThreadModel.ai_mentor_lesson_id == AiMentorLessonModel.id)
        .join(LessonModel, LessonModel.id == AiMentorLessonModel.lesson_id)
        .where(ThreadModel.id == thread_id)
    )
    row = result.first()
    if row is None:
        raise ThreadNotFoundError(f"Thread {thread_id} not found")

    title, name, instructions, conditions, mentor_type = row
    return MentorLessonContext(
        title=title,
        name=name,
        instructions=instructions,
        conditions=conditions,
        mentor_type=MentorType(mentor_type),
    )
