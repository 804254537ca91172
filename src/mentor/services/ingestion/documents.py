"""
Document bookkeeping: lookups, lesson listings and link removal.
"""

import hashlib
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.exceptions import ForbiddenError, NotFoundError
from mentor.models import (
    AiMentorLessonModel,
    CourseModel,
    DocumentChunkModel,
    DocumentLessonLinkModel,
    DocumentListItem,
    DocumentModel,
    DocumentStatus,
    LessonModel,
    UserRole,
)

logger = logging.getLogger(__name__)


class IngestionForbiddenError(ForbiddenError):
    """Raised when a user manages documents of a lesson they do not author."""

    pass


class MentorLessonNotFoundError(NotFoundError):
    """Raised when a lesson has no AI mentor configuration."""

    pass


class DocumentLinkNotFoundError(NotFoundError):
    """Raised when a document-lesson link cannot be found."""

    pass


def compute_checksum(file_name: str, content: bytes) -> str:
    """sha256 over the file name followed by the file bytes."""
    digest = hashlib.sha256()
    digest.update(file_name.encode("utf-8"))
    digest.update(content)
    return digest.hexdigest()


async def find_course_author(session: AsyncSession, lesson_id: str) -> str:
    """
    Get the author of the course a lesson belongs to.

    Raises:
        MentorLessonNotFoundError: If the lesson does not exist
    """
    result = await session.execute(
        select(CourseModel.author_id)
        .join(LessonModel, LessonModel.course_id == CourseModel.id)
        .where(LessonModel.id == lesson_id)
    )
    author_id = result.scalar_one_or_none()
    if author_id is None:
        raise MentorLessonNotFoundError(f"Lesson {lesson_id} not found")
    return author_id


def ensure_can_manage(author_id: str, user_id: str, role: UserRole) -> None:
    """Only the course author or an admin may manage lesson documents."""
    if role != UserRole.ADMIN and author_id != user_id:
        raise IngestionForbiddenError("You can only manage files of your own lessons")


async def find_mentor_lesson_id(session: AsyncSession, lesson_id: str) -> str:
    """
    Get the mentor-lesson configured on a lesson.

    Raises:
        MentorLessonNotFoundError: If the lesson has no mentor-lesson
    """
    result = await session.execute(
        select(AiMentorLessonModel.id).where(AiMentorLessonModel.lesson_id == lesson_id)
    )
    mentor_lesson_id = result.scalar_one_or_none()
    if mentor_lesson_id is None:
        raise MentorLessonNotFoundError(f"Lesson {lesson_id} has no AI mentor")
    return mentor_lesson_id


async def find_document_by_checksum(session: AsyncSession, checksum: str) -> DocumentModel | None:
    # Status is written by workers in other sessions
    result = await session.execute(
        select(DocumentModel)
        .where(DocumentModel.checksum == checksum)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def delete_document(session: AsyncSession, document_id: str) -> None:
    """Delete a document with its chunks and links (not committed)."""
    await session.execute(
        delete(DocumentChunkModel).where(DocumentChunkModel.document_id == document_id)
    )
    await session.execute(
        delete(DocumentLessonLinkModel).where(DocumentLessonLinkModel.document_id == document_id)
    )
    await session.execute(delete(DocumentModel).where(DocumentModel.id == document_id))


async def list_documents_for_lesson(
    session: AsyncSession, lesson_id: str, user_id: str, role: UserRole
) -> list[DocumentListItem]:
    """
    List the ready documents attached to a lesson's mentor.

    ``id`` of each item is the document-lesson link id, the handle used
    to detach it.

    Raises:
        MentorLessonNotFoundError: If the lesson does not exist
        IngestionForbiddenError: If the user is neither author nor admin
    """
    author_id = await find_course_author(session, lesson_id)
    ensure_can_manage(author_id, user_id, role)

    result = await session.execute(
        select(
            DocumentLessonLinkModel.id,
            DocumentModel.file_name,
            DocumentModel.content_type,
            DocumentModel.byte_size,
        )
        .join(DocumentModel, DocumentModel.id == DocumentLessonLinkModel.document_id)
        .join(
            AiMentorLessonModel,
            AiMentorLessonModel.id == DocumentLessonLinkModel.ai_mentor_lesson_id,
        )
        .where(
            AiMentorLessonModel.lesson_id == lesson_id,
            DocumentModel.status == DocumentStatus.READY.value,
        )
        .order_by(DocumentLessonLinkModel.created_at, DocumentLessonLinkModel.id)
    )
    return [
        DocumentListItem(id=link_id, name=name, type=content_type, size=size)
        for link_id, name, content_type, size in result.all()
    ]


async def delete_document_link(
    session: AsyncSession, link_id: str, user_id: str, role: UserRole
) -> dict[str, str]:
    """
    Detach a document from a lesson.

    The document and its chunks are deleted too when this was its last link.

    Raises:
        DocumentLinkNotFoundError: If the link does not exist
        IngestionForbiddenError: If the user is neither author nor admin
    """
    result = await session.execute(
        select(DocumentLessonLinkModel.document_id, CourseModel.author_id)
        .join(
            AiMentorLessonModel,
            AiMentorLessonModel.id == DocumentLessonLinkModel.ai_mentor_lesson_id,
        )
        .join(LessonModel, LessonModel.id == AiMentorLessonModel.lesson_id)
        .join(CourseModel, CourseModel.id == LessonModel.course_id)
        .where(DocumentLessonLinkModel.id == link_id)
    )
    row = result.first()
    if row is None:
        raise DocumentLinkNotFoundError(f"Document link {link_id} not found")

    document_id, author_id = row
    ensure_can_manage(author_id, user_id, role)

    link_count = await session.scalar(
        select(func.count())
        .select_from(DocumentLessonLinkModel)
        .where(DocumentLessonLinkModel.document_id == document_id)
    )

    if link_count == 1:
        await delete_document(session, document_id)
        logger.info(f"Deleted document {document_id} with its last link {link_id}")
    else:
        await session.execute(
            delete(DocumentLessonLinkModel).where(DocumentLessonLinkModel.id == link_id)
        )

    await session.commit()
    return {"message": "Successfully deleted document link"}
