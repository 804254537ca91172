"""
Upload acceptance for lesson documents.

Validates a batch, authorizes the uploader, deduplicates by checksum,
creates ``processing`` documents and hands them to the ingestion queue.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.exceptions import InvalidInputError
from mentor.models import (
    DocumentLessonLinkModel,
    DocumentModel,
    DocumentStatus,
    UploadedFile,
    UserRole,
)
from mentor.services.ingestion.documents import (
    compute_checksum,
    delete_document,
    ensure_can_manage,
    find_course_author,
    find_document_by_checksum,
    find_mentor_lesson_id,
)
from mentor.services.ingestion.extraction import ALLOWED_FILE_TYPES, sniff_file_type
from mentor.services.ingestion.queue import IngestionJob, JobQueue
from mentor.utils.ids import PREFIX_DOCUMENT, PREFIX_DOCUMENT_LINK, generate_entity_id

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class TooManyFilesError(InvalidInputError):
    """Raised when a batch exceeds the file count limit."""

    pass


class UnsupportedFileTypeError(InvalidInputError):
    """Raised when a file is not PDF, DOCX or plain text."""

    pass


class FileTooLargeError(InvalidInputError):
    """Raised when a file exceeds the per-file size limit."""

    pass


def check_file_count(count: int, max_files: int) -> None:
    """Reject oversized batches; runs before any file is read."""
    if count > max_files:
        raise TooManyFilesError(f"Exceeded max number of files ({max_files})")


def check_file_size(name: str, size: int, max_mb_per_file: int) -> None:
    if size > max_mb_per_file * BYTES_PER_MB:
        raise FileTooLargeError(f"File {name} is larger than {max_mb_per_file} MB")


def validate_files(files: list[UploadedFile], max_files: int = 3, max_mb_per_file: int = 10) -> None:
    """
    Validate an upload batch.

    The count is checked first, then each file's sniffed type and size.

    Raises:
        TooManyFilesError / UnsupportedFileTypeError / FileTooLargeError
    """
    check_file_count(len(files), max_files)

    for file in files:
        file_type = sniff_file_type(file.content, file.type)
        if file_type not in ALLOWED_FILE_TYPES:
            raise UnsupportedFileTypeError(f"Incorrect file type for {file.name}: {file_type}")

        check_file_size(file.name, file.size, max_mb_per_file)


async def _link(session: AsyncSession, document_id: str, mentor_lesson_id: str) -> None:
    existing = await session.execute(
        select(DocumentLessonLinkModel.id).where(
            DocumentLessonLinkModel.document_id == document_id,
            DocumentLessonLinkModel.ai_mentor_lesson_id == mentor_lesson_id,
        )
    )
    if existing.scalar_one_or_none() is None:
        session.add(
            DocumentLessonLinkModel(
                id=generate_entity_id(PREFIX_DOCUMENT_LINK),
                document_id=document_id,
                ai_mentor_lesson_id=mentor_lesson_id,
            )
        )


async def accept_upload(
    session: AsyncSession,
    lesson_id: str,
    files: list[UploadedFile],
    user_id: str,
    role: UserRole,
    queue: JobQueue,
    max_files: int = 3,
    max_mb_per_file: int = 10,
) -> dict:
    """
    Accept a batch of files for a lesson's mentor and wait for ingestion.

    Existing ready or processing documents with the same checksum are
    linked instead of re-ingested; failed ones are replaced.

    Args:
        session: Database session
        lesson_id: Lesson to attach documents to
        files: Uploaded files with content
        user_id: Uploading user
        role: Role of the uploading user
        queue: Ingestion queue backend
        max_files: Maximum files per batch
        max_mb_per_file: Maximum size per file in MB

    Returns:
        ``{"message", "document_ids", "linked_ids"}``

    Raises:
        TooManyFilesError / UnsupportedFileTypeError / FileTooLargeError
        MentorLessonNotFoundError: If the lesson or its mentor is missing
        IngestionForbiddenError: If the user is neither author nor admin
    """
    validate_files(files, max_files, max_mb_per_file)

    author_id = await find_course_author(session, lesson_id)
    ensure_can_manage(author_id, user_id, role)
    mentor_lesson_id = await find_mentor_lesson_id(session, lesson_id)

    jobs: list[IngestionJob] = []
    linked_ids: list[str] = []

    for file in files:
        checksum = compute_checksum(file.name, file.content)
        existing = await find_document_by_checksum(session, checksum)

        if existing is not None and existing.status == DocumentStatus.FAILED.value:
            logger.info(f"Replacing failed document {existing.id} ({file.name})")
            await delete_document(session, existing.id)
            await session.flush()
        elif existing is not None:
            await _link(session, existing.id, mentor_lesson_id)
            linked_ids.append(existing.id)
            continue

        content_type = sniff_file_type(file.content, file.type)
        document = DocumentModel(
            id=generate_entity_id(PREFIX_DOCUMENT),
            file_name=file.name,
            content_type=content_type,
            byte_size=file.size,
            checksum=checksum,
            status=DocumentStatus.PROCESSING.value,
        )
        session.add(document)
        await session.flush()
        await _link(session, document.id, mentor_lesson_id)

        jobs.append(
            IngestionJob(
                document_id=document.id,
                file_name=file.name,
                content_type=content_type,
                checksum=checksum,
                content=file.content,
            )
        )

    # Workers open their own sessions; rows must be visible first
    await session.commit()

    handles = [await queue.enqueue(job) for job in jobs]
    await queue.wait_for_jobs(handles)

    logger.info(
        f"Accepted {len(files)} files for lesson {lesson_id}: "
        f"{len(jobs)} ingested, {len(linked_ids)} linked"
    )
    return {
        "message": "Ingested files successfully",
        "document_ids": [job.document_id for job in jobs],
        "linked_ids": linked_ids,
    }
