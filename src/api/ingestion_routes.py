"""
API routes for lesson document ingestion.

Authors and admins upload files to a lesson's mentor, list the ready
documents and detach them. Uploads answer once every job of the batch
has finished.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.agents import get_ingestion_queue
from api.auth import UserContext, get_user_context
from api.database import get_session
from mentor.models import DocumentListItem, UploadedFile
from mentor.services.ingestion import (
    JobQueue,
    accept_upload,
    check_file_count,
    check_file_size,
    delete_document_link,
    list_documents_for_lesson,
)
from mentor.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ingestion", tags=["ingestion"])


class IngestResponse(BaseModel):
    message: str
    document_ids: list[str] = Field(default_factory=list, description="Newly ingested documents")
    linked_ids: list[str] = Field(default_factory=list, description="Existing documents linked by checksum")


class DocumentListResponse(BaseModel):
    data: list[DocumentListItem]


class DeleteResponse(BaseModel):
    message: str


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    lesson_id: str = Form(..., alias="lessonId"),
    files: list[UploadFile] = File(...),
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
    queue: JobQueue = Depends(get_ingestion_queue),
):
    """Upload up to ``MENTOR_MAX_FILES_PER_BATCH`` files for a lesson."""
    settings = get_settings()

    # Reject oversized batches before reading any file
    check_file_count(len(files), settings.max_files_per_batch)

    uploaded = []
    for file in files:
        name = file.filename or "upload"
        # Declared sizes are checked before the body is read
        if file.size is not None:
            check_file_size(name, file.size, settings.max_mb_per_file)

        content = await file.read()
        uploaded.append(
            UploadedFile(
                name=name,
                type=file.content_type or "",
                size=len(content),
                content=content,
            )
        )

    result = await accept_upload(
        session,
        lesson_id,
        uploaded,
        user_id=ctx.user_id,
        role=ctx.role,
        queue=queue,
        max_files=settings.max_files_per_batch,
        max_mb_per_file=settings.max_mb_per_file,
    )
    return IngestResponse(**result)


@router.get("/{lesson_id}", response_model=DocumentListResponse)
async def list_documents(
    lesson_id: str,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    documents = await list_documents_for_lesson(session, lesson_id, ctx.user_id, ctx.role)
    return DocumentListResponse(data=documents)


@router.delete("/{link_id}", response_model=DeleteResponse)
async def delete_link(
    link_id: str,
    ctx: UserContext = Depends(get_user_context),
    session: AsyncSession = Depends(get_session),
):
    result = await delete_document_link(session, link_id, ctx.user_id, ctx.role)
    return DeleteResponse(**result)
