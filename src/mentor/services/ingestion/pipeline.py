"""
Ingestion worker routine.

Takes one document from ``processing`` to ``ready`` or ``failed``:
extract pages, chunk, embed all chunks in one call, then replace the
document's chunks and mark it ready. Any failure marks it failed with
the error message. This routine is the only writer of terminal status.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mentor.exceptions import ExternalServiceError
from mentor.models import DocumentChunkModel, DocumentModel, DocumentStatus, EventType, PageRecord
from mentor.services.event_service import record_event
from mentor.services.ingestion.embedding import Embedder
from mentor.services.ingestion.extraction import (
    ExtractionError,
    chunk_pages,
    document_metadata,
    extract_pages,
)
from mentor.services.ingestion.queue import IngestionJob
from mentor.utils.ids import PREFIX_CHUNK, generate_entity_id

logger = logging.getLogger(__name__)


class EmbeddingMismatchError(ExternalServiceError):
    """Raised when the embedder does not return one vector per chunk."""

    pass


@dataclass
class IngestionDeps:
    """Handles the worker needs: where to write and how to embed."""

    session_factory: async_sessionmaker[AsyncSession]
    embedder: Embedder


async def replace_chunks(
    session: AsyncSession,
    document_id: str,
    chunks: list[PageRecord],
    embeddings: list[list[float]],
) -> int:
    """
    Replace a document's chunks; vector ``i`` is stored with chunk ``i``.

    Not committed.
    """
    if len(embeddings) != len(chunks):
        raise EmbeddingMismatchError(
            f"Expected {len(chunks)} embeddings, got {len(embeddings)}"
        )

    await session.execute(
        delete(DocumentChunkModel).where(DocumentChunkModel.document_id == document_id)
    )

    for index, (chunk, embedding) in enumerate(zip(chunks, embeddings, strict=True)):
        loc = chunk.metadata.loc
        session.add(
            DocumentChunkModel(
                id=generate_entity_id(PREFIX_CHUNK),
                document_id=document_id,
                chunk_index=index,
                content=chunk.page_content,
                chunk_metadata={"loc": loc.model_dump(by_alias=True)} if loc else None,
                embedding=embedding,
            )
        )

    return len(chunks)


async def _finish(
    deps: IngestionDeps,
    job: IngestionJob,
    chunks: list[PageRecord],
    embeddings: list[list[float]],
    metadata: dict,
) -> bool:
    async with deps.session_factory() as session:
        document = await session.get(DocumentModel, job.document_id)
        if document is None:
            logger.warning(f"Document {job.document_id} deleted before ingestion finished")
            return False

        count = await replace_chunks(session, job.document_id, chunks, embeddings)
        document.document_metadata = metadata or None
        document.status = DocumentStatus.READY.value
        document.error_message = None

        await record_event(
            session,
            entity_type="document",
            entity_id=job.document_id,
            event_type=EventType.DOCUMENT_READY,
            actor="ingestion-worker",
            payload={"chunks": count, "file_name": job.file_name},
        )
        await session.commit()

    logger.info(f"Document {job.document_id} ready with {count} chunks")
    return True


async def mark_document_failed(
    session_factory: async_sessionmaker[AsyncSession],
    document_id: str,
    error: str,
    file_name: str | None = None,
) -> None:
    """Record ``error`` on a document and move it to ``failed``; no-op if it is gone."""
    async with session_factory() as session:
        document = await session.get(DocumentModel, document_id)
        if document is None:
            return

        document.status = DocumentStatus.FAILED.value
        document.error_message = error[:2000]

        await record_event(
            session,
            entity_type="document",
            entity_id=document_id,
            event_type=EventType.DOCUMENT_FAILED,
            actor="ingestion-worker",
            payload={"error": error[:500], "file_name": file_name or document.file_name},
        )
        await session.commit()


async def run_ingestion_job(job: IngestionJob, deps: IngestionDeps) -> DocumentStatus:
    """
    Process one ingestion job to a terminal document status.

    Never raises for pipeline errors: they are recorded on the document.

    Returns:
        The terminal status written (READY or FAILED)
    """
    try:
        pages = await asyncio.to_thread(extract_pages, job.content, job.content_type)
        chunks = chunk_pages(pages)
        if not chunks:
            raise ExtractionError("No text found in document")

        embeddings = await deps.embedder.embed_pages(chunks)
        if len(embeddings) != len(chunks):
            raise EmbeddingMismatchError(
                f"Expected {len(chunks)} embeddings, got {len(embeddings)}"
            )

        if await _finish(deps, job, chunks, embeddings, document_metadata(pages)):
            return DocumentStatus.READY
        return DocumentStatus.FAILED

    except Exception as e:
        logger.error(f"Ingestion of document {job.document_id} ({job.file_name}) failed: {e}")
        await mark_document_failed(
            deps.session_factory, job.document_id, str(e) or type(e).__name__, job.file_name
        )
        return DocumentStatus.FAILED
