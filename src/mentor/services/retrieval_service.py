"""
Retrieval Service for lesson documents.

Finds the chunks most similar to a query among the ready documents
linked to a lesson, then widens each hit with its neighbouring chunks
so the mentor sees passages in context.
"""

import logging
import math

import numpy as np
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.models import (
    AiMentorLessonModel,
    DocumentChunkModel,
    DocumentLessonLinkModel,
    DocumentModel,
    DocumentStatus,
)

logger = logging.getLogger(__name__)


class RetrievedChunk(BaseModel):
    """A chunk returned by retrieval."""

    id: str
    document_id: str
    chunk_index: int
    content: str
    chunk_metadata: dict | None = None
    similarity: float
    is_top_chunk: bool

    @property
    def page_number(self) -> int | None:
        loc = (self.chunk_metadata or {}).get("loc") or {}
        return loc.get("pageNumber")


def _normalize(vecs: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vecs, axis=1, keepdims=True) + 1e-12
    return vecs / norms


def cosine_similarities(query: list[float], vectors: list[list[float]]) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``vectors`` (zero rows score 0)."""
    if not vectors:
        return np.zeros(0)
    matrix = _normalize(np.asarray(vectors, dtype=np.float64))
    q = _normalize(np.asarray([query], dtype=np.float64))
    return matrix @ q[0]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is zero or sizes differ."""
    if len(a) != len(b):
        return 0.0
    return float(cosine_similarities(a, [b])[0])


async def find_relevant_chunks(
    session: AsyncSession,
    lesson_id: str,
    query_embedding: list[float],
    top_k: int = 5,
    neighbour_count: int = 2,
    similarity_threshold: float = 0.3,
) -> list[RetrievedChunk]:
    """
    Top-k chunks above the similarity threshold, plus their neighbours.

    Neighbours are chunks of the same document within
    ``ceil(neighbour_count / 2)`` positions of a hit; they carry
    similarity 0 unless they are hits themselves.

    Args:
        session: Database session
        lesson_id: Lesson whose mentor documents are searched
        query_embedding: Embedded query
        top_k: Maximum number of hits
        neighbour_count: Neighbouring chunks to include around each hit
        similarity_threshold: Minimum cosine similarity for a hit

    Returns:
        Chunks ordered by similarity desc, then document and chunk index
    """
    result = await session.execute(
        select(DocumentChunkModel)
        .join(DocumentModel, DocumentModel.id == DocumentChunkModel.document_id)
        .join(DocumentLessonLinkModel, DocumentLessonLinkModel.document_id == DocumentModel.id)
        .join(
            AiMentorLessonModel,
            AiMentorLessonModel.id == DocumentLessonLinkModel.ai_mentor_lesson_id,
        )
        .where(
            AiMentorLessonModel.lesson_id == lesson_id,
            DocumentModel.status == DocumentStatus.READY.value,
        )
    )
    chunks = list(result.scalars().unique().all())
    if not chunks:
        return []

    comparable = [c for c in chunks if len(c.embedding) == len(query_embedding)]
    if len(comparable) < len(chunks):
        logger.warning(
            f"Skipping {len(chunks) - len(comparable)} chunk(s) with a different embedding size for lesson {lesson_id}"
        )

    scores = cosine_similarities(query_embedding, [c.embedding for c in comparable])
    candidates = np.flatnonzero(scores > similarity_threshold)
    order = candidates[np.argsort(-scores[candidates], kind="stable")][:top_k]
    hits = [(float(scores[i]), comparable[i]) for i in order]

    by_position = {(c.document_id, c.chunk_index): c for c in chunks}
    radius = math.ceil(neighbour_count / 2)

    selected: dict[str, RetrievedChunk] = {}
    for similarity, hit in hits:
        selected[hit.id] = _to_retrieved(hit, similarity, True)

    for _, hit in hits:
        for index in range(hit.chunk_index - radius, hit.chunk_index + radius + 1):
            neighbour = by_position.get((hit.document_id, index))
            if neighbour is not None and neighbour.id not in selected:
                selected[neighbour.id] = _to_retrieved(neighbour, 0.0, False)

    logger.debug(f"Retrieved {len(hits)} hits ({len(selected)} with neighbours) for lesson {lesson_id}")

    return sorted(
        selected.values(),
        key=lambda c: (-c.similarity, c.document_id, c.chunk_index),
    )


def _to_retrieved(chunk: DocumentChunkModel, similarity: float, is_top: bool) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk.id,
        document_id=chunk.document_id,
        chunk_index=chunk.chunk_index,
        content=chunk.content,
        chunk_metadata=chunk.chunk_metadata,
        similarity=similarity,
        is_top_chunk=is_top,
    )
