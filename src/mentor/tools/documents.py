"""
Document search tool: lets the mentor look up the lesson's documents.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mentor.services.ingestion.embedding import Embedder
from mentor.services.retrieval_service import find_relevant_chunks
from mentor.tools.schemas import (
    DocumentPassage,
    SearchDocumentsInput,
    SearchDocumentsOutput,
    parse_tool_input,
)

SEARCH_TOOL_NAME = "search_lesson_documents"
SEARCH_TOOL_DESCRIPTION = (
    "Search the documents attached to this lesson for passages relevant to a question."
)


async def search_lesson_documents(
    payload: Mapping[str, Any],
    lesson_id: str,
    session: AsyncSession,
    embedder: Embedder,
    top_k: int = 5,
    neighbour_count: int = 2,
    similarity_threshold: float = 0.3,
) -> SearchDocumentsOutput:
    """
    Embed the query and return matching passages with their neighbours.

    Raises:
        InvalidToolInputError: If the payload is malformed
    """
    input = parse_tool_input(SearchDocumentsInput, payload)
    query_embedding = await embedder.embed_query(input.query)

    chunks = await find_relevant_chunks(
        session,
        lesson_id,
        query_embedding,
        top_k=top_k,
        neighbour_count=neighbour_count,
        similarity_threshold=similarity_threshold,
    )

    passages = [
        DocumentPassage(
            document_id=c.document_id,
            chunk_index=c.chunk_index,
            page_number=c.page_number,
            content=c.content,
            similarity=c.similarity if c.is_top_chunk else None,
        )
        for c in chunks
    ]
    return SearchDocumentsOutput(passages=passages, total=len(passages))
