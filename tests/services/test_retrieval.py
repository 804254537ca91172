"""
Tests for lesson document retrieval.
"""

import pytest
import pytest_asyncio

from mentor.models import DocumentChunkModel, DocumentLessonLinkModel, DocumentModel, DocumentStatus
from mentor.services.retrieval_service import cosine_similarities, cosine_similarity, find_relevant_chunks
from mentor.tools import search_lesson_documents

HIT = [1.0, 0.0]
NEAR = [0.9, 0.1]
MISS = [0.0, 1.0]


async def _document(session, document_id, mentor_lesson_id, vectors, status=DocumentStatus.READY):
    session.add(
        DocumentModel(
            id=document_id,
            file_name=f"{document_id}.pdf",
            content_type="application/pdf",
            byte_size=100,
            checksum=f"sum-{document_id}",
            status=status.value,
        )
    )
    session.add(DocumentLessonLinkModel(id=f"dlk-{document_id}", document_id=document_id, ai_mentor_lesson_id=mentor_lesson_id))
    for index, vector in enumerate(vectors):
        session.add(
            DocumentChunkModel(
                id=f"chk-{document_id}-{index}",
                document_id=document_id,
                chunk_index=index,
                content=f"{document_id} page {index + 1}",
                chunk_metadata={"loc": {"pageNumber": index + 1}},
                embedding=vector,
            )
        )
    await session.commit()


@pytest_asyncio.fixture
async def documents(async_session, seed, second_lesson):
    # doc-a: hit at index 3, everything else misses
    await _document(async_session, "doc-a", seed.mentor_lesson_id, [MISS, MISS, MISS, HIT, MISS, MISS, MISS])
    await _document(async_session, "doc-b", seed.mentor_lesson_id, [NEAR, MISS])
    await _document(async_session, "doc-failed", seed.mentor_lesson_id, [HIT], status=DocumentStatus.FAILED)
    await _document(async_session, "doc-other", second_lesson.mentor_lesson_id, [HIT])


def test_cosine_similarity():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0


def test_cosine_similarities_scores_every_row():
    scores = cosine_similarities([2.0, 0.0], [[1.0, 0.0], [0.0, 3.0], [1.0, 1.0], [0.0, 0.0]])

    assert scores.shape == (4,)
    assert scores.tolist() == pytest.approx([1.0, 0.0, 0.5**0.5, 0.0])
    assert cosine_similarities([1.0, 0.0], []).shape == (0,)


@pytest.mark.asyncio
async def test_hits_with_neighbours(async_session, seed, documents):
    chunks = await find_relevant_chunks(async_session, seed.lesson_id, HIT, top_k=5, neighbour_count=2)

    assert [(c.document_id, c.chunk_index) for c in chunks] == [
        ("doc-a", 3),
        ("doc-b", 0),
        ("doc-a", 2),
        ("doc-a", 4),
        ("doc-b", 1),
    ]
    assert [c.is_top_chunk for c in chunks] == [True, True, False, False, False]
    assert chunks[0].similarity == pytest.approx(1.0)
    assert chunks[2].similarity == 0.0
    assert chunks[0].page_number == 4


@pytest.mark.asyncio
async def test_neighbour_radius_is_half_the_count(async_session, seed, documents):
    chunks = await find_relevant_chunks(async_session, seed.lesson_id, HIT, top_k=1, neighbour_count=4)

    assert [(c.document_id, c.chunk_index) for c in chunks] == [
        ("doc-a", 3),
        ("doc-a", 1),
        ("doc-a", 2),
        ("doc-a", 4),
        ("doc-a", 5),
    ]


@pytest.mark.asyncio
async def test_threshold_excludes_weak_matches(async_session, seed, documents):
    chunks = await find_relevant_chunks(
        async_session, seed.lesson_id, MISS, top_k=5, neighbour_count=0, similarity_threshold=0.99
    )

    # Only exact MISS vectors pass; doc-b's NEAR chunk does not
    assert all(c.is_top_chunk for c in chunks)
    assert ("doc-b", 0) not in [(c.document_id, c.chunk_index) for c in chunks]


@pytest.mark.asyncio
async def test_other_lessons_and_failed_documents_excluded(async_session, seed, documents):
    chunks = await find_relevant_chunks(async_session, seed.lesson_id, HIT, top_k=10, neighbour_count=0)

    assert {c.document_id for c in chunks} == {"doc-a", "doc-b"}


@pytest.mark.asyncio
async def test_no_documents(async_session, seed):
    assert await find_relevant_chunks(async_session, seed.lesson_id, HIT) == []


@pytest.mark.asyncio
async def test_search_tool(async_session, seed, documents, make_embedder):
    embedder = make_embedder(query_vector=HIT)

    result = await search_lesson_documents(
        {"query": "where is the hit?"},
        lesson_id=seed.lesson_id,
        session=async_session,
        embedder=embedder,
        top_k=1,
        neighbour_count=2,
    )

    assert embedder.queries == ["where is the hit?"]
    assert result.total == 3
    assert result.passages[0].content == "doc-a page 4"
    assert result.passages[0].page_number == 4
    assert result.passages[1].similarity is None


@pytest.mark.asyncio
async def test_chunks_with_another_embedding_size_are_skipped(async_session, seed):
    await _document(async_session, "doc-a", seed.mentor_lesson_id, [HIT, [1.0, 0.0, 0.0]])

    chunks = await find_relevant_chunks(async_session, seed.lesson_id, HIT, top_k=5, neighbour_count=0)

    assert [(c.document_id, c.chunk_index) for c in chunks] == [("doc-a", 0)]
