"""
Tests for lesson document ingestion.
"""

import io

import docx
import pytest
from pypdf import PdfWriter
from sqlalchemy import func, select

from mentor.models import (
    DocumentChunkModel,
    DocumentLessonLinkModel,
    DocumentModel,
    DocumentStatus,
    PageLocation,
    PageMetadata,
    PageRecord,
    UploadedFile,
    UserRole,
)
from mentor.services.event_service import get_events
from mentor.services.ingestion import (
    DocumentLinkNotFoundError,
    FileTooLargeError,
    InProcessJobQueue,
    IngestionDeps,
    IngestionForbiddenError,
    IngestionJob,
    MentorLessonNotFoundError,
    TooManyFilesError,
    UnsupportedFileTypeError,
    accept_upload,
    compute_checksum,
    delete_document_link,
    extract_pages,
    list_documents_for_lesson,
    run_ingestion_job,
    sniff_file_type,
    validate_files,
)
from mentor.services.ingestion import pipeline
from mentor.services.ingestion.extraction import DOCX_MIME, PDF_MIME, chunk_pages, document_metadata

# ============================================================================
# Helpers
# ============================================================================


def text_file(name="notes.txt", text="Chlorophyll absorbs light."):
    content = text.encode("utf-8")
    return UploadedFile(name=name, type="text/plain", size=len(content), content=content)


def blank_pdf(pages=1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def docx_bytes(*paragraphs) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class RecordingQueue:
    """In-process queue that remembers what was enqueued."""

    def __init__(self, deps: IngestionDeps):
        self.jobs: list[IngestionJob] = []

        async def runner(job):
            return await run_ingestion_job(job, deps)

        self.inner = InProcessJobQueue(runner, concurrency=2)

    async def enqueue(self, job):
        self.jobs.append(job)
        return await self.inner.enqueue(job)

    async def wait_for_jobs(self, handles):
        await self.inner.wait_for_jobs(handles)


@pytest.fixture
def queue(session_factory, embedder):
    return RecordingQueue(IngestionDeps(session_factory=session_factory, embedder=embedder))


async def _upload(session, seed, queue, files, user_id=None, role=UserRole.CONTENT_CREATOR, lesson_id=None):
    return await accept_upload(
        session,
        lesson_id or seed.lesson_id,
        files,
        user_id=user_id or seed.author_id,
        role=role,
        queue=queue,
    )


async def _count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    @pytest.mark.asyncio
    async def test_too_many_files_rejected_before_any_work(self, async_session, seed, queue, embedder):
        files = [text_file(f"f{i}.txt", f"file {i}") for i in range(4)]

        with pytest.raises(TooManyFilesError, match="Exceeded max number of files"):
            await _upload(async_session, seed, queue, files)

        assert queue.jobs == []
        assert embedder.page_calls == []
        assert await _count(async_session, DocumentModel) == 0

    def test_unsupported_type(self):
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
        files = [UploadedFile(name="a.png", type="image/png", size=len(png), content=png)]

        with pytest.raises(UnsupportedFileTypeError):
            validate_files(files)

    def test_declared_type_cannot_hide_content(self):
        """Magic bytes win over the declared type."""
        pdf = blank_pdf()
        assert sniff_file_type(pdf, "text/plain") == PDF_MIME
        assert sniff_file_type(docx_bytes("hi"), "application/octet-stream") == DOCX_MIME
        assert sniff_file_type(b"plain words", "Text/Plain; charset=utf-8") == "text/plain"

    def test_file_too_large(self):
        big = UploadedFile(name="big.txt", type="text/plain", size=11 * 1024 * 1024, content=b"x")

        with pytest.raises(FileTooLargeError):
            validate_files([big], max_mb_per_file=10)

    def test_checksum_covers_name_and_content(self):
        assert compute_checksum("a.txt", b"same") != compute_checksum("b.txt", b"same")
        assert compute_checksum("a.txt", b"same") == compute_checksum("a.txt", b"same")


# ============================================================================
# Extraction
# ============================================================================


class TestExtraction:
    def test_docx_paragraphs(self):
        pages = extract_pages(docx_bytes("Light reactions.", "", "Calvin cycle."), DOCX_MIME)

        assert len(pages) == 1
        assert pages[0].page_content == "Light reactions.\n\nCalvin cycle."
        assert pages[0].metadata.loc is None

    def test_pdf_pages_are_numbered(self):
        pages = extract_pages(blank_pdf(pages=2), PDF_MIME)

        assert [p.metadata.loc.page_number for p in pages] == [1, 2]
        assert document_metadata(pages)["pdf"]["totalPages"] == 2

    def test_blank_pages_produce_no_chunks(self):
        pages = [
            PageRecord(page_content="  ", metadata=PageMetadata(loc=PageLocation(page_number=1))),
            PageRecord(page_content="Text", metadata=PageMetadata(loc=PageLocation(page_number=2))),
        ]

        chunks = chunk_pages(pages)

        assert [c.metadata.loc.page_number for c in chunks] == [2]


# ============================================================================
# Upload and worker
# ============================================================================


class TestUpload:
    @pytest.mark.asyncio
    async def test_text_file_becomes_ready(self, async_session, seed, queue, embedder):
        result = await _upload(async_session, seed, queue, [text_file()])

        assert result["message"] == "Ingested files successfully"
        [document_id] = result["document_ids"]

        document = await async_session.get(DocumentModel, document_id, populate_existing=True)
        assert document.status == DocumentStatus.READY.value
        assert document.content_type == "text/plain"
        assert len(embedder.page_calls) == 1

        chunks = (
            await async_session.execute(
                select(DocumentChunkModel).where(DocumentChunkModel.document_id == document_id)
            )
        ).scalars().all()
        assert [c.content for c in chunks] == ["Chlorophyll absorbs light."]
        assert chunks[0].embedding == [0.0, 1.0, 0.0]

        events = await get_events(async_session, "document", document_id)
        assert [e.event_type.value for e in events] == ["document.ready"]

    @pytest.mark.asyncio
    async def test_three_pages_one_embedding_call(
        self, async_session, seed, queue, embedder, monkeypatch
    ):
        """All chunks of a file go to the embedder in a single call, page numbers kept."""

        def three_pages(content, content_type):
            return [
                PageRecord(
                    page_content=f"Page {n} text",
                    metadata=PageMetadata(
                        loc=PageLocation(page_number=n), pdf={"totalPages": 3, "info": {"title": "Leaves"}}
                    ),
                )
                for n in (1, 2, 3)
            ]

        monkeypatch.setattr(pipeline, "extract_pages", three_pages)

        pdf = blank_pdf(pages=3)
        result = await _upload(
            async_session,
            seed,
            queue,
            [UploadedFile(name="leaves.pdf", type=PDF_MIME, size=len(pdf), content=pdf)],
        )
        [document_id] = result["document_ids"]

        assert len(embedder.page_calls) == 1
        assert [p.page_content for p in embedder.page_calls[0]] == ["Page 1 text", "Page 2 text", "Page 3 text"]

        chunks = (
            await async_session.execute(
                select(DocumentChunkModel)
                .where(DocumentChunkModel.document_id == document_id)
                .order_by(DocumentChunkModel.chunk_index)
            )
        ).scalars().all()
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert [c.chunk_metadata for c in chunks] == [{"loc": {"pageNumber": n}} for n in (1, 2, 3)]

        document = await async_session.get(DocumentModel, document_id, populate_existing=True)
        assert document.document_metadata == {"pdf": {"totalPages": 3, "info": {"title": "Leaves"}}}

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_failed(self, async_session, seed, queue, embedder):
        """A PDF without text fails without calling the embedder."""
        pdf = blank_pdf()
        result = await _upload(
            async_session,
            seed,
            queue,
            [UploadedFile(name="scan.pdf", type=PDF_MIME, size=len(pdf), content=pdf)],
        )
        [document_id] = result["document_ids"]

        document = await async_session.get(DocumentModel, document_id, populate_existing=True)
        assert document.status == DocumentStatus.FAILED.value
        assert "No text found" in document.error_message
        assert embedder.page_calls == []
        assert await _count(async_session, DocumentChunkModel) == 0

        events = await get_events(async_session, "document", document_id)
        assert [e.event_type.value for e in events] == ["document.failed"]

    @pytest.mark.asyncio
    async def test_embedding_failure_marks_failed(self, async_session, seed, queue, embedder, monkeypatch):
        async def broken(pages):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(embedder, "embed_pages", broken)

        result = await _upload(async_session, seed, queue, [text_file()])
        [document_id] = result["document_ids"]

        document = await async_session.get(DocumentModel, document_id, populate_existing=True)
        assert document.status == DocumentStatus.FAILED.value
        assert document.error_message == "rate limited"

    @pytest.mark.asyncio
    async def test_duplicate_is_linked_not_reingested(self, async_session, seed, second_lesson, queue, embedder):
        first = await _upload(async_session, seed, queue, [text_file()])
        again = await _upload(async_session, seed, queue, [text_file()])
        other = await _upload(async_session, seed, queue, [text_file()], lesson_id=second_lesson.lesson_id)

        [document_id] = first["document_ids"]
        assert again["document_ids"] == []
        assert again["linked_ids"] == [document_id]
        assert other["linked_ids"] == [document_id]

        assert len(embedder.page_calls) == 1
        assert await _count(async_session, DocumentModel) == 1
        assert await _count(async_session, DocumentLessonLinkModel) == 2

    @pytest.mark.asyncio
    async def test_failed_duplicate_is_replaced(self, async_session, seed, queue):
        pdf = blank_pdf()
        upload = UploadedFile(name="scan.pdf", type=PDF_MIME, size=len(pdf), content=pdf)

        first = await _upload(async_session, seed, queue, [upload])
        second = await _upload(async_session, seed, queue, [upload])

        assert second["linked_ids"] == []
        assert second["document_ids"] != first["document_ids"]
        assert await async_session.get(DocumentModel, first["document_ids"][0], populate_existing=True) is None
        assert await _count(async_session, DocumentModel) == 1

    @pytest.mark.asyncio
    async def test_student_cannot_upload(self, async_session, seed, queue):
        with pytest.raises(IngestionForbiddenError):
            await _upload(async_session, seed, queue, [text_file()], user_id=seed.student_id, role=UserRole.STUDENT)

        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_admin_can_upload(self, async_session, seed, queue):
        result = await _upload(async_session, seed, queue, [text_file()], user_id=seed.admin_id, role=UserRole.ADMIN)

        assert len(result["document_ids"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, async_session, seed, queue):
        with pytest.raises(MentorLessonNotFoundError):
            await _upload(async_session, seed, queue, [text_file()], lesson_id="lsn-missing")


# ============================================================================
# Listing and deletion
# ============================================================================


class TestDocuments:
    @pytest.mark.asyncio
    async def test_list_only_ready_documents(self, async_session, seed, queue):
        pdf = blank_pdf()
        await _upload(
            async_session,
            seed,
            queue,
            [text_file(), UploadedFile(name="scan.pdf", type=PDF_MIME, size=len(pdf), content=pdf)],
        )

        items = await list_documents_for_lesson(async_session, seed.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR)

        assert [(i.name, i.type, i.size) for i in items] == [("notes.txt", "text/plain", 26)]
        assert items[0].id.startswith("dlk-")

    @pytest.mark.asyncio
    async def test_list_requires_author_or_admin(self, async_session, seed):
        with pytest.raises(IngestionForbiddenError):
            await list_documents_for_lesson(async_session, seed.lesson_id, seed.student_id, UserRole.STUDENT)

    @pytest.mark.asyncio
    async def test_deleting_last_link_deletes_document(self, async_session, seed, queue):
        await _upload(async_session, seed, queue, [text_file()])
        [item] = await list_documents_for_lesson(async_session, seed.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR)

        result = await delete_document_link(async_session, item.id, seed.author_id, UserRole.CONTENT_CREATOR)

        assert result == {"message": "Successfully deleted document link"}
        assert await _count(async_session, DocumentModel) == 0
        assert await _count(async_session, DocumentChunkModel) == 0
        assert await _count(async_session, DocumentLessonLinkModel) == 0

    @pytest.mark.asyncio
    async def test_shared_document_survives_unlink(self, async_session, seed, second_lesson, queue):
        await _upload(async_session, seed, queue, [text_file()])
        await _upload(async_session, seed, queue, [text_file()], lesson_id=second_lesson.lesson_id)
        [item] = await list_documents_for_lesson(async_session, seed.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR)

        await delete_document_link(async_session, item.id, seed.author_id, UserRole.CONTENT_CREATOR)

        assert await _count(async_session, DocumentModel) == 1
        assert await list_documents_for_lesson(
            async_session, seed.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR
        ) == []
        assert len(
            await list_documents_for_lesson(
                async_session, second_lesson.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR
            )
        ) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_link(self, async_session, seed):
        with pytest.raises(DocumentLinkNotFoundError):
            await delete_document_link(async_session, "dlk-missing", seed.author_id, UserRole.CONTENT_CREATOR)

    @pytest.mark.asyncio
    async def test_student_cannot_delete(self, async_session, seed, queue):
        await _upload(async_session, seed, queue, [text_file()])
        [item] = await list_documents_for_lesson(async_session, seed.lesson_id, seed.author_id, UserRole.CONTENT_CREATOR)

        with pytest.raises(IngestionForbiddenError):
            await delete_document_link(async_session, item.id, seed.student_id, UserRole.STUDENT)
