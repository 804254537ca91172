"""
Text extraction and chunking for lesson documents.

Extraction turns an uploaded file into page records; chunking keeps one
chunk per non-blank page record, carrying its page number.
"""

import io
import logging
import zipfile

from docx import Document as DocxDocument
from pypdf import PdfReader

from mentor.exceptions import MentorError
from mentor.models import PageLocation, PageMetadata, PageRecord

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

ALLOWED_FILE_TYPES = (PDF_MIME, DOCX_MIME, TEXT_MIME)

# Format: (magic_bytes, mime_type)
FILE_SIGNATURES = [
    (b"%PDF", PDF_MIME),
    (b"PK\x03\x04", "application/zip"),
]


class ExtractionError(MentorError):
    """Raised when text cannot be extracted from a file."""

    pass


def normalize_mime(content_type: str) -> str:
    """Drop parameters and case: ``Text/Plain; charset=utf-8`` -> ``text/plain``."""
    return content_type.split(";", 1)[0].strip().lower()


def sniff_file_type(content: bytes, declared_type: str) -> str:
    """
    Detect a file's MIME type from its magic bytes.

    ZIP containers are inspected for ``word/document.xml`` to recognise
    DOCX. Files without a known signature (plain text) fall back to the
    declared type.
    """
    header = content[:8]
    detected = None
    for magic_bytes, mime_type in FILE_SIGNATURES:
        if header.startswith(magic_bytes):
            detected = mime_type
            break

    if detected == "application/zip":
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                if any(name == "word/document.xml" for name in archive.namelist()):
                    detected = DOCX_MIME
        except zipfile.BadZipFile as e:
            logger.warning(f"Failed to inspect ZIP structure: {e}")

    return detected or normalize_mime(declared_type)


def _page(text: str, page_number: int | None, **extra) -> PageRecord:
    loc = PageLocation(page_number=page_number) if page_number is not None else None
    return PageRecord(page_content=text, metadata=PageMetadata(loc=loc, **extra))


def _extract_pdf(content: bytes) -> list[PageRecord]:
    reader = PdfReader(io.BytesIO(content))
    total = len(reader.pages)

    info: dict[str, str] = {}
    if reader.metadata:
        for key in ("/Title", "/Author", "/Subject"):
            value = reader.metadata.get(key)
            if value:
                info[key.lstrip("/").lower()] = str(value)

    pages = []
    for number, page in enumerate(reader.pages, start=1):
        text = " ".join((page.extract_text() or "").split())
        pages.append(_page(text, number, pdf={"totalPages": total, "info": info}))
    return pages


def _extract_docx(content: bytes) -> list[PageRecord]:
    doc = DocxDocument(io.BytesIO(content))
    text = "\n\n".join(p.text for p in doc.paragraphs if p.text.strip())

    extra = {}
    if doc.core_properties.title:
        extra["docx"] = {"title": doc.core_properties.title}
    return [_page(text, None, **extra)]


def _extract_text(content: bytes) -> list[PageRecord]:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        text = content.decode("latin-1")
    return [_page(text, None)]


_EXTRACTORS = {
    PDF_MIME: _extract_pdf,
    DOCX_MIME: _extract_docx,
    TEXT_MIME: _extract_text,
}


def extract_pages(content: bytes, content_type: str) -> list[PageRecord]:
    """
    Extract page records from file content.

    Args:
        content: Raw file bytes
        content_type: Declared MIME type (magic bytes take precedence)

    Returns:
        Page records in document order

    Raises:
        ExtractionError: Unsupported type or unreadable content
    """
    mime = sniff_file_type(content, content_type)
    extractor = _EXTRACTORS.get(mime)
    if extractor is None:
        raise ExtractionError(f"Unsupported file type: {mime}")

    try:
        pages = extractor(content)
    except Exception as e:
        raise ExtractionError(f"Failed to extract text from {mime}: {e}") from e

    logger.debug(f"Extracted {len(pages)} page records from {mime}")
    return pages


def chunk_pages(pages: list[PageRecord]) -> list[PageRecord]:
    """One chunk per page record; blank pages are dropped."""
    return [page for page in pages if page.page_content.strip()]


def document_metadata(pages: list[PageRecord]) -> dict:
    """File-level metadata: the first page's metadata without its location."""
    if not pages:
        return {}
    return pages[0].metadata.model_dump(by_alias=True, exclude={"loc"}, exclude_none=True)
