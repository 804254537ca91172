"""
Lesson document ingestion.

Upload acceptance, the ``document-ingestion`` queue, the worker routine
(extract, chunk, embed, persist) and document bookkeeping.
"""

from .documents import (
    DocumentLinkNotFoundError,
    IngestionForbiddenError,
    MentorLessonNotFoundError,
    compute_checksum,
    delete_document_link,
    list_documents_for_lesson,
)
from .embedding import Embedder, OpenAIEmbedder
from .extraction import ExtractionError, chunk_pages, extract_pages, sniff_file_type
from .pipeline import EmbeddingMismatchError, IngestionDeps, mark_document_failed, run_ingestion_job
from .queue import CeleryJobQueue, InProcessJobQueue, IngestionJob, JobQueue
from .upload import (
    FileTooLargeError,
    TooManyFilesError,
    UnsupportedFileTypeError,
    accept_upload,
    check_file_count,
    check_file_size,
    validate_files,
)

__all__ = [
    "CeleryJobQueue",
    "DocumentLinkNotFoundError",
    "Embedder",
    "EmbeddingMismatchError",
    "ExtractionError",
    "FileTooLargeError",
    "InProcessJobQueue",
    "IngestionDeps",
    "IngestionForbiddenError",
    "IngestionJob",
    "JobQueue",
    "MentorLessonNotFoundError",
    "OpenAIEmbedder",
    "TooManyFilesError",
    "UnsupportedFileTypeError",
    "accept_upload",
    "check_file_count",
    "check_file_size",
    "chunk_pages",
    "compute_checksum",
    "delete_document_link",
    "extract_pages",
    "list_documents_for_lesson",
    "mark_document_failed",
    "run_ingestion_job",
    "sniff_file_type",
    "validate_files",
]
