"""
Document models for retrieval-augmented mentor context.

A document is uploaded once (deduplicated by checksum) and linked to one
or more mentor-lessons. Its extracted pages become chunks with one
embedding each.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, TimestampMixin


class DocumentStatus(str, Enum):
    """Ingestion status of a document."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


# ============================================================================
# Extraction intermediate representation
# ============================================================================


class PageLocation(BaseModel):
    """Where a page record came from in its source file."""

    model_config = ConfigDict(populate_by_name=True)

    page_number: int | None = Field(default=None, alias="pageNumber")


class PageMetadata(BaseModel):
    """Metadata carried by an extracted page record."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    loc: PageLocation | None = None


class PageRecord(BaseModel):
    """One extracted page: the unit of chunking and embedding."""

    model_config = ConfigDict(populate_by_name=True)

    page_content: str = Field(..., alias="pageContent")
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    id: str | None = None


# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class UploadedFile(BaseModel):
    """A file received for ingestion."""

    name: str
    type: str
    size: int = Field(..., ge=0)
    content: bytes = Field(default=b"", repr=False)


class Document(BaseModel):
    """Complete document entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    content_type: str
    byte_size: int
    checksum: str
    status: DocumentStatus
    error_message: str | None = None
    created_at: datetime


class DocumentListItem(BaseModel):
    """Document as listed for a lesson; ``id`` is the lesson link id."""

    id: str
    name: str
    type: str
    size: int


class DocumentChunk(BaseModel):
    """A persisted chunk with its embedding."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    document_id: str
    chunk_index: int
    content: str
    chunk_metadata: dict[str, Any] | None = None
    embedding: list[float]


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class DocumentModel(Base, TimestampMixin):
    """SQLAlchemy model for documents table."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(200), nullable=False)
    byte_size: Mapped[int] = mapped_column(Integer, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)


class DocumentLessonLinkModel(Base):
    """Assignment of a document to a mentor-lesson."""

    __tablename__ = "document_lesson_links"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    ai_mentor_lesson_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_mentor_lessons.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "document_id", "ai_mentor_lesson_id", name="uq_document_lesson_links_pair"
        ),
    )


class DocumentChunkModel(Base):
    """SQLAlchemy model for document_chunks table."""

    __tablename__ = "document_chunks"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("idx_chunks_document_index", "document_id", "chunk_index"),)
