"""
Conversation thread models.

A thread is one AI-mentor conversation between a user and the mentor
configured on a lesson. Messages live in ``thread_messages``.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class ThreadStatus(str, Enum):
    """Thread lifecycle status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class ThreadCreate(BaseModel):
    """Schema for creating a thread."""

    ai_mentor_lesson_id: str
    user_id: str
    user_language: str = Field(default="en", min_length=2, max_length=20)
    tenant_id: str | None = None


class Thread(BaseModel):
    """Complete thread entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    ai_mentor_lesson_id: str
    lesson_id: str
    user_id: str
    tenant_id: str | None = None
    user_language: str
    status: ThreadStatus
    created_at: datetime
    updated_at: datetime


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class ThreadModel(Base, TimestampMixin):
    """SQLAlchemy model for ai_mentor_threads table."""

    __tablename__ = "ai_mentor_threads"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    ai_mentor_lesson_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_mentor_lessons.id", ondelete="CASCADE"), nullable=False
    )
    lesson_id: Mapped[str] = mapped_column(
        String, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(String, nullable=True)
    user_language: Mapped[str] = mapped_column(String(20), nullable=False, default="en")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (
        Index("idx_thread_user", "user_id"),
        Index("idx_thread_lesson_user", "lesson_id", "user_id"),
    )
