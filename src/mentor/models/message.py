"""
Thread message models.

Insertion order is the replay order: the autoincrement id orders
messages within a thread.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base


class MessageRole(str, Enum):
    """Role of a message in a mentor conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SUMMARY = "summary"  # Sent to the model as a system message


# Roles that never count towards the conversation token budget
CONTEXT_ROLES = (MessageRole.SYSTEM.value, MessageRole.SUMMARY.value)


# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class MessageCreate(BaseModel):
    """Schema for creating a message."""

    thread_id: str
    role: MessageRole
    content: str
    token_count: int = Field(default=0, ge=0)
    tool_name: str | None = None


class Message(BaseModel):
    """Complete message entity."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    thread_id: str
    role: MessageRole
    content: str
    token_count: int
    archived: bool
    tool_name: str | None = None
    created_at: datetime


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class MessageModel(Base):
    """SQLAlchemy model for thread_messages table."""

    __tablename__ = "thread_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_mentor_threads.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tool_name: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (Index("idx_messages_thread", "thread_id", "id"),)
