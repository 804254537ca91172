"""
Event models for the mentor core.

Lifecycle records written in the same transaction as the change they
describe, then delivered to registered handlers by the dispatcher.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base


class EventType(str, Enum):
    """Types of lifecycle events."""

    THREAD_CREATED = "thread.created"
    THREAD_COMPLETED = "thread.completed"
    THREAD_ABANDONED = "thread.abandoned"
    DOCUMENT_READY = "document.ready"
    DOCUMENT_FAILED = "document.failed"


# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class EventBase(BaseModel):
    """Base event fields."""

    entity_type: str = Field(..., description="Type of entity: thread, document")
    entity_id: str
    event_type: EventType
    actor: str = Field(..., description="Who triggered the event")
    payload: dict[str, Any] | None = None


class Event(EventBase):
    """Complete event entity."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    dispatched_at: datetime | None = None


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class EventModel(Base):
    """SQLAlchemy model for events table."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    actor: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_events_entity", "entity_type", "entity_id"),
        Index("idx_events_pending", "dispatched_at", "id"),
    )
