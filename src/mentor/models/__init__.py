"""
AI-Mentor Core Models.

Exports all Pydantic and SQLAlchemy models for easy importing.
"""

# Base
from .base import Base, TimestampMixin, utcnow

# Course
from .course import (
    AiMentorLesson,
    AiMentorLessonModel,
    CourseModel,
    EnrollmentModel,
    LessonModel,
    MentorLessonContext,
    MentorType,
    UserRole,
)

# Document
from .document import (
    Document,
    DocumentChunk,
    DocumentChunkModel,
    DocumentLessonLinkModel,
    DocumentListItem,
    DocumentModel,
    DocumentStatus,
    PageLocation,
    PageMetadata,
    PageRecord,
    UploadedFile,
)

# Event
from .event import (
    Event,
    EventBase,
    EventModel,
    EventType,
)

# Message
from .message import (
    CONTEXT_ROLES,
    Message,
    MessageCreate,
    MessageModel,
    MessageRole,
)

# Thread
from .thread import (
    Thread,
    ThreadCreate,
    ThreadModel,
    ThreadStatus,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utcnow",
    # Course
    "AiMentorLesson",
    "AiMentorLessonModel",
    "CourseModel",
    "EnrollmentModel",
    "LessonModel",
    "MentorLessonContext",
    "MentorType",
    "UserRole",
    # Document
    "Document",
    "DocumentChunk",
    "DocumentChunkModel",
    "DocumentLessonLinkModel",
    "DocumentListItem",
    "DocumentModel",
    "DocumentStatus",
    "PageLocation",
    "PageMetadata",
    "PageRecord",
    "UploadedFile",
    # Event
    "Event",
    "EventBase",
    "EventModel",
    "EventType",
    # Message
    "CONTEXT_ROLES",
    "Message",
    "MessageCreate",
    "MessageModel",
    "MessageRole",
    # Thread
    "Thread",
    "ThreadCreate",
    "ThreadModel",
    "ThreadStatus",
]
