"""
Pytest configuration and fixtures for the AI-mentor tests.

Tests run against a throwaway SQLite file through aiosqlite; ingestion
workers open their own sessions, so the database must be shared across
connections.
"""

from collections.abc import AsyncGenerator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mentor.models import (
    AiMentorLessonModel,
    Base,
    CourseModel,
    EnrollmentModel,
    LessonModel,
    PageRecord,
)
from mentor.services import token_service
from mentor.settings import clear_settings_cache

AUTHOR_ID = "usr-author"
STUDENT_ID = "usr-student"
OTHER_STUDENT_ID = "usr-other"
ADMIN_ID = "usr-admin"


# ============================================================================
# Settings / tokenizer isolation
# ============================================================================


class WordEncoding:
    """Stand-in tokenizer: one token per whitespace-separated word."""

    def encode(self, text: str) -> list[str]:
        return text.split()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Fresh settings per test; no tokenizer downloads."""
    monkeypatch.setattr(token_service, "_encoding_for", lambda model: WordEncoding())
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Database
# ============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    """Create a test database engine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mentor.db'}", echo=False)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def seed(async_session):
    """
    One course by AUTHOR_ID with a lesson and its mentor-lesson.

    STUDENT_ID is enrolled; OTHER_STUDENT_ID is not.
    """
    async_session.add(CourseModel(id="crs-1", tenant_id="tnt-1", title="Biology", author_id=AUTHOR_ID))
    async_session.add(LessonModel(id="lsn-1", course_id="crs-1", title="Photosynthesis"))
    async_session.add(
        AiMentorLessonModel(
            id="aml-1",
            lesson_id="lsn-1",
            name="Sprout",
            instructions="Explain how plants turn light into energy.",
            completion_conditions="1. Mentions chlorophyll\n2. Mentions glucose",
            mentor_type="mentor",
        )
    )
    async_session.add(EnrollmentModel(id="enr-1", course_id="crs-1", student_id=STUDENT_ID))
    await async_session.commit()

    return SimpleNamespace(
        course_id="crs-1",
        lesson_id="lsn-1",
        mentor_lesson_id="aml-1",
        author_id=AUTHOR_ID,
        student_id=STUDENT_ID,
        other_student_id=OTHER_STUDENT_ID,
        admin_id=ADMIN_ID,
    )


@pytest_asyncio.fixture
async def second_lesson(async_session, seed):
    """Another lesson with a mentor in the same course."""
    async_session.add(LessonModel(id="lsn-2", course_id=seed.course_id, title="Respiration"))
    async_session.add(
        AiMentorLessonModel(id="aml-2", lesson_id="lsn-2", name="Sprout", instructions="Explain respiration.")
    )
    await async_session.commit()
    return SimpleNamespace(lesson_id="lsn-2", mentor_lesson_id="aml-2")


# ============================================================================
# Fakes for external services
# ============================================================================


class FakeEmbedder:
    """Records calls; vectors come from ``vectors_by_text`` or a constant."""

    def __init__(self, vectors_by_text: dict[str, list[float]] | None = None, query_vector=None):
        self.vectors_by_text = vectors_by_text or {}
        self.query_vector = query_vector or [1.0, 0.0, 0.0]
        self.page_calls: list[list[PageRecord]] = []
        self.queries: list[str] = []

    async def embed_pages(self, pages: list[PageRecord]) -> list[list[float]]:
        self.page_calls.append(list(pages))
        return [self.vectors_by_text.get(p.page_content, [0.0, 1.0, 0.0]) for p in pages]

    async def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return self.query_vector


class ToolCallingFakeModel(GenericFakeChatModel):
    """Scripted chat model that accepts tools and records every input."""

    received: list = []

    def bind_tools(self, tools, **kwargs):
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.received.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


def scripted_model(*replies) -> ToolCallingFakeModel:
    """Chat model answering with ``replies`` in order (str or AIMessage)."""
    return ToolCallingFakeModel(messages=iter(replies), received=[])


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def make_embedder():
    return FakeEmbedder


@pytest.fixture
def make_model():
    """Factory for scripted chat models: ``make_model("hi", AIMessage(...))``."""
    return scripted_model
