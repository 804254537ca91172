"""
Database management for the FastAPI application.

This module handles database initialization and cleanup within
the FastAPI event loop, ensuring connection pooling works correctly.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mentor.db.connection import create_engine_for_url
from mentor.settings import get_settings

# Module-level state (initialized in startup)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_database() -> None:
    """
    Initialize the database engine and session factory.

    MUST be called inside the FastAPI lifespan (startup event)
    to ensure the pool is created in the correct event loop.
    """
    global _engine, _session_factory

    settings = get_settings()
    _engine = create_engine_for_url(settings.database_url, echo=settings.log_level == "DEBUG")

    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_database() -> None:
    """Close the database engine and release all connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating sessions."""
    if _session_factory is None:
        raise RuntimeError(
            "Database not initialized. Call init_database() first. "
            "This should happen automatically in FastAPI lifespan."
        )
    return _session_factory


async def get_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Services commit their own work; anything left pending on error is
    rolled back.
    """
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
