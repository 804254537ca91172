"""
Mentor agent and ingestion queue management for the API.

Both are built once during the FastAPI lifespan and shared across
requests. Conversation state lives in the thread's messages, so the agent
itself holds no per-user state.

Document ingestion and search need an embedder; without
``MENTOR_OPENAI_API_KEY`` the mentor still chats but the ingestion
endpoints answer 503.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent.graph import MentorAgent, create_mentor_agent
from mentor.services.ingestion import (
    CeleryJobQueue,
    Embedder,
    InProcessJobQueue,
    IngestionDeps,
    IngestionJob,
    JobQueue,
    OpenAIEmbedder,
    run_ingestion_job,
)
from mentor.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# ── Module-level state (initialised during FastAPI lifespan) ─────────
_agent: MentorAgent | None = None
_queue: JobQueue | None = None


def create_embedder(settings: Settings) -> Embedder | None:
    if not settings.openai_api_key:
        return None
    return OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model)


def create_ingestion_queue(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    embedder: Embedder | None,
) -> JobQueue:
    """
    Build the queue backend selected by ``MENTOR_QUEUE_BACKEND``.

    ``inline`` runs ``run_ingestion_job`` in this process; ``celery``
    hands jobs to ``mentor.worker``.
    """
    if settings.queue_backend == "celery":
        from mentor.worker import celery_app

        return CeleryJobQueue(celery_app)

    deps = IngestionDeps(session_factory=session_factory, embedder=embedder)

    async def runner(job: IngestionJob):
        return await run_ingestion_job(job, deps)

    return InProcessJobQueue(runner, concurrency=settings.worker_concurrency)


def init_services(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create the shared mentor agent and ingestion queue."""
    global _agent, _queue

    settings = get_settings()
    embedder = create_embedder(settings)

    _agent = create_mentor_agent(session_factory, settings=settings, embedder=embedder)

    if embedder is None and settings.queue_backend == "inline":
        logger.warning("MENTOR_OPENAI_API_KEY not set; document ingestion disabled")
        _queue = None
    else:
        _queue = create_ingestion_queue(settings, session_factory, embedder)

    logger.info(f"Mentor services initialised (queue={settings.queue_backend})")


def close_services() -> None:
    global _agent, _queue
    _agent = None
    _queue = None


def get_agent() -> MentorAgent:
    """FastAPI dependency returning the shared mentor agent."""
    if _agent is None:
        raise RuntimeError("Mentor agent not initialized. This should happen in FastAPI lifespan.")
    return _agent


def get_ingestion_queue() -> JobQueue:
    """FastAPI dependency returning the ingestion queue."""
    if _queue is None:
        raise HTTPException(status_code=503, detail="Document ingestion is not configured")
    return _queue
