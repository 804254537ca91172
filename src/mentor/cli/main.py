"""
Main CLI entry point for the AI-mentor admin interface.

Usage:
    mentor tokens count "How many tokens is this?"
    mentor ingest files les-abc123 notes.pdf slides.docx --user usr-1 --role admin
    mentor documents list les-abc123 --user usr-1 --role admin
    mentor threads abandon-stale --hours 24
    mentor events dispatch
    mentor db init
"""

import asyncio
import mimetypes
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

import typer

from mentor.models import UploadedFile, UserRole
from mentor.settings import get_settings

# Main app
app = typer.Typer(name="mentor", help="AI Mentor Admin CLI")


# ============================================================================
# Database Session Helper
# ============================================================================


@asynccontextmanager
async def get_async_session():
    """Get an async database session, disposing the engine afterwards."""
    from mentor.db.connection import close_engine, get_session_factory

    try:
        async with get_session_factory()() as session:
            yield session
    finally:
        await close_engine()


def run_async(coro):
    """Helper to run async functions from Typer commands."""
    return asyncio.run(coro)


# ============================================================================
# Token Commands
# ============================================================================

tokens_app = typer.Typer(help="Token accounting")
app.add_typer(tokens_app, name="tokens")


@tokens_app.command("count")
def tokens_count(
    text: str = typer.Argument(..., help="Text to count"),
    model: str = typer.Option(None, "--model", "-m", help="Tokenizer model (default: MENTOR_TOKEN_MODEL)"),
):
    """Count tokens the way stored messages are counted."""
    from mentor.services.token_service import count_tokens

    model = model or get_settings().token_model
    typer.echo(count_tokens(model, text))


# ============================================================================
# Ingest Commands
# ============================================================================

ingest_app = typer.Typer(help="Import lesson documents")
app.add_typer(ingest_app, name="ingest")


@ingest_app.command("files")
def ingest_files(
    lesson_id: str = typer.Argument(..., help="Lesson to attach the documents to"),
    files: list[Path] = typer.Argument(..., help="PDF, DOCX or text files", exists=True, dir_okay=False),
    user_id: str = typer.Option(..., "--user", "-u", help="Uploading user (course author or admin)"),
    role: UserRole = typer.Option(UserRole.CONTENT_CREATOR, "--role", "-r", help="Role of the uploading user"),
):
    """
    Ingest files for a lesson's mentor in this process.

    Uses the same limits and deduplication as the upload endpoint.
    """
    from mentor.db.connection import get_session_factory
    from mentor.services.ingestion import (
        InProcessJobQueue,
        IngestionDeps,
        OpenAIEmbedder,
        accept_upload,
        run_ingestion_job,
    )

    settings = get_settings()

    uploaded = []
    for path in files:
        content = path.read_bytes()
        uploaded.append(
            UploadedFile(
                name=path.name,
                type=mimetypes.guess_type(path.name)[0] or "",
                size=len(content),
                content=content,
            )
        )

    async def _ingest():
        async with get_async_session() as session:
            deps = IngestionDeps(
                session_factory=get_session_factory(),
                embedder=OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model),
            )

            async def runner(job):
                return await run_ingestion_job(job, deps)

            return await accept_upload(
                session,
                lesson_id,
                uploaded,
                user_id=user_id,
                role=role,
                queue=InProcessJobQueue(runner, concurrency=settings.worker_concurrency),
                max_files=settings.max_files_per_batch,
                max_mb_per_file=settings.max_mb_per_file,
            )

    result = run_async(_ingest())
    typer.echo(result["message"])
    for document_id in result["document_ids"]:
        typer.echo(f"  Ingested: {document_id}")
    for document_id in result["linked_ids"]:
        typer.echo(f"  Linked:   {document_id}")


# ============================================================================
# Document Commands
# ============================================================================

documents_app = typer.Typer(help="Lesson documents")
app.add_typer(documents_app, name="documents")


@documents_app.command("list")
def documents_list(
    lesson_id: str = typer.Argument(..., help="Lesson ID"),
    user_id: str = typer.Option(..., "--user", "-u", help="Course author or admin"),
    role: UserRole = typer.Option(UserRole.CONTENT_CREATOR, "--role", "-r"),
):
    """List the ready documents of a lesson."""
    from mentor.services.ingestion import list_documents_for_lesson

    async def _list():
        async with get_async_session() as session:
            return await list_documents_for_lesson(session, lesson_id, user_id, role)

    documents = run_async(_list())

    if not documents:
        typer.echo("No documents found")
        return

    for item in documents:
        typer.echo(f"{item.id}: {item.name} ({item.type}, {item.size} bytes)")


# ============================================================================
# Thread Commands
# ============================================================================

threads_app = typer.Typer(help="Mentor threads")
app.add_typer(threads_app, name="threads")


@threads_app.command("abandon-stale")
def threads_abandon_stale(
    hours: float = typer.Option(24.0, "--hours", help="Idle time after which active threads are abandoned"),
):
    """Abandon active threads with no activity for the given time."""
    from mentor.services.thread_service import abandon_stale_threads

    async def _abandon():
        async with get_async_session() as session:
            return await abandon_stale_threads(session, timedelta(hours=hours))

    thread_ids = run_async(_abandon())
    typer.echo(f"Abandoned {len(thread_ids)} thread(s)")
    for thread_id in thread_ids:
        typer.echo(f"  {thread_id}")


# ============================================================================
# Event Commands
# ============================================================================

events_app = typer.Typer(help="Outbound events")
app.add_typer(events_app, name="events")


@events_app.command("dispatch")
def events_dispatch(
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum events to dispatch"),
):
    """Deliver pending events to the registered handlers."""
    from mentor.services.event_service import create_default_dispatcher

    async def _dispatch():
        async with get_async_session() as session:
            return await create_default_dispatcher().dispatch_pending(session, limit=limit)

    count = run_async(_dispatch())
    typer.echo(f"Dispatched {count} event(s)")


# ============================================================================
# Database Commands
# ============================================================================

db_app = typer.Typer(help="Database operations")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create missing tables on MENTOR_DATABASE_URL."""
    from mentor.db.connection import close_engine, create_tables

    async def _init():
        try:
            await create_tables()
        finally:
            await close_engine()

    typer.echo("Creating tables...")
    run_async(_init())
    typer.echo("Database initialized successfully")


if __name__ == "__main__":
    app()
