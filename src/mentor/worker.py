"""
Celery worker for the ``document-ingestion`` queue.

Start with:
    celery -A mentor.worker worker -Q document-ingestion -c 10

Used when MENTOR_QUEUE_BACKEND=celery; the API then enqueues through
``CeleryJobQueue`` and this worker runs ``run_ingestion_job``.
"""

import asyncio
import logging

from celery import Celery

from mentor.db.connection import close_engine, get_session_factory
from mentor.models import DocumentStatus
from mentor.services.ingestion.embedding import OpenAIEmbedder
from mentor.services.ingestion.pipeline import IngestionDeps, mark_document_failed, run_ingestion_job
from mentor.services.ingestion.queue import QUEUE_NAME, TASK_NAME, IngestionJob
from mentor.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Build the Celery app for the ingestion queue."""
    settings = settings or get_settings()
    broker = settings.redis_url or "redis://localhost:6379/1"

    app = Celery("mentor", broker=broker, backend=broker)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        enable_utc=True,
        task_acks_late=True,  # Acknowledge after task completes
        task_reject_on_worker_lost=True,  # Requeue if worker crashes
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.worker_concurrency,
        result_expires=3600,
        task_routes={TASK_NAME: {"queue": QUEUE_NAME}},
        task_default_queue=QUEUE_NAME,
    )
    return app


celery_app = create_celery_app()


async def _ingest(payload: dict) -> str:
    """Run one job; a job that cannot even be set up still fails its document."""
    session_factory = get_session_factory()
    try:
        settings = get_settings()
        try:
            job = IngestionJob.from_payload(payload)
            embedder = OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model)
        except Exception as e:
            document_id = payload.get("document_id")
            logger.error(f"Could not start ingestion of document {document_id}: {e}")
            if document_id:
                await mark_document_failed(
                    session_factory, document_id, str(e) or type(e).__name__, payload.get("file_name")
                )
            return DocumentStatus.FAILED.value

        status = await run_ingestion_job(job, IngestionDeps(session_factory=session_factory, embedder=embedder))
    finally:
        # Each task runs in a fresh event loop; pooled connections can't outlive it
        await close_engine()
    return status.value


@celery_app.task(name=TASK_NAME)
def ingest_document_task(payload: dict) -> dict:
    """Run one ingestion job; the terminal status is recorded on the document."""
    logger.info(f"Ingestion task for document {payload.get('document_id')}")
    status = asyncio.run(_ingest(payload))
    return {"document_id": payload.get("document_id"), "status": status}
