"""
Queues for the ``document-ingestion`` jobs.

Two backends share one interface:

- ``InProcessJobQueue`` runs jobs as asyncio tasks in the current process,
  bounded by a semaphore (default; used locally and in tests)
- ``CeleryJobQueue`` sends jobs to Celery workers over Redis (``mentor.worker``)

Job failures never propagate to the caller of ``wait_for_jobs``; the
worker records them on the document.
"""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import BaseModel, Field

from mentor.utils.ids import PREFIX_JOB, generate_entity_id

logger = logging.getLogger(__name__)

QUEUE_NAME = "document-ingestion"
TASK_NAME = "mentor.ingest_document"


class IngestionJob(BaseModel):
    """One document to extract, chunk, embed and persist."""

    id: str = Field(default_factory=lambda: generate_entity_id(PREFIX_JOB))
    document_id: str
    file_name: str
    content_type: str
    checksum: str
    content: bytes = Field(repr=False)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form for the Celery broker."""
        payload = self.model_dump(exclude={"content"})
        payload["content_b64"] = base64.b64encode(self.content).decode("ascii")
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IngestionJob":
        data = dict(payload)
        data["content"] = base64.b64decode(data.pop("content_b64"))
        return cls.model_validate(data)


JobRunner = Callable[[IngestionJob], Awaitable[Any]]


class JobQueue(Protocol):
    """Interface shared by the queue backends."""

    async def enqueue(self, job: IngestionJob) -> Any:
        """Submit a job; returns a handle for ``wait_for_jobs``."""
        ...

    async def wait_for_jobs(self, handles: list[Any]) -> None:
        """Wait until every job has finished, successfully or not."""
        ...


class InProcessJobQueue:
    """Runs ingestion jobs as asyncio tasks, at most ``concurrency`` at a time."""

    def __init__(self, runner: JobRunner, concurrency: int = 10):
        self.runner = runner
        self._semaphore = asyncio.Semaphore(concurrency)
        self._tasks: set[asyncio.Task] = set()

    async def _run(self, job: IngestionJob) -> None:
        async with self._semaphore:
            logger.info(f"Running job {job.id} for document {job.document_id}")
            await self.runner(job)

    async def enqueue(self, job: IngestionJob) -> asyncio.Task:
        task = asyncio.create_task(self._run(job), name=f"{QUEUE_NAME}:{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_jobs(self, handles: list[asyncio.Task]) -> None:
        if not handles:
            return

        results = await asyncio.gather(*handles, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Ingestion job crashed: {result}")


class CeleryJobQueue:
    """Sends ingestion jobs to the Celery ``document-ingestion`` queue."""

    def __init__(self, celery_app, timeout: float = 600.0, poll_interval: float = 0.5):
        self.celery_app = celery_app
        self.timeout = timeout
        self.poll_interval = poll_interval

    async def enqueue(self, job: IngestionJob):
        return await asyncio.to_thread(
            self.celery_app.send_task,
            TASK_NAME,
            kwargs={"payload": job.to_payload()},
            queue=QUEUE_NAME,
            task_id=job.id,
        )

    async def wait_for_jobs(self, handles: list) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        pending = list(handles)
        while pending:
            pending = await asyncio.to_thread(_unfinished, pending)
            if not pending:
                break
            if loop.time() >= deadline:
                logger.warning(f"{len(pending)} ingestion jobs still running after {self.timeout}s")
                break
            await asyncio.sleep(self.poll_interval)

        for result in await asyncio.to_thread(_crashed, handles):
            logger.error(f"Ingestion job {result.id} crashed: {result.result}")


# AsyncResult state checks hit the result backend; called off the event loop
def _unfinished(results: list) -> list:
    return [result for result in results if not result.ready()]


def _crashed(results: list) -> list:
    return [result for result in results if result.ready() and result.failed()]
