"""Bounded background worker pool for enrichment jobs.

Jobs are queued on a bounded ``asyncio.Queue`` and drained by a fixed number
of worker tasks, which caps concurrent calls to the inference service.
``submit`` only waits while the queue is full; it never waits for the job
itself. Every finished job publishes an ``EnrichmentEvent``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from email_cache_agent.models import EnrichmentEvent, EnrichmentKind

logger = structlog.get_logger()

Job = Callable[[], Awaitable[Any]]
EventListener = Callable[[EnrichmentEvent], None]


@dataclass(frozen=True)
class _Task:
    message_id: str
    kind: EnrichmentKind
    job: Job


class EnrichmentWorkerPool:
    """Runs enrichment jobs with bounded concurrency and backpressure."""

    def __init__(self, *, workers: int = 2, queue_size: int = 256) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._worker_count = workers
        self._queue_size = queue_size
        self._queue: asyncio.Queue[_Task] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._listeners: list[EventListener] = []
        self._subscribers: set[asyncio.Queue[EnrichmentEvent]] = set()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the worker tasks. Must be called from a running event loop."""

        if self._workers:
            return
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"enrichment-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("enrichment_pool_started", workers=self._worker_count, queue_size=self._queue_size)

    async def submit(self, message_id: str, kind: EnrichmentKind, job: Job) -> None:
        """Queue a job, waiting only while the queue is full."""

        if not self._workers:
            self.start()
        assert self._queue is not None
        await self._queue.put(_Task(message_id=message_id, kind=kind, job=job))
        logger.debug("enrichment_job_queued", message_id=message_id, kind=kind.value, pending=self.pending)

    async def join(self) -> None:
        """Wait until every queued job has finished."""

        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers. Queued jobs that have not started are abandoned."""

        workers, self._workers = self._workers, []
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if workers:
            logger.info("enrichment_pool_stopped", abandoned=self.pending)
        self._queue = None

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback invoked for every finished job."""

        self._listeners.append(listener)

    def subscribe(self, maxsize: int = 100) -> asyncio.Queue[EnrichmentEvent]:
        """Return a queue that receives every finished-job event."""

        q: asyncio.Queue[EnrichmentEvent] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[EnrichmentEvent]) -> None:
        self._subscribers.discard(q)

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            task = await queue.get()
            try:
                await task.job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - background failures are logged only
                logger.exception(
                    "enrichment_job_failed",
                    worker=index,
                    message_id=task.message_id,
                    kind=task.kind.value,
                    error=str(exc),
                )
                self._publish(
                    EnrichmentEvent(message_id=task.message_id, kind=task.kind, ok=False, error=str(exc))
                )
            else:
                self._publish(EnrichmentEvent(message_id=task.message_id, kind=task.kind))
            finally:
                queue.task_done()

    def _publish(self, event: EnrichmentEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # noqa: BLE001
                logger.warning("enrichment_listener_failed", error=str(exc))

        # Never block a worker on a slow subscriber.
        for q in list(self._subscribers):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest and retry once.
                try:
                    q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                try:
                    q.put_nowait(event)
                except asyncio.QueueFull:
                    pass
