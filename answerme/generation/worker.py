"""Background worker draining the generation task queue."""

import asyncio
import logging

from answerme.config.settings import Settings, get_settings
from answerme.generation.service import GenerationService
from answerme.models.task import TaskStatus
from answerme.tasks.base import QueuedTask, TaskQueue

logger = logging.getLogger(__name__)


class GenerationWorker:
    """
    Pulls queued tasks and runs them with bounded concurrency.

    A job keeps running once started even if the worker is asked to stop;
    ``run`` waits for in-flight jobs before returning. Queue payloads of
    failed tasks are kept so they can be inspected or requeued.
    """

    def __init__(self, service: GenerationService, task_queue: TaskQueue, settings: Settings | None = None):
        settings = settings or get_settings()
        self.service = service
        self.task_queue = task_queue
        self.poll_interval = settings.queue_poll_interval
        self._semaphore = asyncio.Semaphore(settings.worker_concurrency)
        self._running: set[asyncio.Task] = set()

    @property
    def running_count(self) -> int:
        return len(self._running)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Process tasks until ``stop_event`` is set, then drain in-flight jobs."""
        logger.info("Generation worker started")
        while not stop_event.is_set():
            started = await self.process_next(stop_event)
            if started:
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        if self._running:
            logger.info("Waiting for %d running tasks", len(self._running))
        await self.drain()
        logger.info("Generation worker stopped")

    async def process_next(self, stop_event: asyncio.Event | None = None) -> bool:
        """
        Start the next queued task once a concurrency slot is free.

        Args:
            stop_event: When set while waiting for a slot, nothing is dequeued

        Returns:
            True if a task was started, False if the queue was empty or
            the worker is stopping
        """
        await self._semaphore.acquire()
        if stop_event is not None and stop_event.is_set():
            self._semaphore.release()
            return False
        try:
            queued = await self.task_queue.dequeue()
        except Exception:
            self._semaphore.release()
            logger.exception("Failed to read from the task queue")
            return False

        if queued is None:
            self._semaphore.release()
            return False

        logger.info("Starting task %s for user %d", queued.task_id, queued.owner_id)
        job = asyncio.create_task(self._process(queued))
        self._running.add(job)
        job.add_done_callback(self._running.discard)
        return True

    async def drain(self) -> None:
        """Wait for every running job to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _process(self, queued: QueuedTask) -> None:
        try:
            task = await self.service.execute_task(queued.task_id, queued.owner_id, queued.request)
            status = task.status if task is not None else None
            logger.info("Task %s finished: %s", queued.task_id, status.value if status else "unknown")
            if status is not TaskStatus.FAILED:
                await self.task_queue.complete_task(queued.task_id)
        except Exception:
            logger.exception("Task %s could not be processed", queued.task_id)
        finally:
            self._semaphore.release()
