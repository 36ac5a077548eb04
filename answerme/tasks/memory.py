"""In-process task queue and progress store for single-instance deployments."""

import asyncio
import time
from collections import deque
from typing import Callable

from answerme.models.question import GenerationRequest
from answerme.models.task import GenerationTask
from answerme.tasks.base import ProgressStore, QueuedTask, TaskMutator, TaskQueue


class InMemoryTaskQueue(TaskQueue):
    """FIFO of task ids with a side map of payloads; lives as long as the process."""

    def __init__(self):
        self._pending: deque[str] = deque()
        self._payloads: dict[str, QueuedTask] = {}
        self._lock = asyncio.Lock()

    async def enqueue(self, task_id: str, owner_id: int, request: GenerationRequest) -> None:
        async with self._lock:
            self._payloads[task_id] = QueuedTask(task_id=task_id, owner_id=owner_id, request=request)
            self._pending.append(task_id)

    async def dequeue(self) -> QueuedTask | None:
        async with self._lock:
            while self._pending:
                task_id = self._pending.popleft()
                payload = self._payloads.get(task_id)
                if payload is not None:
                    return payload
            return None

    async def complete_task(self, task_id: str) -> None:
        async with self._lock:
            self._payloads.pop(task_id, None)

    async def queue_length(self) -> int:
        return len(self._pending)

    async def requeue(self, task_id: str) -> bool:
        async with self._lock:
            if task_id not in self._payloads:
                return False
            self._pending.append(task_id)
            return True


class InMemoryProgressStore(ProgressStore):
    """
    Progress records in a dict, with one lock per task id.

    Updates to different tasks never wait on each other. Records expire after
    their TTL; reads return deep copies.
    """

    def __init__(self, default_ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic):
        self._records: dict[str, tuple[GenerationTask, float | None]] = {}
        self._ttls: dict[str, int | None] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    def _forget(self, task_id: str) -> None:
        self._records.pop(task_id, None)
        self._ttls.pop(task_id, None)
        self._locks.pop(task_id, None)

    def _lock_for(self, task_id: str) -> asyncio.Lock:
        return self._locks.setdefault(task_id, asyncio.Lock())

    def _expiry(self, ttl_seconds: int | None) -> float | None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        return self._clock() + ttl if ttl else None

    def _live(self, task_id: str) -> tuple[GenerationTask, float | None] | None:
        entry = self._records.get(task_id)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._forget(task_id)
            return None
        return entry

    def _sweep(self) -> None:
        now = self._clock()
        for task_id, (_, expires_at) in list(self._records.items()):
            lock = self._locks.get(task_id)
            # A held lock means a writer is mid-update on this key
            if expires_at is not None and now >= expires_at and not (lock and lock.locked()):
                self._forget(task_id)

    async def get(self, task_id: str) -> GenerationTask | None:
        entry = self._live(task_id)
        return entry[0].model_copy(deep=True) if entry else None

    async def set(self, task_id: str, task: GenerationTask, ttl_seconds: int | None = None) -> None:
        self._sweep()
        async with self._lock_for(task_id):
            self._ttls[task_id] = ttl_seconds
            self._records[task_id] = (task.model_copy(deep=True), self._expiry(ttl_seconds))

    async def update(self, task_id: str, mutator: TaskMutator) -> GenerationTask | None:
        self._sweep()
        async with self._lock_for(task_id):
            entry = self._live(task_id)
            if entry is None:
                return None
            task = entry[0].model_copy(deep=True)
            mutator(task)
            # TTL restarts on every write
            self._records[task_id] = (task, self._expiry(self._ttls.get(task_id)))
            return task.model_copy(deep=True)

    async def remove(self, task_id: str) -> None:
        async with self._lock_for(task_id):
            self._forget(task_id)
