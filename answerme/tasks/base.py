"""Contracts for the generation task queue and progress store."""

from abc import ABC, abstractmethod
from typing import Callable

from pydantic import BaseModel

from answerme.models.question import GenerationRequest
from answerme.models.task import GenerationTask

TaskMutator = Callable[[GenerationTask], None]


class QueuedTask(BaseModel):
    """Payload of a queued generation task."""

    task_id: str
    owner_id: int
    request: GenerationRequest


class TaskQueue(ABC):
    """
    FIFO queue of generation tasks.

    A dequeued task's payload stays available until ``complete_task`` is
    called, so a task whose consumer died can be pushed again with
    ``requeue``. Delivery is at-least-once for a single consumer.
    """

    @abstractmethod
    async def enqueue(self, task_id: str, owner_id: int, request: GenerationRequest) -> None: ...

    @abstractmethod
    async def dequeue(self) -> QueuedTask | None:
        """Next task, or None when the queue is empty."""

    @abstractmethod
    async def complete_task(self, task_id: str) -> None:
        """Drop the payload of a finished task."""

    @abstractmethod
    async def queue_length(self) -> int: ...

    @abstractmethod
    async def requeue(self, task_id: str) -> bool:
        """Push a task back if its payload still exists; False otherwise."""


class ProgressStore(ABC):
    """
    Progress records keyed by task id.

    ``update`` is the only way to mutate a stored record; its
    read-modify-write is atomic with respect to other updates of the same key.
    """

    @abstractmethod
    async def get(self, task_id: str) -> GenerationTask | None:
        """A copy of the record, or None when absent or expired."""

    @abstractmethod
    async def set(self, task_id: str, task: GenerationTask, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    async def update(self, task_id: str, mutator: TaskMutator) -> GenerationTask | None:
        """
        Apply ``mutator`` to the stored record and save it.

        Args:
            task_id: Task to update
            mutator: Function modifying the record in place

        Returns:
            The updated record, or None when the task does not exist
        """

    @abstractmethod
    async def remove(self, task_id: str) -> None: ...
