"""Task queue and progress store for background generation."""

from .base import ProgressStore, QueuedTask, TaskQueue
from .factory import create_task_backends
from .memory import InMemoryProgressStore, InMemoryTaskQueue
from .redis_backend import RedisProgressStore, RedisTaskQueue

__all__ = [
    "ProgressStore",
    "QueuedTask",
    "TaskQueue",
    "create_task_backends",
    "InMemoryProgressStore",
    "InMemoryTaskQueue",
    "RedisProgressStore",
    "RedisTaskQueue",
]
