"""Selection of the task queue / progress store backend."""

import logging

from answerme.config.settings import Settings
from answerme.tasks.base import ProgressStore, TaskQueue
from answerme.tasks.memory import InMemoryProgressStore, InMemoryTaskQueue
from answerme.tasks.redis_backend import RedisProgressStore, RedisTaskQueue, create_redis_client

logger = logging.getLogger(__name__)


def create_task_backends(settings: Settings) -> tuple[TaskQueue, ProgressStore]:
    """
    Build the queue and progress store configured by ``TASK_BACKEND``.

    Args:
        settings: Application settings

    Returns:
        Tuple of (task queue, progress store) sharing one backend
    """
    if settings.task_backend == "redis":
        logger.info("Using Redis task backend at %s", settings.redis_url)
        client = create_redis_client(settings.redis_url)
        return (
            RedisTaskQueue(client, settings.task_ttl_seconds),
            RedisProgressStore(client, settings.task_ttl_seconds),
        )

    logger.info("Using in-memory task backend")
    return InMemoryTaskQueue(), InMemoryProgressStore(settings.task_ttl_seconds)
