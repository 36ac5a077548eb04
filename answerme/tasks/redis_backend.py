"""Redis-backed task queue and progress store for multi-instance deployments.

The queue is a list (LPUSH on enqueue, RPOP on dequeue) plus one TTL'd key per
task payload. The payload is deleted only by ``complete_task`` so a task whose
consumer died can be requeued. A single consumer is assumed; concurrent
consumers would need a distributed lock.
"""

import logging

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import WatchError

from answerme.models.question import GenerationRequest
from answerme.models.task import GenerationTask
from answerme.tasks.base import ProgressStore, QueuedTask, TaskMutator, TaskQueue

logger = logging.getLogger(__name__)

QUEUE_KEY = "ai-gen:queue"
TASK_DATA_KEY_PREFIX = "ai-gen:task:data:"
PROGRESS_KEY_PREFIX = "ai-gen:progress:"


def create_redis_client(url: str) -> redis.Redis:
    """Redis client returning ``str`` values."""
    return redis.from_url(url, encoding="utf-8", decode_responses=True)


class RedisTaskQueue(TaskQueue):
    def __init__(self, client: redis.Redis, task_ttl_seconds: int):
        self._redis = client
        # Payloads outlive the progress record so a slow task never loses its data
        self._payload_ttl = task_ttl_seconds * 2

    @staticmethod
    def _data_key(task_id: str) -> str:
        return f"{TASK_DATA_KEY_PREFIX}{task_id}"

    async def enqueue(self, task_id: str, owner_id: int, request: GenerationRequest) -> None:
        payload = QueuedTask(task_id=task_id, owner_id=owner_id, request=request)
        await self._redis.set(self._data_key(task_id), payload.model_dump_json(), ex=self._payload_ttl)
        await self._redis.lpush(QUEUE_KEY, task_id)
        logger.info("Task %s queued for user %d", task_id, owner_id)

    async def dequeue(self) -> QueuedTask | None:
        task_id = await self._redis.rpop(QUEUE_KEY)
        if not task_id:
            return None

        raw = await self._redis.get(self._data_key(task_id))
        if not raw:
            logger.warning("Payload of task %s is missing", task_id)
            return None

        try:
            return QueuedTask.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Payload of task %s is unreadable: %s", task_id, e)
            return None

    async def complete_task(self, task_id: str) -> None:
        await self._redis.delete(self._data_key(task_id))
        logger.debug("Payload of task %s removed", task_id)

    async def queue_length(self) -> int:
        return int(await self._redis.llen(QUEUE_KEY))

    async def requeue(self, task_id: str) -> bool:
        if not await self._redis.exists(self._data_key(task_id)):
            return False
        await self._redis.lpush(QUEUE_KEY, task_id)
        logger.info("Task %s requeued", task_id)
        return True


class RedisProgressStore(ProgressStore):
    """Progress records as JSON strings with a per-key TTL refreshed on write."""

    def __init__(self, client: redis.Redis, task_ttl_seconds: int):
        self._redis = client
        self._ttl = task_ttl_seconds

    @staticmethod
    def _key(task_id: str) -> str:
        return f"{PROGRESS_KEY_PREFIX}{task_id}"

    async def get(self, task_id: str) -> GenerationTask | None:
        raw = await self._redis.get(self._key(task_id))
        return GenerationTask.model_validate_json(raw) if raw else None

    async def set(self, task_id: str, task: GenerationTask, ttl_seconds: int | None = None) -> None:
        await self._redis.set(self._key(task_id), task.model_dump_json(), ex=ttl_seconds or self._ttl)

    async def update(self, task_id: str, mutator: TaskMutator) -> GenerationTask | None:
        key = self._key(task_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if not raw:
                        await pipe.unwatch()
                        return None
                    task = GenerationTask.model_validate_json(raw)
                    mutator(task)
                    pipe.multi()
                    pipe.set(key, task.model_dump_json(), ex=self._ttl)
                    await pipe.execute()
                    return task
                except WatchError:
                    # Another writer touched the key; read it again
                    logger.debug("Concurrent update of task %s, retrying", task_id)
                    continue

    async def remove(self, task_id: str) -> None:
        await self._redis.delete(self._key(task_id))
