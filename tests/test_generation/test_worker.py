"""Tests for the background generation worker."""

import asyncio

import pytest

from answerme.generation.service import GenerationService
from answerme.generation.worker import GenerationWorker
from answerme.models.question import ProviderResponse
from answerme.models.task import TaskStatus
from answerme.providers.factory import ProviderFactory

from conftest import OWNER_ID, ScriptedProvider, make_batch


class SlowProvider(ScriptedProvider):
    """Provider that yields to the loop and tracks how many calls overlap."""

    def __init__(self):
        super().__init__([make_batch(5)])
        self.active = 0
        self.max_active = 0

    async def generate(self, credentials, request, count=None) -> ProviderResponse:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().generate(credentials, request, count)
        finally:
            self.active -= 1


class GatedProvider(ScriptedProvider):
    """Provider whose calls block until ``gate`` is set."""

    def __init__(self):
        super().__init__([make_batch(5)])
        self.gate = asyncio.Event()

    async def generate(self, credentials, request, count=None) -> ProviderResponse:
        await self.gate.wait()
        return await super().generate(credentials, request, count)


@pytest.fixture
def worker(service, task_queue, settings) -> GenerationWorker:
    return GenerationWorker(service, task_queue, settings)


async def wait_until_terminal(service, task_ids: list[str], timeout: float = 5.0) -> None:
    async def poll() -> None:
        while True:
            tasks = [await service.get_progress(OWNER_ID, task_id) for task_id in task_ids]
            if all(task.is_terminal for task in tasks):
                return
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


class TestGenerationWorker:
    """Test GenerationWorker."""

    async def test_process_next_on_empty_queue(self, worker):
        """Test that an empty queue starts nothing."""
        assert await worker.process_next() is False
        assert worker.running_count == 0

    async def test_processes_queued_tasks(self, service, worker, task_queue, sample_request):
        """Test that queued tasks are executed and their payloads cleaned up."""
        task_ids = [await service.start_async(OWNER_ID, sample_request) for _ in range(3)]

        while await worker.process_next():
            pass
        await worker.drain()

        for task_id in task_ids:
            task = await service.get_progress(OWNER_ID, task_id)
            assert task.status is TaskStatus.COMPLETED
            assert not await task_queue.requeue(task_id)
        assert await task_queue.queue_length() == 0

    async def test_failed_task_payload_is_kept(self, service, worker, provider, task_queue, sample_request):
        """Test that a failed task can be requeued afterwards."""
        provider.responses = [ProviderResponse.failure("401", "invalid API key")]
        task_id = await service.start_async(OWNER_ID, sample_request)

        await worker.process_next()
        await worker.drain()

        assert (await service.get_progress(OWNER_ID, task_id)).status is TaskStatus.FAILED
        assert await task_queue.requeue(task_id)

    async def test_concurrency_is_bounded(
        self, credential_store, storage, task_queue, progress_store, settings, sample_request
    ):
        """Test that no more than WORKER_CONCURRENCY jobs run at once."""
        provider = SlowProvider()
        service = GenerationService(
            ProviderFactory([provider]), credential_store, storage, task_queue, progress_store, settings
        )
        worker = GenerationWorker(service, task_queue, settings)
        task_ids = [await service.start_async(OWNER_ID, sample_request) for _ in range(5)]

        while await worker.process_next():
            pass
        await worker.drain()

        await wait_until_terminal(service, task_ids)
        assert provider.max_active == settings.worker_concurrency

    async def test_run_until_stopped(self, service, worker, sample_request):
        """Test the polling loop picks up tasks submitted while it runs and drains on stop."""
        stop = asyncio.Event()
        runner = asyncio.create_task(worker.run(stop))

        task_ids = [await service.start_async(OWNER_ID, sample_request) for _ in range(2)]
        await wait_until_terminal(service, task_ids)

        stop.set()
        await asyncio.wait_for(runner, timeout=5.0)

        assert worker.running_count == 0
        for task_id in task_ids:
            assert (await service.get_progress(OWNER_ID, task_id)).status is TaskStatus.COMPLETED

    async def test_stop_while_waiting_for_a_slot(
        self, credential_store, storage, task_queue, progress_store, settings, sample_request
    ):
        """Test that a stop requested while every slot is busy does not start another task."""
        provider = GatedProvider()
        service = GenerationService(
            ProviderFactory([provider]), credential_store, storage, task_queue, progress_store, settings
        )
        worker = GenerationWorker(service, task_queue, settings)
        for _ in range(settings.worker_concurrency + 1):
            await service.start_async(OWNER_ID, sample_request)
        for _ in range(settings.worker_concurrency):
            assert await worker.process_next()

        stop = asyncio.Event()
        waiting = asyncio.create_task(worker.process_next(stop))
        await asyncio.sleep(0.01)
        assert not waiting.done()

        stop.set()
        provider.gate.set()

        assert await asyncio.wait_for(waiting, timeout=5.0) is False
        await worker.drain()
        assert await task_queue.queue_length() == 1
