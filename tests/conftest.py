"""Shared test fixtures and configuration for pytest."""

import json
from typing import Any, Callable

import httpx
import pytest

from answerme.config.settings import Settings
from answerme.credentials.store import InMemoryCredentialStore
from answerme.generation.service import GenerationService
from answerme.models.credentials import ProviderCredentials
from answerme.models.question import (
    ChoiceData,
    GeneratedQuestion,
    GenerationRequest,
    ProviderResponse,
    QuestionDifficulty,
    QuestionType,
)
from answerme.providers.base import AIProvider
from answerme.providers.factory import ProviderFactory
from answerme.storage.memory import InMemoryStorage
from answerme.tasks.memory import InMemoryProgressStore, InMemoryTaskQueue

OWNER_ID = 1
OTHER_OWNER_ID = 2


class ScriptedProvider(AIProvider):
    """Provider returning queued responses; the last one repeats."""

    name = "scripted"
    display_name = "Scripted"

    def __init__(self, responses: list[ProviderResponse] | None = None):
        super().__init__(client=None)
        self.responses = list(responses or [])
        self.calls: list[int] = []

    async def generate(self, credentials, request, count=None) -> ProviderResponse:
        self.calls.append(request.count if count is None else count)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    async def validate_credentials(self, credentials) -> bool:
        return True


def make_question(text: str = "What is 2 + 2?", answer: str = "4") -> GeneratedQuestion:
    """A valid single-choice question as a provider would return it."""
    return GeneratedQuestion(
        question_text=text,
        question_type=QuestionType.SINGLE_CHOICE,
        data=ChoiceData(options=["3", "4", "5", "6"], correct_answers=[answer]),
        options=["3", "4", "5", "6"],
        correct_answer=answer,
        explanation="Basic addition",
        difficulty="easy",
    )


def make_batch(count: int, tokens: int | None = 100) -> ProviderResponse:
    return ProviderResponse(
        success=True,
        questions=[make_question(f"Question {i}?") for i in range(count)],
        tokens_used=tokens,
    )


def chat_completion(content: str, total_tokens: int = 321) -> dict[str, Any]:
    """OpenAI-style chat completion envelope around ``content``."""
    return {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": total_tokens},
    }


def questions_json(count: int) -> str:
    """Model output with ``count`` single-choice questions, wrapped in prose and a fence."""
    questions = [
        {
            "questionType": "single_choice",
            "questionText": f"Which number is {i}?",
            "options": [str(i), str(i + 1), str(i + 2), str(i + 3)],
            "correctAnswer": str(i),
            "explanation": f"{i} is {i}",
            "difficulty": "easy",
        }
        for i in range(count)
    ]
    return "Here are your questions:\n```json\n" + json.dumps({"questions": questions}) + "\n```\nGood luck!"


@pytest.fixture
def settings() -> Settings:
    """Settings with no backoff delays and a fast poll interval."""
    return Settings(
        MAX_SYNC_COUNT=20,
        GENERATION_BATCH_SIZE=5,
        HTTP_RETRY_BASE_DELAY=0,
        PROVIDER_RETRY_BASE_DELAY=0,
        QUEUE_POLL_INTERVAL_MS=10,
        WORKER_CONCURRENCY=2,
        TASK_BACKEND="memory",
    )


@pytest.fixture
def sample_request() -> GenerationRequest:
    """Create a sample GenerationRequest for testing."""
    return GenerationRequest(
        subject="Arithmetic",
        count=5,
        difficulty=QuestionDifficulty.EASY,
        question_types=["SingleChoice"],
    )


@pytest.fixture
def credentials() -> ProviderCredentials:
    return ProviderCredentials(provider_name="openai", api_key="sk-test")


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Credential store with a default scripted credential for OWNER_ID."""
    store = InMemoryCredentialStore()
    store.add(OWNER_ID, "scripted", "sk-test", is_default=True)
    return store


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider([make_batch(5)])


@pytest.fixture
def task_queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def service(
    provider: ScriptedProvider,
    credential_store: InMemoryCredentialStore,
    storage: InMemoryStorage,
    task_queue: InMemoryTaskQueue,
    progress_store: InMemoryProgressStore,
    settings: Settings,
) -> GenerationService:
    """GenerationService wired to the scripted provider and in-memory backends."""
    return GenerationService(
        ProviderFactory([provider]),
        credential_store,
        storage,
        task_queue,
        progress_store,
        settings,
    )
