"""Tests for synchronous generation through GenerationService."""

import httpx
import pytest

from answerme.credentials.store import InMemoryCredentialStore
from answerme.generation.service import GenerationService
from answerme.models.errors import ErrorCode, PersistenceError
from answerme.models.question import (
    ChoiceData,
    GeneratedQuestion,
    GenerationRequest,
    ProviderResponse,
    QuestionDifficulty,
    QuestionType,
    StoredQuestion,
)
from answerme.providers.factory import ProviderFactory
from answerme.providers.openai import OpenAIProvider
from answerme.providers.retry import RetryPolicy
from answerme.storage.base import DEFAULT_BANK_NAME
from answerme.storage.memory import InMemoryStorage

from conftest import (
    OTHER_OWNER_ID,
    OWNER_ID,
    chat_completion,
    make_batch,
    make_question,
    questions_json,
)


class FlakyStorage(InMemoryStorage):
    """Storage failing to insert the questions at the given (1-based) positions."""

    def __init__(self, failing_calls: set[int]):
        super().__init__()
        self.failing_calls = failing_calls
        self.insert_calls = 0

    def insert_question(self, bank_id: int, question: GeneratedQuestion) -> StoredQuestion:
        self.insert_calls += 1
        if self.insert_calls in self.failing_calls:
            raise PersistenceError("disk full")
        return super().insert_question(bank_id, question)


def build_service(provider, credential_store, storage, task_queue, progress_store, settings) -> GenerationService:
    return GenerationService(
        ProviderFactory([provider]),
        credential_store,
        storage,
        task_queue,
        progress_store,
        settings,
    )


class TestGenerateNow:
    """Test generate_now outcomes."""

    async def test_count_exceeded_makes_no_provider_call(self, service, provider):
        """Test that a request above the synchronous limit is refused up front."""
        request = GenerationRequest(subject="Arithmetic", count=21)

        result = await service.generate_now(OWNER_ID, request)

        assert not result.success
        assert result.error_code == ErrorCode.COUNT_EXCEEDED.value
        assert provider.calls == []

    async def test_generates_and_persists(self, service, provider, storage, sample_request):
        """Test a full batch: every question saved into a new default bank."""
        result = await service.generate_now(OWNER_ID, sample_request)

        assert result.success
        assert len(result.questions) == 5
        assert result.partial_success_count is None
        assert result.error_code is None
        assert result.tokens_used == 100
        assert provider.calls == [5]

        assert len(storage.questions) == 5
        (bank,) = storage.banks.values()
        assert bank.name == DEFAULT_BANK_NAME
        assert bank.owner_id == OWNER_ID
        assert all(q.question_bank_id == bank.id for q in result.questions)

    async def test_saved_questions_have_both_shapes(self, service, sample_request):
        """Test that stored questions carry answer data and the flat fields."""
        result = await service.generate_now(OWNER_ID, sample_request)
        question = result.questions[0]

        assert question.question_type is QuestionType.SINGLE_CHOICE
        assert isinstance(question.data, ChoiceData)
        assert question.data.correct_answers == ["4"]
        assert question.correct_answer == "4"
        assert question.options == ["3", "4", "5", "6"]
        assert question.difficulty == "easy"

    async def test_end_to_end_with_http_provider(
        self, make_client, storage, task_queue, progress_store, settings, sample_request
    ):
        """Test five questions generated through a mocked OpenAI endpoint."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=chat_completion(questions_json(5), total_tokens=777))

        credential_store = InMemoryCredentialStore()
        credential_store.add(OWNER_ID, "openai", "sk-test", is_default=True)

        async with make_client(handler) as client:
            provider = OpenAIProvider(client, RetryPolicy(3, 0))
            service = build_service(provider, credential_store, storage, task_queue, progress_store, settings)
            result = await service.generate_now(OWNER_ID, sample_request)

        assert result.success
        assert len(result.questions) == 5
        assert result.tokens_used == 777
        assert [q.question_text for q in result.questions] == [f"Which number is {i}?" for i in range(5)]
        assert all(q.id for q in result.questions)

    async def test_partial_persistence(self, provider, credential_store, task_queue, progress_store, settings):
        """Test that 3 of 5 saved questions is a partial success."""
        storage = FlakyStorage(failing_calls={2, 4})
        service = build_service(provider, credential_store, storage, task_queue, progress_store, settings)

        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="Arithmetic", count=5))

        assert result.success
        assert len(result.questions) == 3
        assert result.partial_success_count == 3
        assert result.error_code == ErrorCode.PARTIAL_SUCCESS.value
        assert "3/5" in result.error_message

    async def test_nothing_saved_is_failure(self, provider, credential_store, task_queue, progress_store, settings):
        """Test that a run where every save fails is not a success."""
        storage = FlakyStorage(failing_calls={1, 2, 3, 4, 5})
        service = build_service(provider, credential_store, storage, task_queue, progress_store, settings)

        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="Arithmetic", count=5))

        assert not result.success
        assert result.error_code == ErrorCode.INVALID_AI_RESPONSE.value
        assert result.questions == []


class TestRequestValidation:
    """Test the order in which request and configuration errors surface."""

    async def test_empty_subject(self, service, provider):
        """Test that a blank subject is rejected before any provider call."""
        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="  ", count=3))

        assert result.error_code == ErrorCode.INVALID_SUBJECT.value
        assert provider.calls == []

    async def test_non_positive_count(self, service):
        """Test that a zero count is rejected."""
        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="Arithmetic", count=0))
        assert result.error_code == ErrorCode.INVALID_COUNT.value

    async def test_no_credentials(self, service, provider, sample_request):
        """Test that a user without credentials gets NO_DATA_SOURCE."""
        result = await service.generate_now(OTHER_OWNER_ID, sample_request)

        assert result.error_code == ErrorCode.NO_DATA_SOURCE.value
        assert provider.calls == []

    async def test_unsupported_provider(self, service, credential_store, provider, sample_request):
        """Test that credentials for an unknown vendor give UNSUPPORTED_PROVIDER."""
        credential_store.add(OTHER_OWNER_ID, "gemini", "key", is_default=True)

        result = await service.generate_now(OTHER_OWNER_ID, sample_request)

        assert result.error_code == ErrorCode.UNSUPPORTED_PROVIDER.value
        assert provider.calls == []

    async def test_undecryptable_credentials(self, service, credential_store, provider, sample_request):
        """Test that a key encrypted with another secret gives CONFIG_DECRYPTION_FAILED."""
        stored = credential_store.add(OTHER_OWNER_ID, "scripted", "key", is_default=True)
        stored.encrypted_api_key = InMemoryCredentialStore().encrypt("key")

        result = await service.generate_now(OTHER_OWNER_ID, sample_request)

        assert result.error_code == ErrorCode.CONFIG_DECRYPTION_FAILED.value
        assert provider.calls == []

    async def test_provider_override_selects_credentials(self, service, credential_store, sample_request):
        """Test that a provider name in the request selects that credential set."""
        credential_store.add(OWNER_ID, "gemini", "key")
        request = sample_request.model_copy(update={"provider_name": "gemini"})

        result = await service.generate_now(OWNER_ID, request)

        assert result.error_code == ErrorCode.UNSUPPORTED_PROVIDER.value

    async def test_foreign_question_bank(self, service, storage, provider, sample_request):
        """Test that another user's bank is reported as not found."""
        async with storage.session() as session:
            bank = await session.create_question_bank(OTHER_OWNER_ID, "Theirs")
        request = sample_request.model_copy(update={"question_bank_id": bank.id})

        result = await service.generate_now(OWNER_ID, request)

        assert result.error_code == ErrorCode.QUESTIONBANK_NOT_FOUND.value
        assert provider.calls == []

    async def test_own_question_bank(self, service, storage, sample_request):
        """Test that questions go into the requested bank."""
        async with storage.session() as session:
            bank = await session.create_question_bank(OWNER_ID, "Mine")
        request = sample_request.model_copy(update={"question_bank_id": bank.id})

        result = await service.generate_now(OWNER_ID, request)

        assert result.success
        assert len(storage.banks) == 1
        assert all(q.question_bank_id == bank.id for q in result.questions)


class TestProviderRetry:
    """Test the orchestration-level retry of whole provider calls."""

    async def test_transient_errors_are_retried(self, service, provider, sample_request):
        """Test that 429 and 503 are retried until success."""
        provider.responses = [
            ProviderResponse.failure("429", "rate limited"),
            ProviderResponse.failure("503", "unavailable"),
            make_batch(5),
        ]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert result.success
        assert provider.calls == [5, 5, 5]

    async def test_exhaustion_gives_max_retries_exceeded(self, service, provider, sample_request):
        """Test that persistent rate limiting ends in MAX_RETRIES_EXCEEDED."""
        provider.responses = [ProviderResponse.failure(ErrorCode.TIMEOUT.value, "timed out")]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert not result.success
        assert result.error_code == ErrorCode.MAX_RETRIES_EXCEEDED.value
        assert result.error_message == "timed out"
        assert len(provider.calls) == 3

    @pytest.mark.parametrize("code", ["401", ErrorCode.PARSE_ERROR.value, ErrorCode.EMPTY_RESPONSE.value])
    async def test_permanent_errors_surface_immediately(self, service, provider, sample_request, code: str):
        """Test that non-transient failures are not retried."""
        provider.responses = [ProviderResponse.failure(code, "nope")]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert result.error_code == code
        assert len(provider.calls) == 1


class TestBatching:
    """Test batched generation."""

    async def test_batches_and_token_sum(self, service, provider):
        """Test that 12 questions are requested as 5 + 5 + 2 with tokens summed."""
        provider.responses = [make_batch(5), make_batch(5), make_batch(2)]

        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="Arithmetic", count=12))

        assert provider.calls == [5, 5, 2]
        assert len(result.questions) == 12
        assert result.tokens_used == 300

    async def test_failed_batch_keeps_earlier_questions(self, service, provider):
        """Test that a failing second batch returns the first batch as partial."""
        provider.responses = [make_batch(5), ProviderResponse.failure("500", "server error")]

        result = await service.generate_now(OWNER_ID, GenerationRequest(subject="Arithmetic", count=10))

        assert result.success
        assert len(result.questions) == 5
        assert result.partial_success_count == 5
        assert result.error_code == "500"

    async def test_missing_tokens_stay_none(self, service, provider, sample_request):
        """Test that tokens_used is None when the provider reports none."""
        provider.responses = [make_batch(5, tokens=None)]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert result.tokens_used is None


class TestQuestionPreparation:
    """Test how generated questions are completed before saving."""

    async def test_invalid_questions_are_skipped(self, service, provider, sample_request):
        """Test that questions failing validation are dropped."""
        broken = GeneratedQuestion(
            question_text="No options",
            question_type=QuestionType.SINGLE_CHOICE,
            correct_answer="A",
        )
        provider.responses = [ProviderResponse(success=True, questions=[broken, make_question()])]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert len(result.questions) == 1
        assert result.partial_success_count == 1

    async def test_only_invalid_questions(self, service, provider, sample_request):
        """Test that a batch without any usable question is INVALID_AI_RESPONSE."""
        provider.responses = [
            ProviderResponse(success=True, questions=[GeneratedQuestion(question_text="?")]),
        ]

        result = await service.generate_now(OWNER_ID, sample_request)

        assert not result.success
        assert result.error_code == ErrorCode.INVALID_AI_RESPONSE.value

    async def test_untagged_question_takes_requested_type(self, service, provider):
        """Test that the single requested type fills in a missing tag."""
        question = GeneratedQuestion(question_text="Water boils at 100C", correct_answer="true")
        provider.responses = [ProviderResponse(success=True, questions=[question])]
        request = GenerationRequest(subject="Physics", count=1, question_types=["TrueFalse"])

        result = await service.generate_now(OWNER_ID, request)

        stored = result.questions[0]
        assert stored.question_type is QuestionType.TRUE_FALSE
        assert stored.data.correct_answer is True
        assert stored.correct_answer == "true"

    async def test_invalid_difficulty_uses_request(self, service, provider):
        """Test that an unknown difficulty falls back to the requested one."""
        question = make_question()
        question.difficulty = "legendary"
        provider.responses = [ProviderResponse(success=True, questions=[question])]
        request = GenerationRequest(subject="Arithmetic", count=1, difficulty=QuestionDifficulty.HARD)

        result = await service.generate_now(OWNER_ID, request)

        assert result.questions[0].difficulty == "hard"
        assert result.questions[0].data.difficulty is QuestionDifficulty.HARD
