"""Generation orchestrator: synchronous generation, background tasks and progress."""

import logging
import uuid
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from answerme.config.settings import Settings, get_settings
from answerme.credentials.store import CredentialStore
from answerme.generation.questions import complete_question_data, resolve_question_type
from answerme.models.credentials import ProviderCredentials
from answerme.models.errors import CredentialDecryptionError, ErrorCode
from answerme.models.question import (
    GeneratedQuestion,
    GenerationRequest,
    GenerationResult,
    ProviderResponse,
    QuestionDifficulty,
    StoredQuestion,
)
from answerme.models.task import GenerationTask, TaskStatus
from answerme.parsing.normalizer import build_snippet
from answerme.parsing.validator import validate_question
from answerme.providers.base import AIProvider
from answerme.providers.factory import ProviderFactory
from answerme.providers.retry import RetryPolicy
from answerme.storage.base import DEFAULT_BANK_DESCRIPTION, DEFAULT_BANK_NAME, Storage, StorageSession
from answerme.tasks.base import ProgressStore, TaskQueue

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]

# Provider error codes worth re-sending the whole request for
TRANSIENT_ERROR_CODES = frozenset(
    {
        "429",
        "503",
        "504",
        ErrorCode.TIMEOUT.value,
        ErrorCode.TRANSPORT_ERROR.value,
    }
)

INVALID_RESPONSE_MESSAGE = "AI response was malformed or contained no usable question; adjust the prompt or model"


def _is_transient(response: ProviderResponse) -> bool:
    return not response.success and response.error_code in TRANSIENT_ERROR_CODES


def _retries_exhausted(state: RetryCallState) -> ProviderResponse:
    last = state.outcome.result()
    return ProviderResponse.failure(
        ErrorCode.MAX_RETRIES_EXCEEDED.value,
        last.error_message or "AI generation failed after the maximum number of retries",
    )


def _stopped_early(
    saved: list[StoredQuestion],
    tokens_used: int | None,
    error_code: str,
    error_message: str,
) -> GenerationResult:
    """Result for a run that stopped before every batch was produced."""
    return GenerationResult(
        success=bool(saved),
        questions=saved,
        error_code=error_code,
        error_message=error_message,
        partial_success_count=len(saved) if saved else None,
        tokens_used=tokens_used,
    )


class GenerationService:
    """
    Validates generation requests, calls providers and persists the results.

    Small requests are served synchronously by ``generate_now``; larger ones
    go through ``start_async`` and are executed by a worker calling
    ``execute_task``, with progress readable through ``get_progress``.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        credential_store: CredentialStore,
        storage: Storage,
        task_queue: TaskQueue,
        progress_store: ProgressStore,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.provider_factory = provider_factory
        self.credential_store = credential_store
        self.storage = storage
        self.task_queue = task_queue
        self.progress_store = progress_store
        self.max_sync_count = settings.max_sync_count
        self.batch_size = settings.batch_size
        self.task_ttl_seconds = settings.task_ttl_seconds
        self.retry_policy = RetryPolicy.for_provider(settings)

    async def generate_now(self, owner_id: int, request: GenerationRequest) -> GenerationResult:
        """
        Generate and persist questions before returning.

        Args:
            owner_id: Requesting user
            request: Generation request

        Returns:
            GenerationResult; ``COUNT_EXCEEDED`` without any provider call when
            the request is larger than the synchronous limit
        """
        if request.count > self.max_sync_count:
            return GenerationResult.failure(
                ErrorCode.COUNT_EXCEEDED.value,
                f"Synchronous generation supports at most {self.max_sync_count} questions; "
                "use asynchronous generation instead",
            )
        return await self._generate(owner_id, request)

    async def start_async(self, owner_id: int, request: GenerationRequest) -> str:
        """
        Record a pending task and queue it; returns before any provider call.

        Returns:
            The new task id
        """
        task_id = str(uuid.uuid4())
        task = GenerationTask(task_id=task_id, owner_id=owner_id, total_count=request.count)
        await self.progress_store.set(task_id, task, self.task_ttl_seconds)
        await self.task_queue.enqueue(task_id, owner_id, request)
        logger.info("Task %s queued: user=%d, questions=%d", task_id, owner_id, request.count)
        return task_id

    async def get_progress(self, owner_id: int, task_id: str) -> GenerationTask | None:
        """
        Progress of a task owned by ``owner_id``.

        Tasks of other users are reported as absent, the same as unknown ids.
        The returned record is a copy.
        """
        task = await self.progress_store.get(task_id)
        if task is None or task.owner_id != owner_id:
            return None
        return task.model_copy(deep=True)

    async def execute_task(self, task_id: str, owner_id: int, request: GenerationRequest) -> GenerationTask | None:
        """
        Run a queued task and record its outcome in the progress store.

        Failures, raised exceptions included, end in the ``failed`` state.

        Returns:
            The final progress record, None if the record has expired
        """

        async def on_progress(generated_count: int, total_count: int) -> None:
            await self.progress_store.update(task_id, lambda t: t.record_progress(generated_count))

        current = await self.progress_store.get(task_id)
        if current is None:
            logger.warning("Task %s has no progress record, skipping", task_id)
            return None
        if current.is_terminal:
            # Redelivered after it already finished
            logger.info("Task %s is already %s, skipping", task_id, current.status.value)
            return current

        try:
            await self.progress_store.update(task_id, lambda t: t.advance(TaskStatus.PROCESSING))
            result = await self._generate(owner_id, request, on_progress)
        except Exception as e:
            logger.exception("Generation task %s failed", task_id)
            return await self.progress_store.update(task_id, lambda t: self._mark_failed(t, str(e)))

        return await self.progress_store.update(task_id, lambda t: self._apply_result(t, result))

    @staticmethod
    def _mark_failed(task: GenerationTask, message: str) -> None:
        if task.is_terminal:
            return
        task.error_message = message or "AI generation failed"
        task.advance(TaskStatus.FAILED)

    @staticmethod
    def _apply_result(task: GenerationTask, result: GenerationResult) -> None:
        if result.success:
            task.questions = result.questions
            task.record_progress(len(result.questions))
            if result.partial_success_count:
                task.error_message = result.error_message or "Only part of the questions were generated"
                task.advance(TaskStatus.PARTIAL_SUCCESS)
            else:
                task.advance(TaskStatus.COMPLETED)
        else:
            task.error_message = result.error_message or "AI generation failed"
            task.advance(TaskStatus.FAILED)

    @staticmethod
    def _validate_request(request: GenerationRequest) -> GenerationResult | None:
        if not request.subject or not request.subject.strip():
            return GenerationResult.failure(ErrorCode.INVALID_SUBJECT.value, "Subject must not be empty")
        if request.count <= 0:
            return GenerationResult.failure(ErrorCode.INVALID_COUNT.value, "Count must be greater than 0")
        return None

    async def _resolve_provider(
        self, owner_id: int, request: GenerationRequest
    ) -> tuple[AIProvider, ProviderCredentials] | GenerationResult:
        stored = await self.credential_store.find(owner_id, request.provider_name)
        if stored is None:
            return GenerationResult.failure(
                ErrorCode.NO_DATA_SOURCE.value,
                "No AI configuration found; configure an API key first",
            )

        provider = self.provider_factory.get_provider(stored.provider_name)
        if provider is None:
            return GenerationResult.failure(
                ErrorCode.UNSUPPORTED_PROVIDER.value,
                f"Unsupported AI provider: {stored.provider_name}",
            )

        try:
            credentials = self.credential_store.decrypt(stored)
        except CredentialDecryptionError as e:
            logger.error("Credentials of user %d could not be decrypted: %s", owner_id, e)
            return GenerationResult.failure(
                ErrorCode.CONFIG_DECRYPTION_FAILED.value,
                "Stored AI configuration could not be decrypted; check the configuration",
            )
        return provider, credentials

    async def _call_provider(
        self,
        provider: AIProvider,
        credentials: ProviderCredentials,
        request: GenerationRequest,
        count: int,
    ) -> ProviderResponse:
        """Call the provider, re-sending the whole request on transient errors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_policy.max_attempts),
            wait=wait_exponential(multiplier=self.retry_policy.base_delay, min=0),
            retry=retry_if_result(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=_retries_exhausted,
        )
        return await retrying(provider.generate, credentials, request, count)

    async def _save_question(
        self,
        session: StorageSession,
        bank_id: int,
        request: GenerationRequest,
        question: GeneratedQuestion,
    ) -> StoredQuestion | None:
        question_type = resolve_question_type(question, request.question_types)
        difficulty = QuestionDifficulty.coerce(question.difficulty) or request.difficulty
        data = complete_question_data(question, question_type, difficulty) if question_type else None

        prepared = question.model_copy(update={"question_type": question_type, "data": data})
        validation = validate_question(prepared)
        if not validation.is_valid or data is None:
            logger.warning(
                "Skipping invalid question (type=%s, text=%r): %s",
                question_type.value if question_type else None,
                build_snippet(question.question_text, 60),
                "; ".join(validation.issues) or "no usable answer data",
            )
            return None
        for warning in validation.warnings:
            logger.warning("Question %r: %s", build_snippet(question.question_text, 60), warning)

        prepared = prepared.model_copy(
            update={"difficulty": difficulty.value, "explanation": data.explanation or question.explanation}
        )
        prepared.populate_legacy_fields()
        return await session.save_question(bank_id, prepared)

    async def _generate(
        self,
        owner_id: int,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        invalid = self._validate_request(request)
        if invalid is not None:
            return invalid

        # One session per run; background runs never share the caller's session
        async with self.storage.session() as session:
            if request.question_bank_id is not None:
                bank = await session.get_question_bank(request.question_bank_id)
                if bank is None or bank.owner_id != owner_id:
                    return GenerationResult.failure(
                        ErrorCode.QUESTIONBANK_NOT_FOUND.value,
                        "Question bank does not exist or is not accessible",
                    )

            resolved = await self._resolve_provider(owner_id, request)
            if isinstance(resolved, GenerationResult):
                return resolved
            provider, credentials = resolved

            if request.question_bank_id is not None:
                bank_id = request.question_bank_id
            else:
                bank_id = (await session.create_question_bank(owner_id, DEFAULT_BANK_NAME, DEFAULT_BANK_DESCRIPTION)).id

            logger.info(
                "Generating %d questions about %r with %s for user %d",
                request.count,
                request.subject,
                provider.name,
                owner_id,
            )

            saved: list[StoredQuestion] = []
            tokens_used: int | None = None
            remaining = request.count

            while remaining > 0:
                batch_size = min(self.batch_size, remaining)
                response = await self._call_provider(provider, credentials, request, batch_size)

                if not response.success or not response.questions:
                    return _stopped_early(
                        saved,
                        tokens_used,
                        response.error_code or ErrorCode.AI_GENERATION_FAILED.value,
                        response.error_message or "AI generation failed",
                    )

                if response.tokens_used is not None:
                    tokens_used = (tokens_used or 0) + response.tokens_used

                batch_saved = 0
                for question in response.questions:
                    try:
                        stored = await self._save_question(session, bank_id, request, question)
                    except Exception as e:
                        logger.error(
                            "Failed to save question %r: %s",
                            build_snippet(question.question_text, 60),
                            e,
                        )
                        continue
                    if stored is not None:
                        saved.append(stored)
                        batch_saved += 1

                if batch_saved == 0:
                    return _stopped_early(saved, tokens_used, ErrorCode.INVALID_AI_RESPONSE.value, INVALID_RESPONSE_MESSAGE)

                remaining -= batch_size
                if on_progress is not None:
                    await on_progress(len(saved), request.count)

        partial = len(saved) < request.count
        if partial:
            logger.warning("Saved %d of %d requested questions", len(saved), request.count)
        return GenerationResult(
            success=True,
            questions=saved,
            tokens_used=tokens_used,
            partial_success_count=len(saved) if partial else None,
            error_code=ErrorCode.PARTIAL_SUCCESS.value if partial else None,
            error_message=f"Saved {len(saved)}/{request.count} questions; some could not be saved" if partial else None,
        )
