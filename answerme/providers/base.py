"""Provider contract and the shared OpenAI-style implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from langchain_core.messages import BaseMessage

from answerme.models.credentials import ProviderCredentials
from answerme.models.errors import ErrorCode, http_status_code
from answerme.models.question import GenerationRequest, ProviderResponse
from answerme.parsing.normalizer import build_snippet, parse_questions
from answerme.providers.prompts import build_messages, to_openai_messages
from answerme.providers.retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)


class AIProvider(ABC):
    """
    A third-party text-generation service.

    Implementations hold no per-call state and may be shared by concurrent
    calls. ``generate`` never raises; failures come back as a
    ``ProviderResponse`` with ``success=False`` and an error code.
    """

    name: str = ""
    display_name: str = ""

    def __init__(self, client: httpx.AsyncClient, retry_policy: RetryPolicy | None = None):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    @abstractmethod
    async def generate(
        self,
        credentials: ProviderCredentials,
        request: GenerationRequest,
        count: int | None = None,
    ) -> ProviderResponse:
        """Generate ``count`` questions (``request.count`` when omitted)."""

    @abstractmethod
    async def validate_credentials(self, credentials: ProviderCredentials) -> bool:
        """Check that the API key is accepted by the vendor."""


class ChatCompletionsProvider(AIProvider):
    """Provider speaking the OpenAI chat-completions protocol."""

    default_endpoint: str = "https://api.openai.com/v1/chat/completions"
    default_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    token_limit_field: str = "max_tokens"

    # Output budget: tokens_per_question * count + token_overhead, clamped
    tokens_per_question: int = 250
    token_overhead: int = 1000
    min_output_tokens: int = 1000
    max_output_tokens: int = 8192

    def compute_max_tokens(self, count: int) -> int:
        """Output token budget for ``count`` questions."""
        estimate = count * self.tokens_per_question + self.token_overhead
        return max(self.min_output_tokens, min(estimate, self.max_output_tokens))

    def normalize_endpoint(self, endpoint: str) -> str:
        return endpoint

    def resolve_endpoint(self, endpoint: str | None) -> str:
        if not endpoint or not endpoint.strip():
            return self.default_endpoint
        return self.normalize_endpoint(endpoint.strip())

    def resolve_model(self, model: str | None) -> str:
        return model.strip() if model and model.strip() else self.default_model

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def build_body(self, model: str, messages: list[BaseMessage], max_tokens: int) -> dict[str, Any]:
        return {
            "model": model,
            "messages": to_openai_messages(messages),
            "temperature": self.temperature,
            self.token_limit_field: max_tokens,
        }

    def extract_text(self, payload: dict[str, Any]) -> str | None:
        """Text of the first choice, None when the envelope has none."""
        choices = payload.get("choices") or []
        if not choices:
            return None
        message = choices[0].get("message") or {}
        content = message.get("content")
        return content if isinstance(content, str) else None

    def extract_tokens(self, payload: dict[str, Any]) -> int | None:
        usage = payload.get("usage") or {}
        total = usage.get("total_tokens")
        return total if isinstance(total, int) else None

    async def generate(
        self,
        credentials: ProviderCredentials,
        request: GenerationRequest,
        count: int | None = None,
    ) -> ProviderResponse:
        count = request.count if count is None else count
        endpoint = self.resolve_endpoint(credentials.endpoint)
        model = self.resolve_model(credentials.model)
        max_tokens = self.compute_max_tokens(count)
        headers = self.build_headers(credentials.api_key.get_secret_value())
        body = self.build_body(model, build_messages(request, count), max_tokens)

        logger.info(
            "%s request: model=%s, questions=%d, max_tokens=%d",
            self.display_name,
            model,
            count,
            max_tokens,
        )

        try:
            response = await send_with_retry(
                self.client,
                lambda: self.client.build_request("POST", endpoint, headers=headers, json=body),
                self.retry_policy,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out: %s", self.display_name, e)
            return ProviderResponse.failure(ErrorCode.TIMEOUT.value, f"{self.display_name} request timed out")
        except httpx.TransportError as e:
            logger.warning("%s transport error: %s", self.display_name, e)
            return ProviderResponse.failure(
                ErrorCode.TRANSPORT_ERROR.value, f"{self.display_name} connection failed: {e}"
            )

        if not response.is_success:
            logger.error(
                "%s API error: %d, %s",
                self.display_name,
                response.status_code,
                build_snippet(response.text),
            )
            return ProviderResponse.failure(
                http_status_code(response.status_code),
                f"{self.display_name} API call failed: {response.status_code}",
            )

        try:
            payload = response.json()
            text = self.extract_text(payload) if isinstance(payload, dict) else None
        except (ValueError, AttributeError, TypeError, RecursionError) as e:
            logger.error("%s returned an unreadable envelope: %s", self.display_name, e)
            return ProviderResponse.failure(
                ErrorCode.EXCEPTION.value, f"{self.display_name} returned an unreadable response"
            )

        if not text or not text.strip():
            return ProviderResponse.failure(
                ErrorCode.EMPTY_RESPONSE.value, f"{self.display_name} returned empty content"
            )

        questions, error = parse_questions(text)
        if error:
            logger.warning("%s output could not be parsed: %s", self.display_name, error)
            return ProviderResponse.failure(ErrorCode.PARSE_ERROR.value, error)

        return ProviderResponse(success=True, questions=questions, tokens_used=self.extract_tokens(payload))

    async def validate_credentials(self, credentials: ProviderCredentials) -> bool:
        endpoint = self.resolve_endpoint(credentials.endpoint)
        model = self.resolve_model(credentials.model)
        headers = self.build_headers(credentials.api_key.get_secret_value())
        body = {
            "model": model,
            "messages": [{"role": "user", "content": "hi"}],
            self.token_limit_field: 5,
        }
        try:
            response = await self.client.post(endpoint, headers=headers, json=body)
        except httpx.TransportError as e:
            logger.warning("%s key check failed: %s", self.display_name, e)
            return False
        return response.is_success
