"""Retry with exponential backoff for single provider HTTP requests."""

import logging
from dataclasses import dataclass
from typing import Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from answerme.config.settings import Settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling (first try included) and base delay in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0

    @classmethod
    def for_http(cls, settings: Settings) -> "RetryPolicy":
        return cls(settings.http_max_attempts, settings.http_retry_base_delay)

    @classmethod
    def for_provider(cls, settings: Settings) -> "RetryPolicy":
        return cls(settings.provider_max_attempts, settings.provider_retry_base_delay)

    def total_delay(self) -> float:
        """Sum of all backoff sleeps when every attempt fails."""
        return sum(self.base_delay * 2**i for i in range(self.max_attempts - 1))


def worst_case_retry_delay(http: RetryPolicy, provider: RetryPolicy) -> float:
    """
    Upper bound on time spent sleeping across both retry layers.

    Every provider attempt can exhaust the HTTP layer, so the HTTP backoff is
    paid ``provider.max_attempts`` times, plus the provider layer's own sleeps.
    Network time is not included.
    """
    return provider.max_attempts * http.total_delay() + provider.total_delay()


def _is_retryable_response(response: httpx.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS_CODES


async def send_with_retry(
    client: httpx.AsyncClient,
    build_request: Callable[[], httpx.Request],
    policy: RetryPolicy | None = None,
) -> httpx.Response:
    """
    Send a request, retrying on 429/503/504 and transport failures.

    A fresh request is built for each attempt. Other statuses, 400 and 401
    included, are returned immediately. When attempts run out the last
    response is returned, or the last transport error is raised.

    Args:
        client: Shared HTTP client
        build_request: Factory producing a new request per attempt
        policy: Attempt ceiling and base delay

    Returns:
        The final HTTP response

    Raises:
        httpx.TransportError: If the last attempt failed at transport level
    """
    policy = policy or RetryPolicy()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_delay, min=0),
        retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(_is_retryable_response),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=lambda state: state.outcome.result(),
    )

    async for attempt in retrying:
        with attempt:
            request = build_request()
            response = await client.send(request)
        if not attempt.retry_state.outcome.failed:
            attempt.retry_state.set_result(response)
    return response
