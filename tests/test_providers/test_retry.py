"""Tests for the HTTP retry helper."""

import httpx
import pytest

from answerme.providers.retry import RetryPolicy, send_with_retry, worst_case_retry_delay

URL = "https://api.example.com/v1/chat/completions"

NO_DELAY = RetryPolicy(max_attempts=3, base_delay=0)


class Recorder:
    """Transport handler answering with scripted statuses and counting requests."""

    def __init__(self, statuses: list[int | Exception]):
        self.statuses = list(statuses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, json={"status": status})


async def send(client: httpx.AsyncClient, policy: RetryPolicy = NO_DELAY) -> httpx.Response:
    return await send_with_retry(client, lambda: client.build_request("POST", URL, json={"q": 1}), policy)


class TestSendWithRetry:
    """Test send_with_retry attempt counts."""

    async def test_retries_rate_limit_until_success(self, make_client):
        """Test that 429, 429, 200 takes three attempts and returns the success."""
        recorder = Recorder([429, 429, 200])
        async with make_client(recorder) as client:
            response = await send(client)

        assert response.status_code == 200
        assert len(recorder.requests) == 3

    async def test_bad_request_is_not_retried(self, make_client):
        """Test that 400 returns after a single attempt."""
        recorder = Recorder([400])
        async with make_client(recorder) as client:
            response = await send(client)

        assert response.status_code == 400
        assert len(recorder.requests) == 1

    async def test_unauthorized_is_not_retried(self, make_client):
        """Test that 401 returns after a single attempt."""
        recorder = Recorder([401, 200])
        async with make_client(recorder) as client:
            response = await send(client)

        assert response.status_code == 401
        assert len(recorder.requests) == 1

    @pytest.mark.parametrize("status", [503, 504])
    async def test_exhaustion_returns_last_response(self, make_client, status: int):
        """Test that the last retryable response is returned after the ceiling."""
        recorder = Recorder([status])
        async with make_client(recorder) as client:
            response = await send(client)

        assert response.status_code == status
        assert len(recorder.requests) == 3

    async def test_transport_error_is_retried(self, make_client):
        """Test that a connection failure is retried."""
        recorder = Recorder([httpx.ConnectError("refused"), 200])
        async with make_client(recorder) as client:
            response = await send(client)

        assert response.status_code == 200
        assert len(recorder.requests) == 2

    async def test_transport_error_surfaces_on_exhaustion(self, make_client):
        """Test that the last transport error is raised when attempts run out."""
        recorder = Recorder([httpx.ConnectError("refused")])
        async with make_client(recorder) as client:
            with pytest.raises(httpx.ConnectError):
                await send(client)

        assert len(recorder.requests) == 3

    async def test_fresh_request_per_attempt(self, make_client):
        """Test that every attempt sends a new request object."""
        recorder = Recorder([503, 503, 200])
        async with make_client(recorder) as client:
            await send(client)

        assert len({id(request) for request in recorder.requests}) == 3

    async def test_attempt_ceiling_is_configurable(self, make_client):
        """Test that max_attempts bounds the number of requests."""
        recorder = Recorder([429])
        async with make_client(recorder) as client:
            await send(client, RetryPolicy(max_attempts=5, base_delay=0))

        assert len(recorder.requests) == 5


class TestRetryPolicy:
    """Test backoff arithmetic."""

    def test_total_delay_excludes_final_attempt(self):
        """Test that three attempts sleep base and 2 x base."""
        assert RetryPolicy(3, 1.0).total_delay() == 3.0
        assert RetryPolicy(1, 1.0).total_delay() == 0

    def test_worst_case_across_layers(self):
        """Test the combined worst case of both retry layers."""
        assert worst_case_retry_delay(RetryPolicy(3, 1.0), RetryPolicy(3, 1.0)) == 12.0
        assert worst_case_retry_delay(RetryPolicy(2, 0.5), RetryPolicy(2, 2.0)) == 3.0

    def test_from_settings(self, settings):
        """Test that both layers read their own settings."""
        assert RetryPolicy.for_http(settings) == RetryPolicy(settings.http_max_attempts, 0)
        assert RetryPolicy.for_provider(settings) == RetryPolicy(settings.provider_max_attempts, 0)
