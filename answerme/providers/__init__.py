"""AI provider clients."""

from .base import AIProvider, ChatCompletionsProvider
from .factory import ProviderFactory, create_http_client, create_provider_factory
from .retry import RetryPolicy, send_with_retry, worst_case_retry_delay

__all__ = [
    "AIProvider",
    "ChatCompletionsProvider",
    "ProviderFactory",
    "create_http_client",
    "create_provider_factory",
    "RetryPolicy",
    "send_with_retry",
    "worst_case_retry_delay",
]
