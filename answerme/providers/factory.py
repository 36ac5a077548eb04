"""Lookup of provider implementations by name."""

import logging
from typing import Iterable

import httpx

from answerme.config.settings import Settings
from answerme.providers.anthropic import AnthropicProvider
from answerme.providers.base import AIProvider
from answerme.providers.custom import CustomApiProvider
from answerme.providers.deepseek import DeepSeekProvider
from answerme.providers.minimax import MinimaxProvider
from answerme.providers.openai import OpenAIProvider
from answerme.providers.retry import RetryPolicy
from answerme.providers.zhipu import ZhipuProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: tuple[type[AIProvider], ...] = (
    OpenAIProvider,
    AnthropicProvider,
    DeepSeekProvider,
    ZhipuProvider,
    MinimaxProvider,
    CustomApiProvider,
)


class ProviderFactory:
    """Resolves provider instances by name, case-insensitively."""

    def __init__(self, providers: Iterable[AIProvider]):
        self._providers = {provider.name.lower(): provider for provider in providers}

    def get_provider(self, name: str | None) -> AIProvider | None:
        """Provider registered under ``name``, or None when unknown."""
        if not name:
            return None
        provider = self._providers.get(name.strip().lower())
        if provider is None:
            logger.debug("No provider registered as %r", name)
        return provider

    def available_providers(self) -> list[str]:
        return [provider.name for provider in self._providers.values()]


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client shared by every provider."""
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))


def create_provider_factory(client: httpx.AsyncClient, settings: Settings) -> ProviderFactory:
    """
    Build a factory with every supported provider sharing one HTTP client.

    Args:
        client: Shared HTTP client
        settings: Source of the HTTP-level retry policy

    Returns:
        ProviderFactory with all providers registered
    """
    policy = RetryPolicy.for_http(settings)
    return ProviderFactory(cls(client, policy) for cls in PROVIDER_CLASSES)
