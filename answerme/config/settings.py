"""Application settings and configuration."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file if present
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Generation limits
    max_sync_count: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Largest request served by the synchronous path",
        validation_alias="MAX_SYNC_COUNT",
    )
    batch_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Questions requested from the provider per call",
        validation_alias="GENERATION_BATCH_SIZE",
    )

    # Background tasks
    task_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="Hours a task record is kept in the progress store",
        validation_alias="TASK_TTL_HOURS",
    )
    worker_concurrency: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Generation jobs executed at the same time",
        validation_alias="WORKER_CONCURRENCY",
    )
    queue_poll_interval_ms: int = Field(
        default=1000,
        ge=10,
        description="Wait between polls of an empty task queue",
        validation_alias="QUEUE_POLL_INTERVAL_MS",
    )
    task_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend for the task queue and progress store",
        validation_alias="TASK_BACKEND",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the distributed backend",
        validation_alias="REDIS_URL",
    )

    # Retry layers. The HTTP layer retries a single request, the provider
    # layer re-runs the whole provider call.
    http_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per HTTP request, first try included",
        validation_alias="HTTP_MAX_ATTEMPTS",
    )
    http_retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay in seconds for HTTP-level backoff",
        validation_alias="HTTP_RETRY_BASE_DELAY",
    )
    provider_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per provider call, first try included",
        validation_alias="PROVIDER_MAX_ATTEMPTS",
    )
    provider_retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay in seconds for provider-level backoff",
        validation_alias="PROVIDER_RETRY_BASE_DELAY",
    )
    http_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Timeout for a single provider HTTP call",
        validation_alias="HTTP_TIMEOUT_SECONDS",
    )

    # Credentials
    credential_secret_key: str | None = Field(
        default=None,
        description="Fernet key used to encrypt stored API keys",
        validation_alias="CREDENTIAL_SECRET_KEY",
    )
    ai_provider: str = Field(
        default="openai",
        description="Provider used by the CLI",
        validation_alias="AI_PROVIDER",
    )
    ai_api_key: str | None = Field(
        default=None,
        description="API key used by the CLI",
        validation_alias="AI_API_KEY",
    )
    ai_endpoint: str | None = Field(
        default=None,
        description="Custom endpoint (gateways, self-hosted deployments)",
        validation_alias="AI_ENDPOINT",
    )
    ai_model: str | None = Field(
        default=None,
        description="Model override, provider default when unset",
        validation_alias="AI_MODEL",
    )

    # Output Settings
    default_language: str = Field(
        default="en",
        description="Language requested when the caller gives none",
        validation_alias="DEFAULT_LANGUAGE",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the CLI",
        validation_alias="LOG_LEVEL",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def task_ttl_seconds(self) -> int:
        """Task TTL expressed in seconds."""
        return self.task_ttl_hours * 3600

    @property
    def queue_poll_interval(self) -> float:
        """Queue poll interval in seconds."""
        return self.queue_poll_interval_ms / 1000


# This is loaded the first time and then cached for further use
@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings object with loaded configuration
    """
    return Settings()
