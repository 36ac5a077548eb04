"""Error codes and exceptions shared across the generation pipeline."""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced to callers."""

    # Caller input
    COUNT_EXCEEDED = "COUNT_EXCEEDED"
    INVALID_SUBJECT = "INVALID_SUBJECT"
    INVALID_COUNT = "INVALID_COUNT"
    QUESTIONBANK_NOT_FOUND = "QUESTIONBANK_NOT_FOUND"

    # Configuration
    NO_DATA_SOURCE = "NO_DATA_SOURCE"
    CONFIG_DECRYPTION_FAILED = "CONFIG_DECRYPTION_FAILED"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"

    # Provider calls
    TIMEOUT = "TIMEOUT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    PARSE_ERROR = "PARSE_ERROR"
    EXCEPTION = "EXCEPTION"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"

    # Generation outcome
    AI_GENERATION_FAILED = "AI_GENERATION_FAILED"
    INVALID_AI_RESPONSE = "INVALID_AI_RESPONSE"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"


def http_status_code(status: int) -> str:
    """Error code for a non-success HTTP status, e.g. ``"429"``."""
    return str(status)


class CredentialDecryptionError(Exception):
    """Stored credentials exist but cannot be decrypted."""


class PersistenceError(Exception):
    """A question or attempt detail could not be stored."""


class InvalidTransitionError(ValueError):
    """A generation task was asked to move backwards or leave a terminal state."""


class AttemptFinalizedError(Exception):
    """An answer was submitted for an attempt that is already completed."""


class NotFoundError(LookupError):
    """A referenced attempt or question does not exist for the caller."""
