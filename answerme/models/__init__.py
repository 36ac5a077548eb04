"""Data models for question generation and grading."""

from answerme.models.errors import (
    AttemptFinalizedError,
    CredentialDecryptionError,
    ErrorCode,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from answerme.models.question import (
    AttemptDetail,
    BooleanData,
    ChoiceData,
    FillBlankData,
    GeneratedQuestion,
    GenerationRequest,
    GenerationResult,
    ProviderResponse,
    QuestionData,
    QuestionDifficulty,
    QuestionType,
    ShortAnswerData,
    StoredQuestion,
)
from answerme.models.task import GenerationTask, TaskStatus

__all__ = [
    "AttemptDetail",
    "AttemptFinalizedError",
    "BooleanData",
    "ChoiceData",
    "CredentialDecryptionError",
    "ErrorCode",
    "FillBlankData",
    "GeneratedQuestion",
    "GenerationRequest",
    "GenerationResult",
    "GenerationTask",
    "InvalidTransitionError",
    "NotFoundError",
    "PersistenceError",
    "ProviderResponse",
    "QuestionData",
    "QuestionDifficulty",
    "QuestionType",
    "ShortAnswerData",
    "StoredQuestion",
    "TaskStatus",
]
