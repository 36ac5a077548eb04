"""Question generation orchestration."""

from .questions import complete_question_data, resolve_question_type
from .service import GenerationService
from .worker import GenerationWorker

__all__ = [
    "complete_question_data",
    "resolve_question_type",
    "GenerationService",
    "GenerationWorker",
]
