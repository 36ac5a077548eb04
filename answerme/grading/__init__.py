"""Answer verification and submission."""

from .submission import AnswerSubmissionService
from .verifier import infer_question_type, is_correct, normalize_answer, parse_answer_list

__all__ = [
    "AnswerSubmissionService",
    "infer_question_type",
    "is_correct",
    "normalize_answer",
    "parse_answer_list",
]
