"""Parsing of model output into generated questions."""

from .normalizer import build_snippet, extract_json_payload, parse_questions
from .validator import QuestionValidation, validate_question

__all__ = [
    "build_snippet",
    "extract_json_payload",
    "parse_questions",
    "QuestionValidation",
    "validate_question",
]
