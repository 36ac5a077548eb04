"""Parsing helpers for pre-migration flat fields (options / correct answer)."""

import json
import re

ANSWER_DELIMITERS = re.compile(r"[,;、]")

_TRUE_WORDS = {"true", "正确", "对"}
_FALSE_WORDS = {"false", "错误", "错"}


def _parse_json_list(text: str) -> list[str] | None:
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(value, list):
        return None
    return [str(item) for item in value if item is not None]


def parse_correct_answers(raw: str | None) -> list[str]:
    """
    Parse a correct-answer field that may hold several answers.

    A JSON array is tried first; when that fails the text is split on
    ``,``, ``;`` and ``、``.

    Args:
        raw: Stored or generated answer text

    Returns:
        List of trimmed answers
    """
    if raw is None or not raw.strip():
        return []

    trimmed = raw.strip()
    if trimmed.startswith("["):
        parsed = _parse_json_list(trimmed)
        if parsed is not None:
            return [item.strip() for item in parsed if item.strip()]

    return [part.strip() for part in ANSWER_DELIMITERS.split(trimmed) if part.strip()]


def parse_boolean_answer(raw: str | None) -> bool | None:
    """Read a legacy true/false answer, None when it is neither."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return None
