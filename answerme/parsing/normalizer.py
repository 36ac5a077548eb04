"""Turn raw model output into generated questions.

Model replies are inconsistent: JSON wrapped in code fences or prose, a bare
array instead of an object, English or localized field names, options given as
an array, an object or a delimited string. Everything here is tolerant of that
and reports failures as values, never as exceptions.
"""

import json
import logging
import re
from typing import Any

from answerme.models.legacy import parse_boolean_answer, parse_correct_answers
from answerme.models.question import (
    BooleanData,
    ChoiceData,
    FillBlankData,
    GeneratedQuestion,
    QuestionType,
    ShortAnswerData,
)

logger = logging.getLogger(__name__)

# Candidate names per logical field, tried in order, case-insensitively
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "question_text": ("questionText", "question_text", "question", "content", "title", "题目", "题干", "题目内容"),
    "question_type": ("questionType", "question_type", "type", "题型", "类型"),
    "explanation": ("explanation", "analysis", "解析"),
    "difficulty": ("difficulty", "难度"),
    "options": ("options", "choices", "选项"),
    "correct_answer": ("correctAnswer", "correct_answer", "answer", "correct", "正确答案", "答案"),
}

ROOT_ALIASES = ("questions", "data", "result")

SNIPPET_LENGTH = 200

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OPTION_DELIMITERS = re.compile(r"[\n;；|｜]")


def build_snippet(text: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Single-line excerpt of ``text`` for error messages."""
    if not text or not text.strip():
        return ""
    normalized = text.replace("\r", " ").replace("\n", " ").strip()
    if len(normalized) <= max_length:
        return normalized
    return normalized[:max_length] + "..."


def extract_json_payload(content: str) -> str:
    """
    Locate the JSON payload inside model output.

    The first fenced code block wins when present. Inside it (or the whole
    text) the outermost array or object is taken, whichever opens first.

    Args:
        content: Raw model text

    Returns:
        The JSON text, or an empty string when none is found
    """
    match = _FENCE.search(content)
    if match:
        content = match.group(1)

    trimmed = content.strip()
    obj_start, obj_end = trimmed.find("{"), trimmed.rfind("}")
    arr_start, arr_end = trimmed.find("["), trimmed.rfind("]")

    if arr_start >= 0 and arr_end > arr_start and (obj_start < 0 or arr_start < obj_start):
        return trimmed[arr_start : arr_end + 1]
    if obj_start >= 0 and obj_end > obj_start:
        return trimmed[obj_start : obj_end + 1]
    return ""


def lookup(element: dict[str, Any], *names: str) -> tuple[bool, Any]:
    """Case-insensitive property lookup; the first name that resolves wins."""
    lowered = {key.lower(): key for key in element}
    for name in names:
        key = lowered.get(name.lower())
        if key is not None:
            return True, element[key]
    return False, None


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def get_string(element: dict[str, Any], field: str) -> str | None:
    """Resolve a scalar field through its aliases; None when absent or null."""
    for name in FIELD_ALIASES[field]:
        found, value = lookup(element, name)
        if found and value is not None:
            return _to_text(value)
    return None


def coerce_options(value: Any) -> list[str]:
    """
    Coerce an options value into an ordered list of strings.

    Arrays may mix strings and ``{"text": ...}`` objects; objects are ordered
    by key (``{"B": .., "A": ..}`` gives A then B); strings are split on
    newlines, semicolons and pipes.
    """
    if isinstance(value, list):
        items = []
        for item in value:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                items.append(item["text"])
            elif item is not None:
                items.append(_to_text(item))
        return [item for item in items if item.strip()]

    if isinstance(value, dict):
        ordered = sorted(value.items(), key=lambda pair: pair[0].lower())
        return [text for text in (_to_text(v) for _, v in ordered if v is not None) if text.strip()]

    if isinstance(value, str):
        return [part.strip() for part in _OPTION_DELIMITERS.split(value) if part.strip()]

    return []


def get_options(element: dict[str, Any]) -> list[str]:
    """Resolve the options field; later aliases are tried when one is empty."""
    for name in FIELD_ALIASES["options"]:
        found, value = lookup(element, name)
        if not found:
            continue
        options = coerce_options(value)
        if options:
            return options
    return []


def _build_question(element: dict[str, Any]) -> GeneratedQuestion:
    question_text = get_string(element, "question_text") or ""
    type_text = get_string(element, "question_type")
    explanation = get_string(element, "explanation")
    difficulty = get_string(element, "difficulty") or "medium"
    options = get_options(element)
    correct_answer = get_string(element, "correct_answer") or ""

    question_type = QuestionType.parse(type_text)
    common = {"explanation": explanation, "difficulty": difficulty}

    data = None
    if options:
        data = ChoiceData(options=options, correct_answers=parse_correct_answers(correct_answer), **common)
    elif question_type is QuestionType.TRUE_FALSE:
        answer = parse_boolean_answer(correct_answer)
        if answer is not None:
            data = BooleanData(correct_answer=answer, **common)
    elif question_type is QuestionType.FILL_BLANK:
        data = FillBlankData(acceptable_answers=parse_correct_answers(correct_answer), **common)
    elif question_type is QuestionType.SHORT_ANSWER:
        data = ShortAnswerData(reference_answer=correct_answer, **common)

    return GeneratedQuestion(
        question_text=question_text,
        question_type=question_type,
        data=data,
        options=options,
        correct_answer=correct_answer,
        explanation=explanation,
        difficulty=difficulty,
    )


def parse_questions(content: str) -> tuple[list[GeneratedQuestion], str | None]:
    """
    Parse model output into generated questions.

    Args:
        content: Raw text returned by a provider

    Returns:
        ``(questions, None)`` on success, ``([], error)`` otherwise. The error
        carries a bounded snippet of the offending text.
    """
    if not content or not content.strip():
        return [], "AI response is empty"

    json_text = extract_json_payload(content)
    if not json_text.strip():
        return [], f"No JSON content found in response: {build_snippet(content)}"

    try:
        root = json.loads(json_text)
    except json.JSONDecodeError as e:
        return [], f"Failed to parse JSON: {e.msg}; response snippet: {build_snippet(json_text)}"
    except (ValueError, RecursionError) as e:
        # Oversized integers and pathological nesting
        return [], f"Failed to parse JSON: {type(e).__name__}; response snippet: {build_snippet(json_text)}"

    if isinstance(root, dict):
        found, elements = lookup(root, *ROOT_ALIASES)
        if not found or not isinstance(elements, list):
            return [], "Response JSON has no questions array"
    elif isinstance(root, list):
        elements = root
    else:
        return [], "Response JSON is neither a question array nor an object"

    try:
        questions = [_build_question(element) for element in elements if isinstance(element, dict)]
    except (ValueError, TypeError, RecursionError) as e:
        logger.warning("Could not build questions from parsed JSON: %s", e)
        return [], f"Failed to parse questions: {type(e).__name__}; response snippet: {build_snippet(json_text)}"
    if not questions:
        return [], f"No questions found in response: {build_snippet(json_text)}"

    logger.debug("Parsed %d questions from %d characters of output", len(questions), len(content))
    return questions, None
