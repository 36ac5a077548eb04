"""Answer verification: decides whether a raw user answer is correct.

Dispatch is on the question's type tag. Questions stored without a tag are
graded by the variant of their answer data, and questions without either by
what their flat correct-answer field looks like. Every comparison is done on
trimmed, case-folded text. Grading never raises; anything it cannot grade is
incorrect.
"""

import logging

from answerme.models.legacy import parse_boolean_answer, parse_correct_answers
from answerme.models.question import (
    VARIANT_FOR_TYPE,
    AnswerData,
    BooleanData,
    ChoiceData,
    FillBlankData,
    GeneratedQuestion,
    QuestionDifficulty,
    QuestionType,
    ShortAnswerData,
    build_data_from_legacy,
)

logger = logging.getLogger(__name__)


def normalize_answer(text: str) -> str:
    return text.strip().casefold()


def parse_answer_list(raw: str) -> list[str]:
    """User answers from a JSON array or a ``,`` / ``;`` / ``、`` separated list."""
    return [normalize_answer(a) for a in parse_correct_answers(raw) if a.strip()]


def infer_question_type(question: GeneratedQuestion) -> QuestionType | None:
    """
    Best guess at the type of an untagged question.

    The answer-data variant decides when present, with more than one correct
    answer meaning multiple choice. Flat fields come next: a boolean answer,
    then several answers, then options present; anything else is graded as
    fill in the blank.
    """
    data = question.data
    if isinstance(data, ChoiceData):
        return QuestionType.MULTIPLE_CHOICE if len(data.correct_answers) > 1 else QuestionType.SINGLE_CHOICE
    if isinstance(data, BooleanData):
        return QuestionType.TRUE_FALSE
    if isinstance(data, FillBlankData):
        return QuestionType.FILL_BLANK
    if isinstance(data, ShortAnswerData):
        return QuestionType.SHORT_ANSWER

    if not question.correct_answer.strip():
        return None
    if parse_boolean_answer(question.correct_answer) is not None:
        return QuestionType.TRUE_FALSE
    if len(parse_correct_answers(question.correct_answer)) > 1:
        return QuestionType.MULTIPLE_CHOICE
    if question.options:
        return QuestionType.SINGLE_CHOICE
    return QuestionType.FILL_BLANK


def _contains_either_way(answer: str, references: list[str]) -> bool:
    for reference in references:
        expected = normalize_answer(reference)
        if expected and (expected in answer or answer in expected):
            return True
    return False


def _grade_boolean(data: BooleanData, answer: str) -> bool:
    return answer == ("true" if data.correct_answer else "false")


def _grade_single(data: ChoiceData, answer: str) -> bool:
    expected = [normalize_answer(a) for a in data.correct_answers if a.strip()]
    return bool(expected) and answer == expected[0]


def _grade_multiple(data: ChoiceData, raw_answer: str) -> bool:
    expected = {normalize_answer(a) for a in data.correct_answers if a.strip()}
    return bool(expected) and set(parse_answer_list(raw_answer)) == expected


def is_correct(question: GeneratedQuestion, raw_answer: str | None) -> bool:
    """
    Grade a raw user answer.

    Args:
        question: Stored question, tagged or legacy
        raw_answer: Answer text as submitted

    Returns:
        True if the answer is correct. Empty answers, unknown types and
        answer data that does not fit the type are all incorrect.
    """
    if raw_answer is None or not raw_answer.strip():
        return False

    question_type = question.question_type or infer_question_type(question)
    if question_type is None:
        return False

    data: AnswerData | None = question.data
    if data is None:
        data = build_data_from_legacy(
            question_type,
            question.options,
            question.correct_answer,
            question.explanation,
            QuestionDifficulty.MEDIUM,
        )
        if isinstance(data, ChoiceData) and question_type is QuestionType.SINGLE_CHOICE:
            # The flat field holds one answer, which may itself contain a comma
            data = data.model_copy(update={"correct_answers": [question.correct_answer]})
    if data is None:
        return False

    if not isinstance(data, VARIANT_FOR_TYPE[question_type]):
        logger.debug(
            "Question %s is tagged %s but stores %s data",
            getattr(question, "id", "?"),
            question_type.value,
            data.kind,
        )
        return False

    answer = normalize_answer(raw_answer)
    if question_type is QuestionType.TRUE_FALSE:
        return _grade_boolean(data, answer)
    if question_type is QuestionType.SINGLE_CHOICE:
        return _grade_single(data, answer)
    if question_type is QuestionType.MULTIPLE_CHOICE:
        return _grade_multiple(data, raw_answer)
    if question_type is QuestionType.FILL_BLANK:
        return _contains_either_way(answer, data.acceptable_answers)
    if question_type is QuestionType.SHORT_ANSWER:
        return _contains_either_way(answer, [data.reference_answer])
    return False
