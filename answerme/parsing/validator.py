"""Checks applied to each generated question before it is saved."""

from pydantic import BaseModel, Field

from answerme.models.question import (
    BooleanData,
    ChoiceData,
    FillBlankData,
    GeneratedQuestion,
    QuestionDifficulty,
    ShortAnswerData,
)


class QuestionValidation(BaseModel):
    """Validation result for a single generated question."""

    issues: list[str] = Field(default_factory=list, description="Problems that reject the question")
    warnings: list[str] = Field(default_factory=list, description="Problems that were tolerated")
    difficulty: QuestionDifficulty | None = Field(None, description="Parsed difficulty, None when invalid")

    @property
    def is_valid(self) -> bool:
        return not self.issues


def _has_answer(question: GeneratedQuestion) -> bool:
    data = question.data
    if isinstance(data, ChoiceData):
        return any(answer.strip() for answer in data.correct_answers)
    if isinstance(data, BooleanData):
        return True
    if isinstance(data, FillBlankData):
        return any(answer.strip() for answer in data.acceptable_answers)
    if isinstance(data, ShortAnswerData):
        return bool(data.reference_answer.strip())
    return bool(question.correct_answer.strip())


def validate_question(question: GeneratedQuestion) -> QuestionValidation:
    """
    Validate a generated question whose type has been resolved.

    Args:
        question: Question after type resolution

    Returns:
        QuestionValidation listing blocking issues and tolerated warnings
    """
    result = QuestionValidation(difficulty=QuestionDifficulty.coerce(question.difficulty))

    if not question.question_text.strip():
        result.issues.append("Question text is missing")

    if question.question_type is None:
        result.issues.append("Question type could not be determined")
    elif question.question_type.is_choice:
        options = question.data.options if isinstance(question.data, ChoiceData) else question.options
        if len(options) < 2:
            result.issues.append("A choice question needs at least 2 options")
        normalized = [option.strip().lower() for option in options]
        if len(set(normalized)) != len(normalized):
            result.issues.append("Options must be unique")

    if not _has_answer(question):
        result.issues.append("Correct answer is missing")

    if result.difficulty is None:
        result.warnings.append(f"Invalid difficulty '{question.difficulty}', expected easy/medium/hard")

    return result
