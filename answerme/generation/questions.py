"""Type resolution and answer-data completion for generated questions."""

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


def resolve_question_type(
    question: GeneratedQuestion,
    requested_types: list[QuestionType] | None = None,
) -> QuestionType | None:
    """
    Decide the type of a generated question.

    An explicit tag is trusted as given. Without one, choice data with more
    than one correct answer is multiple choice, other choice data single
    choice, and other variants map to their own type. When nothing decides
    and exactly one type was requested, that type is used.

    Args:
        question: Generated question
        requested_types: Types asked for in the request

    Returns:
        The resolved type, or None when it cannot be determined
    """
    if question.question_type is not None:
        return question.question_type

    data = question.data
    if isinstance(data, ChoiceData):
        if len(data.correct_answers) > 1:
            return QuestionType.MULTIPLE_CHOICE
        return QuestionType.SINGLE_CHOICE
    if isinstance(data, BooleanData):
        return QuestionType.TRUE_FALSE
    if isinstance(data, FillBlankData):
        return QuestionType.FILL_BLANK
    if isinstance(data, ShortAnswerData):
        return QuestionType.SHORT_ANSWER

    if requested_types and len(requested_types) == 1:
        return requested_types[0]
    return None


def complete_question_data(
    question: GeneratedQuestion,
    question_type: QuestionType,
    difficulty: QuestionDifficulty,
) -> AnswerData | None:
    """
    Answer data for a question, built from its flat fields when missing.

    Data of a variant that does not fit ``question_type`` (a true/false
    question with "True"/"False" options, say) is rebuilt from the flat
    fields. The question's explanation fills an empty one in the data;
    ``difficulty`` always replaces the data's difficulty.
    """
    data = question.data
    if data is not None and not isinstance(data, VARIANT_FOR_TYPE[question_type]):
        data = None
    if data is None:
        data = build_data_from_legacy(
            question_type,
            question.options,
            question.correct_answer,
            question.explanation,
            difficulty,
        )
    if data is None:
        return None

    updates: dict = {"difficulty": difficulty}
    if question.explanation and not data.explanation:
        updates["explanation"] = question.explanation
    return data.model_copy(update=updates)
