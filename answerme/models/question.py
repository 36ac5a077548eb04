"""Pydantic models for generation requests, questions and answer data."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

from answerme.models.legacy import parse_boolean_answer, parse_correct_answers


class QuestionDifficulty(str, Enum):
    """Question difficulty levels."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def coerce(cls, value: Any, default: "QuestionDifficulty | None" = None) -> "QuestionDifficulty | None":
        """Best-effort conversion of model output, ``default`` when unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return default
        return default


# Loose spellings seen in stored data and model output
_QUESTION_TYPE_ALIASES = {
    "choice": "SingleChoice",
    "single": "SingleChoice",
    "single-choice": "SingleChoice",
    "single_choice": "SingleChoice",
    "单选题": "SingleChoice",
    "单选": "SingleChoice",
    "选择题": "SingleChoice",
    "multiple": "MultipleChoice",
    "multiple-choice": "MultipleChoice",
    "multiple_choice": "MultipleChoice",
    "多选题": "MultipleChoice",
    "多选": "MultipleChoice",
    "true-false": "TrueFalse",
    "true_false": "TrueFalse",
    "boolean": "TrueFalse",
    "bool": "TrueFalse",
    "判断题": "TrueFalse",
    "fill": "FillBlank",
    "fill-blank": "FillBlank",
    "fill_blank": "FillBlank",
    "填空题": "FillBlank",
    "essay": "ShortAnswer",
    "short-answer": "ShortAnswer",
    "short_answer": "ShortAnswer",
    "简答题": "ShortAnswer",
}


class QuestionType(str, Enum):
    """Question types, each graded by its own rule."""

    SINGLE_CHOICE = "SingleChoice"
    MULTIPLE_CHOICE = "MultipleChoice"
    TRUE_FALSE = "TrueFalse"
    FILL_BLANK = "FillBlank"
    SHORT_ANSWER = "ShortAnswer"

    @classmethod
    def parse(cls, value: str | None) -> "QuestionType | None":
        """
        Parse a type tag, accepting canonical names and legacy aliases.

        Args:
            value: Raw tag such as "SingleChoice", "single" or "判断题"

        Returns:
            Matching QuestionType, or None when the tag is unknown
        """
        if value is None or not value.strip():
            return None
        text = value.strip()
        for member in cls:
            if member.value.lower() == text.lower() or member.name.lower() == text.lower():
                return member
        alias = _QUESTION_TYPE_ALIASES.get(text.lower())
        return cls(alias) if alias else None

    def to_ai_prompt(self) -> str:
        """Tag used inside generation prompts."""
        return {
            QuestionType.SINGLE_CHOICE: "single_choice",
            QuestionType.MULTIPLE_CHOICE: "multiple_choice",
            QuestionType.TRUE_FALSE: "true_false",
            QuestionType.FILL_BLANK: "fill_blank",
            QuestionType.SHORT_ANSWER: "short_answer",
        }[self]

    @property
    def display_name(self) -> str:
        """Human readable name."""
        return {
            QuestionType.SINGLE_CHOICE: "Single choice",
            QuestionType.MULTIPLE_CHOICE: "Multiple choice",
            QuestionType.TRUE_FALSE: "True / false",
            QuestionType.FILL_BLANK: "Fill in the blank",
            QuestionType.SHORT_ANSWER: "Short answer",
        }[self]

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)


# Answer data variants


class QuestionDataBase(BaseModel):
    """Fields shared by every answer-data variant."""

    explanation: str | None = Field(None, description="Explanation of the correct answer")
    difficulty: QuestionDifficulty = Field(
        default=QuestionDifficulty.MEDIUM,
        description="Question difficulty level",
    )

    @field_validator("difficulty", mode="before")
    @classmethod
    def validate_difficulty(cls, v: Any) -> QuestionDifficulty:
        """Unknown difficulty labels fall back to medium."""
        return QuestionDifficulty.coerce(v, QuestionDifficulty.MEDIUM)


class ChoiceData(QuestionDataBase):
    """Single or multiple choice: ordered options and a set of correct answers."""

    kind: Literal["choice"] = "choice"
    options: list[str] = Field(default_factory=list, description="Options in display order")
    correct_answers: list[str] = Field(
        default_factory=list,
        description="Correct answers; one entry for single choice",
    )


class BooleanData(QuestionDataBase):
    """True / false question."""

    kind: Literal["boolean"] = "boolean"
    correct_answer: bool = Field(..., description="The correct answer")


class FillBlankData(QuestionDataBase):
    """Fill in the blank: any acceptable answer is sufficient."""

    kind: Literal["fill_blank"] = "fill_blank"
    acceptable_answers: list[str] = Field(default_factory=list, description="Accepted answers")


class ShortAnswerData(QuestionDataBase):
    """Free text answer graded by containment against a reference."""

    kind: Literal["short_answer"] = "short_answer"
    reference_answer: str = Field(default="", description="Reference answer")


QuestionData = Annotated[
    Union[ChoiceData, BooleanData, FillBlankData, ShortAnswerData],
    Field(discriminator="kind"),
]

_VARIANTS_BY_KIND = {
    "choice": ChoiceData,
    "boolean": BooleanData,
    "fill_blank": FillBlankData,
    "short_answer": ShortAnswerData,
}


def _normalize_key(key: str) -> str:
    return key.replace("_", "").lower()


def question_data_from_dict(raw: dict[str, Any]) -> "AnswerData | None":
    """
    Build a variant from a stored dict, with or without a ``kind`` tag.

    Untagged (pre-migration) records are recognised by the fields they carry;
    camelCase and snake_case names are both accepted.

    Args:
        raw: Stored answer data

    Returns:
        The matching variant, or None when no variant fits
    """
    fields = {_normalize_key(k): v for k, v in raw.items()}
    common = {
        "explanation": fields.get("explanation"),
        "difficulty": fields.get("difficulty", QuestionDifficulty.MEDIUM),
    }

    kind = fields.get("kind")
    if isinstance(kind, str) and kind in _VARIANTS_BY_KIND:
        return _VARIANTS_BY_KIND[kind].model_validate(raw)

    if "options" in fields or "correctanswers" in fields:
        return ChoiceData(
            options=[str(o) for o in fields.get("options") or []],
            correct_answers=[str(a) for a in fields.get("correctanswers") or []],
            **common,
        )
    if "acceptableanswers" in fields:
        return FillBlankData(
            acceptable_answers=[str(a) for a in fields["acceptableanswers"] or []],
            **common,
        )
    if "referenceanswer" in fields:
        return ShortAnswerData(reference_answer=str(fields["referenceanswer"] or ""), **common)
    if "correctanswer" in fields:
        value = fields["correctanswer"]
        answer = value if isinstance(value, bool) else parse_boolean_answer(str(value))
        if answer is not None:
            return BooleanData(correct_answer=answer, **common)
    return None


def legacy_correct_answer(data: QuestionDataBase | None) -> str:
    """Flat correct-answer text for a variant, as older readers expect it."""
    if isinstance(data, ChoiceData):
        return ",".join(data.correct_answers)
    if isinstance(data, BooleanData):
        return "true" if data.correct_answer else "false"
    if isinstance(data, FillBlankData):
        return ",".join(data.acceptable_answers)
    if isinstance(data, ShortAnswerData):
        return data.reference_answer
    return ""


AnswerData = ChoiceData | BooleanData | FillBlankData | ShortAnswerData

VARIANT_FOR_TYPE: dict[QuestionType, type] = {
    QuestionType.SINGLE_CHOICE: ChoiceData,
    QuestionType.MULTIPLE_CHOICE: ChoiceData,
    QuestionType.TRUE_FALSE: BooleanData,
    QuestionType.FILL_BLANK: FillBlankData,
    QuestionType.SHORT_ANSWER: ShortAnswerData,
}


def build_data_from_legacy(
    question_type: QuestionType | None,
    options: list[str],
    correct_answer: str,
    explanation: str | None,
    difficulty: QuestionDifficulty,
) -> AnswerData | None:
    """Build answer data from flat options / correct-answer fields."""
    common = {"explanation": explanation, "difficulty": difficulty}

    if question_type is None:
        return None

    if question_type.is_choice:
        answers = parse_correct_answers(correct_answer)
        if not options and not answers and not explanation:
            return None
        return ChoiceData(options=list(options), correct_answers=answers, **common)

    if question_type is QuestionType.TRUE_FALSE:
        value = parse_boolean_answer(correct_answer)
        return BooleanData(correct_answer=value, **common) if value is not None else None

    if question_type is QuestionType.FILL_BLANK:
        answers = parse_correct_answers(correct_answer)
        if not answers and not explanation:
            return None
        return FillBlankData(acceptable_answers=answers, **common)

    if not correct_answer.strip() and not explanation:
        return None
    return ShortAnswerData(reference_answer=correct_answer, **common)


class GenerationRequest(BaseModel):
    """A request to generate questions. Immutable once submitted."""

    subject: str = Field(..., description="Topic the questions are about")
    count: int = Field(..., description="Number of questions requested")
    difficulty: QuestionDifficulty = Field(
        default=QuestionDifficulty.MEDIUM,
        description="Requested difficulty",
    )
    question_types: list[QuestionType] = Field(
        default_factory=lambda: [QuestionType.SINGLE_CHOICE],
        description="Requested question types",
    )
    language: str = Field(default="en", description="Language of the generated questions")
    custom_prompt: str | None = Field(None, description="Extra instructions for the model")
    provider_name: str | None = Field(None, description="Provider override")
    question_bank_id: int | None = Field(None, description="Target question bank")

    @field_validator("question_types", mode="before")
    @classmethod
    def validate_question_types(cls, v: Any) -> list[QuestionType]:
        """Accept loose type tags and drop duplicates, keeping order."""
        if isinstance(v, (str, QuestionType)):
            v = [v]
        parsed: list[QuestionType] = []
        for item in v or []:
            question_type = item if isinstance(item, QuestionType) else QuestionType.parse(str(item))
            if question_type is None:
                raise ValueError(f"Unknown question type: {item}")
            if question_type not in parsed:
                parsed.append(question_type)
        return parsed

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "subject": "Algebra",
                "count": 5,
                "difficulty": "easy",
                "question_types": ["SingleChoice"],
                "language": "en",
            }
        },
    }


class GeneratedQuestion(BaseModel):
    """A question produced by a provider, before persistence."""

    question_text: str = Field(default="", description="The question text")
    question_type: QuestionType | None = Field(None, description="Type tag, None when the model gave none")
    data: QuestionData | None = Field(None, description="Structured answer data")
    # Flat fields kept alongside ``data`` for records without a variant
    options: list[str] = Field(default_factory=list, description="Legacy options list")
    correct_answer: str = Field(default="", description="Legacy correct answer text")
    explanation: str | None = Field(None, description="Explanation of the correct answer")
    difficulty: str = Field(default="medium", description="Difficulty label as produced")

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        """Untagged dicts are legacy records; infer their variant."""
        if isinstance(v, dict) and "kind" not in v:
            return question_data_from_dict(v)
        return v

    def populate_legacy_fields(self) -> None:
        """Fill the flat fields from ``data`` so both shapes agree."""
        if self.data is None:
            return
        if isinstance(self.data, ChoiceData):
            self.options = list(self.data.options)
        self.correct_answer = legacy_correct_answer(self.data)
        if self.data.explanation and not self.explanation:
            self.explanation = self.data.explanation


class StoredQuestion(GeneratedQuestion):
    """A persisted question, as returned to callers and used for grading."""

    id: int = Field(..., description="Persistent identifier")
    question_bank_id: int = Field(..., description="Owning question bank")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProviderResponse(BaseModel):
    """Outcome of one provider call. Providers never raise; they return this."""

    success: bool
    questions: list[GeneratedQuestion] = Field(default_factory=list)
    error_message: str | None = None
    error_code: str | None = None
    tokens_used: int | None = Field(None, ge=0, description="Tokens reported by the provider")

    @classmethod
    def failure(cls, code: str, message: str) -> "ProviderResponse":
        return cls(success=False, error_code=str(code), error_message=message)


class GenerationResult(BaseModel):
    """Result of a generation run returned to the caller."""

    success: bool
    questions: list[StoredQuestion] = Field(default_factory=list)
    error_message: str | None = None
    error_code: str | None = None
    tokens_used: int | None = None
    partial_success_count: int | None = None

    @classmethod
    def failure(cls, code: str, message: str) -> "GenerationResult":
        return cls(success=False, error_code=str(code), error_message=message)


class AttemptDetail(BaseModel):
    """One graded answer within a quiz attempt."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    attempt_id: int
    question_id: int
    user_answer: str | None = None
    is_correct: bool | None = None
    time_spent: int | None = Field(None, ge=0, description="Seconds spent on the question")
