"""Prompt templates shared by every provider."""

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, convert_to_openai_messages

from answerme.models.question import GenerationRequest

SYSTEM_PROMPT = (
    "You are a professional exam question writer. "
    "Generate questions exactly as the user asks and reply with JSON only."
)

_RESPONSE_EXAMPLE = """{
  "questions": [
    {
      "questionType": "single_choice",
      "questionText": "Which of the following is a primitive type in JavaScript?",
      "options": ["string", "object", "array", "function"],
      "correctAnswer": "string",
      "explanation": "string is a primitive type; objects, arrays and functions are reference types.",
      "difficulty": "easy"
    }
  ]
}"""


def build_user_prompt(request: GenerationRequest, count: int | None = None) -> str:
    """
    Build the user prompt for a generation request.

    Args:
        request: The generation request
        count: Questions to ask for in this call, ``request.count`` when omitted

    Returns:
        Prompt text demanding a ``{"questions": [...]}`` JSON object
    """
    count = request.count if count is None else count
    question_types = ", ".join(t.to_ai_prompt() for t in request.question_types)
    custom = f"Additional instructions: {request.custom_prompt}\n\n" if request.custom_prompt else ""

    return f"""Generate {count} {request.difficulty.value} questions about "{request.subject}".
Question types to use: {question_types}.

{custom}Requirements:
1. Reply with a single JSON object of the form {{"questions": [...]}}
2. Every question has questionType, questionText, options (array), correctAnswer, explanation, difficulty
3. Write the questions in {request.language}
4. Options must be plausible; distractors should be convincing
5. Explanations must be detailed and accurate
6. For multiple_choice list every correct option in correctAnswer as an array
7. For true_false use "true" or "false" as correctAnswer and omit options

Example:
{_RESPONSE_EXAMPLE}"""


def build_messages(request: GenerationRequest, count: int | None = None) -> list[BaseMessage]:
    """System and user messages for one generation call."""
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=build_user_prompt(request, count)),
    ]


def to_openai_messages(messages: list[BaseMessage]) -> list[dict]:
    """Render messages as OpenAI-style ``{"role", "content"}`` dicts."""
    return convert_to_openai_messages(messages)
