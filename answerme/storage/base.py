"""Persistence contract for questions, banks and quiz attempts."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from answerme.models.question import AttemptDetail, GeneratedQuestion, StoredQuestion

DEFAULT_BANK_NAME = "AI generated questions"
DEFAULT_BANK_DESCRIPTION = "Questions generated automatically by AI"


class QuestionBank(BaseModel):
    """A user's collection of questions."""

    id: int
    owner_id: int
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QuizAttempt(BaseModel):
    """One user's run through a quiz."""

    id: int
    owner_id: int
    question_bank_id: int | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    correct_count: int | None = None
    answered_count: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def score(self) -> float | None:
        """Percentage of answered questions that were correct."""
        if self.answered_count is None or self.correct_count is None:
            return None
        return self.correct_count / self.answered_count * 100 if self.answered_count else 0.0


class StorageSession(ABC):
    """
    A unit of work against the store.

    Sessions are opened per request or per background job and must not be
    used after they are closed.
    """

    @abstractmethod
    async def get_question_bank(self, bank_id: int) -> QuestionBank | None: ...

    @abstractmethod
    async def create_question_bank(self, owner_id: int, name: str, description: str | None = None) -> QuestionBank: ...

    @abstractmethod
    async def save_question(self, bank_id: int, question: GeneratedQuestion) -> StoredQuestion:
        """
        Persist one question.

        Raises:
            PersistenceError: If the question could not be stored
        """

    @abstractmethod
    async def get_question(self, question_id: int) -> StoredQuestion | None: ...

    @abstractmethod
    async def create_attempt(self, owner_id: int, question_bank_id: int | None = None) -> QuizAttempt: ...

    @abstractmethod
    async def get_attempt(self, attempt_id: int) -> QuizAttempt | None: ...

    @abstractmethod
    async def save_attempt(self, attempt: QuizAttempt) -> QuizAttempt: ...

    @abstractmethod
    async def get_attempt_detail(self, attempt_id: int, question_id: int) -> AttemptDetail | None: ...

    @abstractmethod
    async def list_attempt_details(self, attempt_id: int) -> list[AttemptDetail]: ...

    @abstractmethod
    async def save_attempt_detail(self, detail: AttemptDetail) -> AttemptDetail:
        """Insert or replace the detail for its (attempt, question) pair."""


class Storage(ABC):
    """Opens storage sessions."""

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager[StorageSession]: ...
