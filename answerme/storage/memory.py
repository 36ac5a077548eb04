"""In-memory storage, used by the CLI and the tests."""

import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from answerme.models.errors import PersistenceError
from answerme.models.question import AttemptDetail, GeneratedQuestion, StoredQuestion
from answerme.storage.base import QuestionBank, QuizAttempt, Storage, StorageSession

logger = logging.getLogger(__name__)


class InMemoryStorage(Storage):
    """Process-local tables shared by all sessions."""

    def __init__(self):
        self.banks: dict[int, QuestionBank] = {}
        self.questions: dict[int, StoredQuestion] = {}
        self.attempts: dict[int, QuizAttempt] = {}
        self.attempt_details: dict[tuple[int, int], AttemptDetail] = {}
        self._bank_ids = itertools.count(1)
        self._question_ids = itertools.count(1)
        self._attempt_ids = itertools.count(1)

    def insert_question(self, bank_id: int, question: GeneratedQuestion) -> StoredQuestion:
        if bank_id not in self.banks:
            raise PersistenceError(f"Question bank {bank_id} does not exist")
        stored = StoredQuestion(
            **question.model_dump(exclude={"data"}),
            data=question.data,
            id=next(self._question_ids),
            question_bank_id=bank_id,
        )
        self.questions[stored.id] = stored
        return stored.model_copy(deep=True)

    @asynccontextmanager
    async def session(self) -> AsyncIterator["InMemorySession"]:
        session = InMemorySession(self)
        try:
            yield session
        finally:
            session.close()


class InMemorySession(StorageSession):
    """Session over an InMemoryStorage; refuses work once closed."""

    def __init__(self, storage: InMemoryStorage):
        self._storage = storage
        self._closed = False

    def close(self) -> None:
        self._closed = True

    def _check_open(self) -> InMemoryStorage:
        if self._closed:
            raise PersistenceError("Storage session is closed")
        return self._storage

    async def get_question_bank(self, bank_id: int) -> QuestionBank | None:
        return self._check_open().banks.get(bank_id)

    async def create_question_bank(self, owner_id: int, name: str, description: str | None = None) -> QuestionBank:
        storage = self._check_open()
        bank = QuestionBank(id=next(storage._bank_ids), owner_id=owner_id, name=name, description=description)
        storage.banks[bank.id] = bank
        logger.debug("Created question bank %d for user %d", bank.id, owner_id)
        return bank

    async def save_question(self, bank_id: int, question: GeneratedQuestion) -> StoredQuestion:
        return self._check_open().insert_question(bank_id, question)

    async def get_question(self, question_id: int) -> StoredQuestion | None:
        question = self._check_open().questions.get(question_id)
        return question.model_copy(deep=True) if question else None

    async def create_attempt(self, owner_id: int, question_bank_id: int | None = None) -> QuizAttempt:
        storage = self._check_open()
        attempt = QuizAttempt(id=next(storage._attempt_ids), owner_id=owner_id, question_bank_id=question_bank_id)
        storage.attempts[attempt.id] = attempt
        return attempt.model_copy()

    async def get_attempt(self, attempt_id: int) -> QuizAttempt | None:
        attempt = self._check_open().attempts.get(attempt_id)
        return attempt.model_copy() if attempt else None

    async def save_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        self._check_open().attempts[attempt.id] = attempt.model_copy()
        return attempt

    async def get_attempt_detail(self, attempt_id: int, question_id: int) -> AttemptDetail | None:
        detail = self._check_open().attempt_details.get((attempt_id, question_id))
        return detail.model_copy() if detail else None

    async def list_attempt_details(self, attempt_id: int) -> list[AttemptDetail]:
        details = self._check_open().attempt_details.values()
        return [d.model_copy() for d in details if d.attempt_id == attempt_id]

    async def save_attempt_detail(self, detail: AttemptDetail) -> AttemptDetail:
        self._check_open().attempt_details[(detail.attempt_id, detail.question_id)] = detail.model_copy()
        return detail
