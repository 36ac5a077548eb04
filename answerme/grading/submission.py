"""Recording graded answers for quiz attempts."""

import logging
from datetime import datetime, timezone

from answerme.grading.verifier import is_correct
from answerme.models.errors import AttemptFinalizedError, NotFoundError
from answerme.models.question import AttemptDetail
from answerme.storage.base import QuizAttempt, Storage, StorageSession

logger = logging.getLogger(__name__)


class AnswerSubmissionService:
    """Grades submitted answers and keeps one AttemptDetail per (attempt, question)."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def _open_attempt(self, session: StorageSession, owner_id: int, attempt_id: int) -> QuizAttempt:
        attempt = await session.get_attempt(attempt_id)
        if attempt is None or attempt.owner_id != owner_id:
            raise NotFoundError(f"Attempt {attempt_id} does not exist or is not accessible")
        if attempt.is_completed:
            raise AttemptFinalizedError(f"Attempt {attempt_id} is already completed")
        return attempt

    async def submit_answer(
        self,
        owner_id: int,
        attempt_id: int,
        question_id: int,
        user_answer: str | None,
        time_spent: int | None = None,
    ) -> AttemptDetail:
        """
        Grade an answer and store it, replacing an earlier submission.

        Args:
            owner_id: User submitting the answer
            attempt_id: Attempt the answer belongs to
            question_id: Question being answered
            user_answer: Raw answer text
            time_spent: Seconds spent on the question

        Returns:
            The stored AttemptDetail

        Raises:
            NotFoundError: If the attempt or question does not exist
            AttemptFinalizedError: If the attempt is already completed
        """
        async with self.storage.session() as session:
            await self._open_attempt(session, owner_id, attempt_id)

            question = await session.get_question(question_id)
            if question is None:
                raise NotFoundError(f"Question {question_id} does not exist")

            correct = is_correct(question, user_answer)
            detail = await session.get_attempt_detail(attempt_id, question_id)
            if detail is None:
                detail = AttemptDetail(attempt_id=attempt_id, question_id=question_id)
            detail.user_answer = user_answer
            detail.time_spent = time_spent
            detail.is_correct = correct

            logger.debug("Attempt %d, question %d graded %s", attempt_id, question_id, correct)
            return await session.save_attempt_detail(detail)

    async def complete_attempt(self, owner_id: int, attempt_id: int) -> QuizAttempt:
        """
        Finalize an attempt and record its score; no answers are accepted afterwards.

        Raises:
            NotFoundError: If the attempt does not exist
            AttemptFinalizedError: If the attempt is already completed
        """
        async with self.storage.session() as session:
            attempt = await self._open_attempt(session, owner_id, attempt_id)
            details = await session.list_attempt_details(attempt_id)

            attempt.answered_count = len(details)
            attempt.correct_count = sum(1 for d in details if d.is_correct)
            attempt.completed_at = datetime.now(timezone.utc)
            return await session.save_attempt(attempt)
