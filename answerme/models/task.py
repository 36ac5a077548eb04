"""Models for background generation tasks."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from answerme.models.errors import InvalidTransitionError
from answerme.models.question import StoredQuestion


class TaskStatus(str, Enum):
    """Lifecycle states of a generation task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.PARTIAL_SUCCESS, TaskStatus.FAILED})

# processing -> processing is allowed so batch progress can be recorded
_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING, TaskStatus.FAILED}),
    TaskStatus.PROCESSING: frozenset(
        {TaskStatus.PROCESSING, TaskStatus.COMPLETED, TaskStatus.PARTIAL_SUCCESS, TaskStatus.FAILED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.PARTIAL_SUCCESS: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class GenerationTask(BaseModel):
    """Progress record of one asynchronous generation request."""

    task_id: str = Field(..., description="Opaque task identifier")
    owner_id: int = Field(..., description="User that submitted the task")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    generated_count: int = Field(default=0, ge=0, description="Questions saved so far")
    total_count: int = Field(..., ge=0, description="Questions requested")
    questions: list[StoredQuestion] | None = Field(None, description="Saved questions, once terminal")
    error_message: str | None = Field(None, description="Failure or partial-success detail")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def advance(self, status: TaskStatus) -> None:
        """
        Move the task to ``status``, enforcing forward-only transitions.

        Terminal states set ``completed_at``.

        Args:
            status: Target state

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Task {self.task_id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.completed_at = datetime.now(timezone.utc)

    def record_progress(self, generated_count: int) -> None:
        """Raise the generated counter; it never decreases."""
        self.generated_count = max(self.generated_count, generated_count)
