"""Persistence for questions, question banks and quiz attempts."""

from .base import DEFAULT_BANK_DESCRIPTION, DEFAULT_BANK_NAME, QuestionBank, QuizAttempt, Storage, StorageSession
from .memory import InMemorySession, InMemoryStorage

__all__ = [
    "DEFAULT_BANK_DESCRIPTION",
    "DEFAULT_BANK_NAME",
    "InMemorySession",
    "InMemoryStorage",
    "QuestionBank",
    "QuizAttempt",
    "Storage",
    "StorageSession",
]
