"""Exception types raised by the quiz services."""
from typing import Optional


class QuizError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class NotFoundError(QuizError):
    """A user or exercise does not exist."""


class ValidationError(QuizError):
    """Input failed validation.

    ``errors`` maps a field name (or "__root__") to a human readable message.
    """

    def __init__(self, message: str, errors: Optional[dict] = None, **extra):
        super().__init__(message)
        self.errors = errors or {}
        self.extra = extra


class AuthenticationError(QuizError):
    """Login credentials did not match an active user."""


class PersistenceError(QuizError):
    """The storage layer failed; no changes were kept."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Database error: {message}", original_exception)
