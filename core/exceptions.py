"""
Domain exceptions for question-set composition and persistence.
"""

from typing import Optional


class QuestionSetError(Exception):
    """Base exception for question-set operations."""
    pass


class QuestionSetValidationError(QuestionSetError):
    """Raised when a draft fails validation (e.g. a mandatory round is empty)."""

    def __init__(self, message: str, rounds: Optional[list[str]] = None):
        super().__init__(message)
        self.rounds = rounds or []


class GenerationError(QuestionSetError):
    """Raised when a generation channel fails, returns nothing, or repeats a question."""
    pass


class GenerationCancelledError(GenerationError):
    """Raised when a generation request is superseded or its session closes."""
    pass


class FatalPersistenceError(QuestionSetError):
    """Raised when the question-set aggregate cannot be saved."""
    pass


class PartialPersistenceError(QuestionSetError):
    """A secondary write (section, instruction, or candidate state) failed."""

    def __init__(self, step: str, message: str, candidate_id: Optional[int] = None):
        super().__init__(message)
        self.step = step
        self.candidate_id = candidate_id


class CandidateLookupError(QuestionSetError):
    """Raised when candidates bound to a position cannot be resolved."""
    pass


class QuestionSetNotFoundError(QuestionSetError):
    """Raised when a question set id does not resolve to a stored aggregate."""
    pass
