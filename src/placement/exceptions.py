"""
Exception hierarchy for the placement engine.

Configuration problems are fatal and surface before a session exists.
Content problems are retryable and leave the session untouched.
Late or duplicate submissions are rejected, never re-scored.
"""


class PlacementError(Exception):
    """Base class for every error raised by the placement engine."""

    retryable = False


class ConfigurationError(PlacementError):
    """Raised when a branch table or question set cannot be used."""
    pass


class QuestionShapeError(ConfigurationError):
    """Raised when a question's answer key does not match its type."""
    pass


class ContentUnavailableError(PlacementError):
    """Raised when the question source returns no questions for a batch."""

    retryable = True


class NoActiveSessionError(PlacementError):
    """Raised when an operation needs a session and none was started."""
    pass


class SessionInProgressError(PlacementError):
    """Raised when starting a new attempt while one is still running."""
    pass


class SessionFinalizedError(PlacementError):
    """Raised on submissions after the session has produced its result."""
    pass


class SessionAbandonedError(PlacementError):
    """Raised on submissions to a session that was torn down."""
    pass


class PhaseExpiredError(PlacementError):
    """Raised when an answer arrives after the phase clock ran out."""
    pass


class InvalidAnswerIndexError(PlacementError, IndexError):
    """Raised when an answer targets a position outside the active batch."""
    pass


class IncompleteQuizError(PlacementError):
    """Raised when a mastery quiz is submitted with unanswered questions."""
    pass


class AnswerLockedError(PlacementError):
    """Raised when a practice question that was already checked is answered again."""
    pass
