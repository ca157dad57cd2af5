"""
Base protocol and types for answer evaluators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger


@dataclass
class AnswerResult:
    """Result of checking an answer."""
    correct: bool
    feedback: str
    user_answer: Any
    correct_answer: Any
    malformed: bool = False  # submission had the wrong shape for the question type
    sub_results: list[bool] = field(default_factory=list)  # reading-comprehension only


def malformed(user_answer: Any, correct_answer: Any, feedback: str = "No answer provided.") -> AnswerResult:
    """Incorrect result for a submission that cannot be graded."""
    logger.debug("Malformed answer {!r}: {}", user_answer, feedback)
    return AnswerResult(
        correct=False,
        feedback=feedback,
        user_answer=user_answer,
        correct_answer=correct_answer,
        malformed=True,
    )


def coerce_index(value: Any) -> int | None:
    """
    Read a choice index the way the web client did (``Number(value)``).

    Accepts ints, integral floats and numeric strings. Booleans and anything
    else are not indices.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return None
    return None


def coerce_index_list(value: Any) -> list[int] | None:
    """Read a sequence of indices; ``None`` if the value or any entry is not one."""
    if not isinstance(value, (list, tuple)):
        return None
    indices = []
    for item in value:
        index = coerce_index(item)
        if index is None:
            return None
        indices.append(index)
    return indices


class EvaluatorHandler(Protocol):
    """Protocol for question type evaluators."""

    def validate(self, question: Any) -> bool:
        """Check that the question is the shape this handler grades."""
        ...

    def check(self, question: Any, answer: Any) -> AnswerResult:
        """Grade the answer. Never raises for a malformed submission."""
        ...
