"""
Answer evaluators for placement and mastery questions.

Each question type has its own module with:
- validate(): Confirm the question is the shape the handler grades
- check(): Grade a submission and explain the outcome

``evaluate()`` is the pure, total entry point used by the phase controller,
the mastery validator and immediate practice.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.placement.exceptions import QuestionShapeError
from src.placement.models import QuestionType

if TYPE_CHECKING:
    from .base import AnswerResult, EvaluatorHandler


# Handler registry - populated by @register decorator
HANDLERS: dict[QuestionType, "EvaluatorHandler"] = {}


def register(question_type: QuestionType):
    """Decorator to register an evaluator."""
    def decorator(cls):
        HANDLERS[question_type] = cls()
        return cls
    return decorator


def get_handler(question_type: str | QuestionType) -> "EvaluatorHandler":
    """Get the evaluator for a question type; unknown types are structural errors."""
    try:
        return HANDLERS[QuestionType(question_type)]
    except (ValueError, KeyError) as exc:
        raise QuestionShapeError(f"No evaluator for question type {question_type!r}") from exc


def check_answer(question: Any, answer: Any) -> "AnswerResult":
    """Grade ``answer`` against ``question`` with full feedback."""
    handler = get_handler(question.question_type)
    if not handler.validate(question):
        raise QuestionShapeError(
            f"Question {getattr(question, 'id', '?')} does not match type {question.question_type}"
        )
    return handler.check(question, answer)


def evaluate(question: Any, answer: Any) -> bool:
    """True when ``answer`` is correct for ``question``."""
    return check_answer(question, answer).correct


# Import handlers to trigger registration
from . import multiple_choice
from . import fill_blank
from . import sentence_order
from . import reading_comprehension

__all__ = [
    "HANDLERS",
    "check_answer",
    "evaluate",
    "get_handler",
    "register",
]
