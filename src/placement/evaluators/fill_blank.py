"""
Fill-in-the-blank evaluator.

Exact string match after trimming and lowercasing both sides. No fuzzy
matching and no locale-aware collation.
"""

from typing import Any

from src.placement.models import FillBlankQuestion, QuestionType

from . import register
from .base import AnswerResult, malformed


@register(QuestionType.FILL_BLANK)
class FillBlankHandler:
    """Handler for fill-blank questions."""

    def validate(self, question: Any) -> bool:
        return isinstance(question, FillBlankQuestion)

    def check(self, question: FillBlankQuestion, answer: Any) -> AnswerResult:
        """Check if answer matches the key, ignoring case and outer whitespace."""
        if not isinstance(answer, str):
            return malformed(answer, question.correct_answer)

        is_correct = self._grade(answer, question.correct_answer)
        return AnswerResult(
            correct=is_correct,
            feedback="Correct!" if is_correct else f"Expected: {question.correct_answer}",
            user_answer=answer.strip(),
            correct_answer=question.correct_answer,
        )

    def _grade(self, user_answer: str, correct: str) -> bool:
        return user_answer.lower().strip() == correct.lower().strip()
