"""
Multiple choice evaluator.

- Single answer: the submitted index must equal the key (numeric compare).
- Multi-select: the sorted submission must equal the sorted key exactly;
  no partial credit.
"""

from typing import Any

from src.placement.models import MultipleChoiceQuestion, QuestionType

from . import register
from .base import AnswerResult, coerce_index, coerce_index_list, malformed


@register(QuestionType.MULTIPLE_CHOICE)
class MultipleChoiceHandler:
    """Handler for multiple choice questions."""

    def validate(self, question: Any) -> bool:
        return isinstance(question, MultipleChoiceQuestion)

    def check(self, question: MultipleChoiceQuestion, answer: Any) -> AnswerResult:
        """Check if the submitted choice(s) are correct."""
        if question.is_multi_select:
            return self._check_multi(question, answer)

        choice = coerce_index(answer)
        if choice is None:
            return malformed(answer, question.correct_answer)

        is_correct = choice == question.correct_answer
        return AnswerResult(
            correct=is_correct,
            feedback="Correct!" if is_correct else "Incorrect.",
            user_answer=choice,
            correct_answer=question.correct_answer,
        )

    def _check_multi(self, question: MultipleChoiceQuestion, answer: Any) -> AnswerResult:
        choices = coerce_index_list(answer)
        if choices is None:
            return malformed(answer, question.correct_answer)

        expected = sorted(question.correct_answer)
        is_correct = sorted(choices) == expected
        if is_correct:
            feedback = "Correct!"
        elif len(choices) != len(expected):
            feedback = f"Select exactly {len(expected)} options."
        else:
            feedback = "Incorrect."

        return AnswerResult(
            correct=is_correct,
            feedback=feedback,
            user_answer=sorted(choices),
            correct_answer=expected,
        )
