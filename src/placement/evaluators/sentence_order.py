"""
Sentence ordering evaluator.

The submitted index sequence must match the key position by position.
Same items in another order is still wrong.
"""

from typing import Any

from src.placement.models import QuestionType, SentenceOrderQuestion

from . import register
from .base import AnswerResult, coerce_index_list, malformed


@register(QuestionType.SENTENCE_ORDER)
class SentenceOrderHandler:
    """Handler for sentence-order questions."""

    def validate(self, question: Any) -> bool:
        return isinstance(question, SentenceOrderQuestion)

    def check(self, question: SentenceOrderQuestion, answer: Any) -> AnswerResult:
        """Check the submitted order against the key."""
        user_order = coerce_index_list(answer)
        if user_order is None:
            return malformed(answer, question.correct_answer)

        correct_order = question.correct_answer
        is_correct = user_order == correct_order

        correct_positions = sum(
            1 for i, index in enumerate(user_order)
            if i < len(correct_order) and index == correct_order[i]
        )

        return AnswerResult(
            correct=is_correct,
            feedback="Correct sequence!" if is_correct else f"Incorrect. {correct_positions}/{len(correct_order)} in position.",
            user_answer=user_order,
            correct_answer=list(correct_order),
        )
