"""
Reading comprehension evaluator.

Each sub-question is graded on its own; the parent question counts as
correct only when every sub-question is. Missing entries are wrong.
"""

from typing import Any

from src.placement.models import QuestionType, ReadingComprehensionQuestion

from . import register
from .base import AnswerResult, coerce_index, malformed


@register(QuestionType.READING_COMPREHENSION)
class ReadingComprehensionHandler:
    """Handler for reading-comprehension questions."""

    def validate(self, question: Any) -> bool:
        return isinstance(question, ReadingComprehensionQuestion)

    def check(self, question: ReadingComprehensionQuestion, answer: Any) -> AnswerResult:
        """Check every sub-answer; one miss invalidates the question."""
        expected = [sub.correct_answer for sub in question.sub_questions]
        if not isinstance(answer, (list, tuple)):
            return malformed(answer, expected)

        sub_results = []
        for position, key in enumerate(expected):
            given = coerce_index(answer[position]) if position < len(answer) else None
            sub_results.append(given is not None and given == key)

        is_correct = all(sub_results)
        wrong = [str(i + 1) for i, ok in enumerate(sub_results) if not ok]

        return AnswerResult(
            correct=is_correct,
            feedback="Correct!" if is_correct else f"Incorrect sub-questions: {', '.join(wrong)}",
            user_answer=list(answer),
            correct_answer=expected,
            sub_results=sub_results,
        )
