"""
Mastery Validator: all-or-nothing quiz for a single learning item.

An item becomes ``learned`` only when every quiz question is answered
correctly. Any miss sends it to ``studying``. An item with no quiz
questions can never be validated and ends as ``no_quiz``.

Skipping an item is a separate action and never happens inside a quiz.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from loguru import logger

from config import Settings, get_settings
from src.placement.evaluators import evaluate
from src.placement.exceptions import (
    IncompleteQuizError,
    InvalidAnswerIndexError,
    SessionFinalizedError,
)
from src.placement.interfaces import QuestionSource, RewardLedger
from src.placement.models import Reward, percent_score


class MasteryStatus(str, Enum):
    """Outcome of a mastery quiz for one item."""

    PENDING = "pending"  # quiz open
    LEARNED = "learned"  # every answer correct
    STUDYING = "studying"  # at least one miss
    NO_QUIZ = "no_quiz"  # nothing to validate against

    @property
    def is_terminal(self) -> bool:
        return self is not MasteryStatus.PENDING


def aggregate_mastery(questions: Sequence[Any], answers: Sequence[Any]) -> MasteryStatus:
    """
    Strict AND over a quiz.

    Args:
        questions: Quiz questions
        answers: Answers aligned with ``questions``; missing entries are wrong

    Returns:
        LEARNED, STUDYING, or NO_QUIZ for an empty quiz
    """
    if not questions:
        return MasteryStatus.NO_QUIZ
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        if not evaluate(question, answer):
            return MasteryStatus.STUDYING
    return MasteryStatus.LEARNED


@dataclass(frozen=True)
class MasteryOutcome:
    """Final state of one item's quiz."""

    item_id: str
    status: MasteryStatus
    correct_count: int
    total_questions: int
    score: int
    reward: Reward = field(default_factory=Reward)

    @property
    def learned(self) -> bool:
        return self.status is MasteryStatus.LEARNED


class MasteryQuiz:
    """One open quiz. Answers are collected, then graded together."""

    def __init__(self, validator: MasteryValidator, item_id: str, questions: list[Any]):
        self._validator = validator
        self.item_id = item_id
        self.questions = questions
        self.answers: dict[int, Any] = {}
        self.outcome: MasteryOutcome | None = None
        if not questions:
            self.outcome = MasteryOutcome(
                item_id=item_id,
                status=MasteryStatus.NO_QUIZ,
                correct_count=0,
                total_questions=0,
                score=0,
            )

    @property
    def status(self) -> MasteryStatus:
        return self.outcome.status if self.outcome else MasteryStatus.PENDING

    def answer(self, index: int, value: Any) -> None:
        if self.outcome is not None:
            raise SessionFinalizedError(f"Quiz for {self.item_id} is already {self.status.value}")
        if not 0 <= index < len(self.questions):
            raise InvalidAnswerIndexError(f"Answer index {index} outside quiz of {len(self.questions)}")
        self.answers[index] = value

    def submit(self) -> MasteryOutcome:
        """Grade the quiz. Every question needs an answer first."""
        if self.outcome is not None:
            raise SessionFinalizedError(f"Quiz for {self.item_id} is already {self.status.value}")
        missing = [i for i in range(len(self.questions)) if i not in self.answers]
        if missing:
            raise IncompleteQuizError(f"Answer all questions first (missing {len(missing)})")

        self.outcome = self._validator._grade(self)
        return self.outcome


class MasteryValidator:
    """Starts and grades single-item mastery quizzes."""

    def __init__(
        self,
        question_source: QuestionSource,
        ledger: RewardLedger | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or get_settings()
        self.question_source = question_source
        self.ledger = ledger
        self._rng = rng or random.Random()

    @property
    def reward(self) -> Reward:
        return Reward(
            experience=self.settings.mastery_reward_experience,
            currency=self.settings.mastery_reward_currency,
        )

    def start(self, item_id: str) -> MasteryQuiz:
        """Draw up to ``mastery_quiz_size`` random questions for the item."""
        available = list(self.question_source.fetch_single_item_quiz(item_id))
        size = min(self.settings.mastery_quiz_size, len(available))
        questions = self._rng.sample(available, size)
        if not questions:
            logger.info("Item {} has no quiz questions; cannot be validated", item_id)
        return MasteryQuiz(self, item_id, questions)

    def _grade(self, quiz: MasteryQuiz) -> MasteryOutcome:
        answers = [quiz.answers.get(i) for i in range(len(quiz.questions))]
        status = aggregate_mastery(quiz.questions, answers)
        correct = sum(1 for q, a in zip(quiz.questions, answers) if evaluate(q, a))
        reward = self.reward if status is MasteryStatus.LEARNED else Reward()

        if reward != Reward() and self.ledger is not None:
            self.ledger.apply_reward(reward)

        logger.info(
            "Item {} quiz: {}/{} correct -> {}",
            quiz.item_id, correct, len(quiz.questions), status.value,
        )
        return MasteryOutcome(
            item_id=quiz.item_id,
            status=status,
            correct_count=correct,
            total_questions=len(quiz.questions),
            score=percent_score(correct, len(quiz.questions)),
            reward=reward,
        )
