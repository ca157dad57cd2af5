"""
Practice Session: immediate-feedback drilling outside placement.

Unlike a placement phase, every answer is graded the moment it is given
and cannot be changed afterwards. Each correct answer earns a fixed
reward; the total is credited to the ledger once, when the session ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from config import Settings, get_settings
from src.placement.evaluators import check_answer
from src.placement.evaluators.base import AnswerResult
from src.placement.exceptions import (
    AnswerLockedError,
    InvalidAnswerIndexError,
    NoActiveSessionError,
    SessionFinalizedError,
)
from src.placement.interfaces import RewardLedger
from src.placement.models import Reward, percent_score


@dataclass(frozen=True)
class PracticeReport:
    """Summary of a finished practice session."""

    total: int
    correct: int
    wrong: int
    question_ids: tuple[str, ...]
    correct_ids: tuple[str, ...]
    wrong_ids: tuple[str, ...]
    score: int
    reward: Reward = field(default_factory=Reward)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "correct": self.correct,
            "wrong": self.wrong,
            "question_ids": list(self.question_ids),
            "correct_ids": list(self.correct_ids),
            "wrong_ids": list(self.wrong_ids),
            "score": self.score,
            "reward": self.reward.to_dict(),
        }


class PracticeSession:
    """
    One run of immediate practice.

    The question source must provide ``fetch_next(limit)``.
    """

    def __init__(
        self,
        question_source: Any,
        ledger: RewardLedger | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.question_source = question_source
        self.ledger = ledger
        self.questions: list[Any] = []
        self.results: dict[int, AnswerResult] = {}
        self.report: PracticeReport | None = None
        self._started = False

    def clamp_limit(self, limit: int | None) -> int:
        """Requested count bounded to 1..practice_max_questions."""
        if limit is None:
            limit = self.settings.practice_default_questions
        return max(1, min(int(limit), self.settings.practice_max_questions))

    def start(self, limit: int | None = None) -> list[Any]:
        if self._started:
            raise SessionFinalizedError("Practice session already started")
        count = self.clamp_limit(limit)
        self.questions = list(self.question_source.fetch_next(count))
        self._started = True
        logger.info("Practice session started: {}/{} questions", len(self.questions), count)
        return self.questions

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.results.values() if r.correct)

    @property
    def reward_so_far(self) -> Reward:
        n = self.correct_count
        return Reward(
            experience=n * self.settings.practice_reward_experience,
            currency=n * self.settings.practice_reward_currency,
        )

    def check(self, index: int, value: Any) -> AnswerResult:
        """Grade one answer now. A question can be checked once."""
        if not self._started:
            raise NoActiveSessionError("Practice session not started")
        if self.report is not None:
            raise SessionFinalizedError("Practice session already finished")
        if not 0 <= index < len(self.questions):
            raise InvalidAnswerIndexError(
                f"Answer index {index} outside practice batch of {len(self.questions)}"
            )
        if index in self.results:
            raise AnswerLockedError(f"Question {index} already checked")

        result = check_answer(self.questions[index], value)
        self.results[index] = result
        logger.debug(
            "Practice {} ({}): {}",
            index, self.questions[index].id, "correct" if result.correct else "wrong",
        )
        return result

    def finish(self) -> PracticeReport:
        """Close the session and credit the earned reward once."""
        if not self._started:
            raise NoActiveSessionError("Practice session not started")
        if self.report is not None:
            return self.report

        correct = self.correct_count
        total = len(self.questions)
        reward = self.reward_so_far
        correct_ids = tuple(
            q.id for i, q in enumerate(self.questions)
            if i in self.results and self.results[i].correct
        )
        self.report = PracticeReport(
            total=total,
            correct=correct,
            wrong=total - correct,
            question_ids=tuple(q.id for q in self.questions),
            correct_ids=correct_ids,
            wrong_ids=tuple(q.id for q in self.questions if q.id not in correct_ids),
            score=percent_score(correct, total),
            reward=reward,
        )
        if correct and self.ledger is not None:
            self.ledger.apply_reward(reward)

        logger.info("Practice finished: {}/{} correct, {}", correct, total, reward.to_dict())
        return self.report
