"""
Study module for post-placement learning flows.

Provides:
- Mastery validation (all-or-nothing single-item quizzes)
- Immediate practice (graded per answer, rewarded per correct answer)
"""

from src.study.mastery_validator import (
    MasteryOutcome,
    MasteryQuiz,
    MasteryStatus,
    MasteryValidator,
    aggregate_mastery,
)
from src.study.practice_session import PracticeReport, PracticeSession

__all__ = [
    "MasteryOutcome",
    "MasteryQuiz",
    "MasteryStatus",
    "MasteryValidator",
    "PracticeReport",
    "PracticeSession",
    "aggregate_mastery",
]
