"""
Domain models for adaptive placement.

Design:
- Questions: tagged union keyed by ``question_type``; the answer key shape is
  checked when the question is built, so evaluators never see a mismatch.
- BranchConfig: immutable branch table shared across sessions.
- Result / Reward: terminal artifacts handed to the result sink and ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionType(str, Enum):
    """Supported question shapes."""

    MULTIPLE_CHOICE = "multiple-choice"
    FILL_BLANK = "fill-blank"
    READING_COMPREHENSION = "reading-comprehension"
    SENTENCE_ORDER = "sentence-order"


class Phase(str, Enum):
    """Stages of one placement attempt."""

    INITIAL = "initial"
    FOLLOWUP = "followup"
    FINAL = "final"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        """Position in the forward-only phase order."""
        return _PHASE_RANK[self]


_PHASE_RANK = {
    Phase.INITIAL: 0,
    Phase.FOLLOWUP: 1,
    Phase.FINAL: 2,
    Phase.COMPLETED: 3,
}

Level = Union[int, str]


# ========================================
# Questions
# ========================================


class BaseQuestion(BaseModel):
    """Fields shared by every question shape."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    prompt: str = ""
    level: Level | None = None
    explanation: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


def _check_indices(indices: list[int], size: int, what: str) -> None:
    for index in indices:
        if not 0 <= index < size:
            raise ValueError(f"{what} index {index} is outside 0..{size - 1}")


class MultipleChoiceQuestion(BaseQuestion):
    """Single-answer (int key) or multi-select (list key) choice question."""

    question_type: Literal["multiple-choice"] = "multiple-choice"
    options: list[str]
    correct_answer: Union[int, list[int]]

    @model_validator(mode="after")
    def _check_answer_shape(self) -> MultipleChoiceQuestion:
        if len(self.options) < 2:
            raise ValueError("multiple-choice needs at least two options")
        keys = self.correct_answer if isinstance(self.correct_answer, list) else [self.correct_answer]
        if not keys:
            raise ValueError("multi-select correct_answer must list at least one index")
        _check_indices(keys, len(self.options), "correct_answer")
        if len(set(keys)) != len(keys):
            raise ValueError(f"multi-select correct_answer repeats an index: {keys}")
        return self

    @property
    def is_multi_select(self) -> bool:
        return isinstance(self.correct_answer, list)


class FillBlankQuestion(BaseQuestion):
    """Free-text blank, graded case- and whitespace-insensitively."""

    question_type: Literal["fill-blank"] = "fill-blank"
    correct_answer: str

    @field_validator("correct_answer")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("fill-blank correct_answer must not be empty")
        return value


class SentenceOrderQuestion(BaseQuestion):
    """Reorder sentences; the key is the full index sequence."""

    question_type: Literal["sentence-order"] = "sentence-order"
    sentences: list[str] = Field(default_factory=list)
    correct_answer: list[int]

    @model_validator(mode="after")
    def _check_permutation(self) -> SentenceOrderQuestion:
        size = len(self.sentences) or len(self.correct_answer)
        if size < 2:
            raise ValueError("sentence-order needs at least two sentences")
        if sorted(self.correct_answer) != list(range(size)):
            raise ValueError(f"sentence-order correct_answer must be a permutation of 0..{size - 1}")
        return self


class SubQuestion(BaseModel):
    """One choice question inside a reading passage."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt: str = ""
    options: list[str]
    correct_answer: int

    @model_validator(mode="after")
    def _check_key(self) -> SubQuestion:
        if len(self.options) < 2:
            raise ValueError("sub-question needs at least two options")
        _check_indices([self.correct_answer], len(self.options), "sub-question correct_answer")
        return self


class ReadingComprehensionQuestion(BaseQuestion):
    """Passage with sub-questions; correct only when every sub-question is."""

    question_type: Literal["reading-comprehension"] = "reading-comprehension"
    passage: str | None = None
    options: list[str] = Field(default_factory=list)
    sub_questions: list[SubQuestion] = Field(min_length=1)


Question = Annotated[
    Union[
        MultipleChoiceQuestion,
        FillBlankQuestion,
        SentenceOrderQuestion,
        ReadingComprehensionQuestion,
    ],
    Field(discriminator="question_type"),
]


# ========================================
# Branch table
# ========================================


class LevelSpec(BaseModel):
    """How many questions of one content level a batch should hold."""

    model_config = ConfigDict(frozen=True)

    level: Level
    count: int = Field(ge=1)


class BranchCondition(BaseModel):
    """Inclusive correct-count window evaluated for one phase."""

    model_config = ConfigDict(frozen=True)

    correct_range: tuple[int, int]
    from_phase: Phase

    @model_validator(mode="after")
    def _check_range(self) -> BranchCondition:
        low, high = self.correct_range
        if low < 0 or high < low:
            raise ValueError(f"correct_range {list(self.correct_range)} must satisfy 0 <= min <= max")
        if self.from_phase is Phase.COMPLETED:
            raise ValueError("branches cannot start from the completed phase")
        return self

    def contains(self, correct_count: int) -> bool:
        low, high = self.correct_range
        return low <= correct_count <= high


class Branch(BaseModel):
    """
    One rule of the branch table.

    Exactly one of ``next_questions`` (advance to ``next_phase``) or
    ``result_level`` (terminal) is set. ``sub_branches`` replace the
    top-level table for the phase this branch leads into.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    condition: BranchCondition
    next_questions: list[LevelSpec] = Field(default_factory=list)
    result_level: Level | None = None
    next_phase: Phase | None = None
    sub_branches: list[Branch] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_target(self) -> Branch:
        advances = bool(self.next_questions)
        terminal = self.result_level is not None
        if advances == terminal:
            raise ValueError(
                f"branch '{self.name}' must set exactly one of next_questions or result_level"
            )
        if terminal:
            if self.next_phase is not None:
                raise ValueError(f"terminal branch '{self.name}' cannot set next_phase")
            if self.sub_branches:
                raise ValueError(f"terminal branch '{self.name}' cannot carry sub_branches")
            return self
        if self.next_phase not in (Phase.FOLLOWUP, Phase.FINAL):
            raise ValueError(f"branch '{self.name}' must advance to followup or final")
        if self.next_phase.rank <= self.condition.from_phase.rank:
            raise ValueError(
                f"branch '{self.name}' cannot go from {self.condition.from_phase.value} "
                f"to {self.next_phase.value}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.result_level is not None

    @property
    def batch_size(self) -> int:
        """Questions requested for the phase this branch leads into."""
        return sum(spec.count for spec in self.next_questions)


class RewardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    experience: float = Field(default=0, ge=0)
    currency: float = Field(default=0, ge=0)


class RewardTable(BaseModel):
    """Per-level payouts plus an optional per-correct-answer rate."""

    model_config = ConfigDict(frozen=True)

    levels: dict[str, RewardEntry] = Field(default_factory=dict)
    default: RewardEntry = Field(default_factory=RewardEntry)
    per_correct: RewardEntry = Field(default_factory=RewardEntry)

    @field_validator("levels", mode="before")
    @classmethod
    def _stringify_levels(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(key): entry for key, entry in value.items()}
        return value

    def for_level(self, level: Level) -> RewardEntry:
        return self.levels.get(str(level), self.default)


class BranchConfig(BaseModel):
    """Static configuration for one assessment product."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    description: str = ""
    cost: float = 0
    initial_questions: list[LevelSpec] = Field(min_length=1)
    branches: list[Branch] = Field(default_factory=list)
    time_limits: dict[Phase, float] = Field(default_factory=dict)
    rewards: RewardTable = Field(default_factory=RewardTable)

    @property
    def initial_batch_size(self) -> int:
        return sum(spec.count for spec in self.initial_questions)

    def time_limit_seconds(self, phase: Phase, default_minutes: float) -> int:
        """Phase budget in whole seconds."""
        minutes = self.time_limits.get(phase, default_minutes)
        return max(0, int(round(minutes * 60)))


# ========================================
# Terminal artifacts
# ========================================


@dataclass(frozen=True)
class Reward:
    """Experience and currency granted for one outcome."""

    experience: float = 0
    currency: float = 0

    def __add__(self, other: Reward) -> Reward:
        return Reward(
            experience=self.experience + other.experience,
            currency=self.currency + other.currency,
        )

    def to_dict(self) -> dict[str, float]:
        return {"experience": self.experience, "currency": self.currency}


def percent_score(correct_count: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when nothing was asked."""
    if total <= 0:
        return 0
    return int(correct_count * 100 / total + 0.5)


@dataclass(frozen=True)
class Result:
    """
    Final, immutable outcome of one placement attempt.

    ``correct_count`` and ``total_questions`` cover the last scored phase only.
    """

    level: Level
    correct_count: int
    total_questions: int
    score: int
    rewards: Reward = field(default_factory=Reward)
    branch_name_trail: tuple[str, ...] = ()
    time_spent_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "score": self.score,
            "rewards": self.rewards.to_dict(),
            "branch_name_trail": list(self.branch_name_trail),
            "time_spent_seconds": self.time_spent_seconds,
        }
