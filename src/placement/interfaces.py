"""
Collaborator interfaces consumed by the placement engine.

The engine only talks to these protocols. Persistence, transport and
display live behind them. In-memory sinks are provided for the CLI and
tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from src.placement.models import LevelSpec, Result, Reward


class QuestionSource(Protocol):
    """Supplies question batches. May return fewer questions than requested."""

    def fetch_batch(self, level_specs: Sequence[LevelSpec]) -> list[Any]:
        ...

    def fetch_single_item_quiz(self, item_id: str) -> list[Any]:
        ...


class ResultSink(Protocol):
    """Receives terminal results. Fire-and-forget from the engine's view."""

    def record(self, result: Result) -> None:
        ...


class RewardLedger(Protocol):
    """Credits rewards to the learner. Called exactly once per outcome."""

    def apply_reward(self, reward: Reward) -> None:
        ...


@dataclass
class InMemoryResultSink:
    """Keeps recorded results in a list."""

    results: list[Result] = field(default_factory=list)

    def record(self, result: Result) -> None:
        self.results.append(result)


@dataclass
class InMemoryLedger:
    """Running reward totals plus the history of credits."""

    history: list[Reward] = field(default_factory=list)

    def apply_reward(self, reward: Reward) -> None:
        self.history.append(reward)

    @property
    def total(self) -> Reward:
        total = Reward()
        for reward in self.history:
            total = total + reward
        return total
