"""
Branch selection for adaptive placement.

Branches are scanned in configured order and the first one whose inclusive
``correct_range`` holds the phase's correct count wins. Range coverage is
checked when a table is loaded; an unmatched score at run time is a
configuration error, never a silent fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence, Union

from loguru import logger

from src.placement.exceptions import ConfigurationError
from src.placement.models import Branch, BranchConfig, Level, LevelSpec, Phase


@dataclass(frozen=True)
class AdvanceOutcome:
    """Move to another phase with a fresh batch."""

    next_phase: Phase
    next_batch_spec: tuple[LevelSpec, ...]
    branch_name: str
    branch: Branch
    kind: Literal["advance"] = "advance"


@dataclass(frozen=True)
class TerminalOutcome:
    """Finish the attempt at a placement level."""

    level: Level
    branch_name: str
    branch: Branch
    kind: Literal["terminal"] = "terminal"


BranchOutcome = Union[AdvanceOutcome, TerminalOutcome]


def branches_for_phase(branches: Sequence[Branch], phase: Phase) -> list[Branch]:
    """Branches that apply to ``phase``, in configured order."""
    return [b for b in branches if b.condition.from_phase is phase]


def select_branch(
    config: BranchConfig,
    phase: Phase,
    correct_count: int,
    total_in_phase: int,
    scope: Sequence[Branch] | None = None,
) -> BranchOutcome:
    """
    Pick the next step for a finished phase.

    Args:
        config: Branch table
        phase: Phase that just finished
        correct_count: Correct answers in that phase
        total_in_phase: Questions asked in that phase
        scope: Sub-branches of the branch that led into ``phase``;
            None scans the top-level table

    Returns:
        AdvanceOutcome or TerminalOutcome
    """
    if not 0 <= correct_count <= total_in_phase:
        raise ValueError(f"correct_count {correct_count} outside 0..{total_in_phase}")

    table = config.branches if scope is None else scope
    for branch in branches_for_phase(table, phase):
        if not branch.condition.contains(correct_count):
            continue
        logger.debug(
            "Phase {} scored {}/{} -> branch '{}'",
            phase.value, correct_count, total_in_phase, branch.name,
        )
        if branch.is_terminal:
            return TerminalOutcome(level=branch.result_level, branch_name=branch.name, branch=branch)
        return AdvanceOutcome(
            next_phase=branch.next_phase,
            next_batch_spec=tuple(branch.next_questions),
            branch_name=branch.name,
            branch=branch,
        )

    raise ConfigurationError(
        f"No branch covers {correct_count}/{total_in_phase} correct in phase '{phase.value}'"
    )


def _uncovered(candidates: Sequence[Branch], total: int) -> list[int]:
    return [n for n in range(total + 1) if not any(b.condition.contains(n) for b in candidates)]


def _overlapping(candidates: Sequence[Branch], total: int) -> list[int]:
    return [
        n for n in range(total + 1)
        if sum(1 for b in candidates if b.condition.contains(n)) > 1
    ]


def _format_scores(scores: list[int]) -> str:
    """Collapse [0, 1, 2, 5] into '0-2, 5'."""
    runs: list[list[int]] = []
    for n in scores:
        if runs and n == runs[-1][1] + 1:
            runs[-1][1] = n
        else:
            runs.append([n, n])
    return ", ".join(str(a) if a == b else f"{a}-{b}" for a, b in runs)


def validate_branch_config(config: BranchConfig) -> None:
    """
    Check that every reachable phase has full score coverage.

    Walks the table from the initial batch: each advancing branch leads to
    its next phase with a batch of ``branch.batch_size`` questions, scanned
    against its sub-branches (or the top-level table when it has none).
    Every integer in ``[0, batch size]`` must match at least one branch.

    Raises:
        ConfigurationError: listing every gap found
    """
    problems: list[str] = []
    pending: list[tuple[Phase, Sequence[Branch] | None, int, str]] = [
        (Phase.INITIAL, None, config.initial_batch_size, "initial")
    ]
    seen: set[tuple[Phase, int, int]] = set()

    while pending:
        phase, scope, total, path = pending.pop()
        table = config.branches if scope is None else scope
        key = (phase, id(table), total)
        if key in seen:
            continue
        seen.add(key)

        candidates = branches_for_phase(table, phase)
        if not candidates:
            problems.append(f"{path}: no branches for phase '{phase.value}'")
            continue

        gaps = _uncovered(candidates, total)
        if gaps:
            problems.append(
                f"{path}: phase '{phase.value}' scores {_format_scores(gaps)} of {total} match no branch"
            )
        overlaps = _overlapping(candidates, total)
        if overlaps:
            logger.warning(
                "{}: phase '{}' scores {} match several branches; first match wins",
                path, phase.value, _format_scores(overlaps),
            )

        for branch in candidates:
            if branch.is_terminal:
                continue
            pending.append((
                branch.next_phase,
                branch.sub_branches or None,
                branch.batch_size,
                f"{path} -> {branch.name}",
            ))

    if problems:
        raise ConfigurationError("Branch table is incomplete: " + "; ".join(problems))

    logger.debug("Branch table '{}' covers every reachable score", config.name)
