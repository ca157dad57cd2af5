"""
Placement: adaptive multi-phase assessment engine.

Components:
- evaluators: Per-type answer grading (multiple choice, fill-blank, ...)
- clock: Cancellable per-phase countdown
- branching: Table-driven branch selection and coverage checks
- controller: Phase state machine owning the session
- rewards: Table-driven reward calculation
- loader: YAML/JSON loading with fail-fast validation
"""

from .branching import AdvanceOutcome, TerminalOutcome, select_branch, validate_branch_config
from .clock import ClockHandle, SessionClock
from .controller import AdvanceView, PhaseController, PhaseView, TerminalView
from .evaluators import check_answer, evaluate
from .loader import load_branch_config, parse_branch_config, parse_question, parse_questions
from .models import BranchConfig, Phase, QuestionType, Result, Reward
from .rewards import compute_reward

__all__ = [
    "AdvanceOutcome",
    "AdvanceView",
    "BranchConfig",
    "ClockHandle",
    "Phase",
    "PhaseController",
    "PhaseView",
    "QuestionType",
    "Result",
    "Reward",
    "SessionClock",
    "TerminalOutcome",
    "TerminalView",
    "check_answer",
    "compute_reward",
    "evaluate",
    "load_branch_config",
    "parse_branch_config",
    "parse_question",
    "parse_questions",
    "select_branch",
    "validate_branch_config",
]
