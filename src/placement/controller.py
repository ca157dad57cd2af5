"""
Phase Controller: state machine for one adaptive placement attempt.

States:
    initial  -> followup | final | completed
    followup -> final | completed
    final    -> completed

The controller owns the only mutable Session. Answers are stored as they
arrive and scored together when the phase completes (explicit submit,
last answer with ``auto_submit``, or clock expiry). The branch table then
decides whether to load another batch or finish with a placement level.

Concurrency:
- A session-scoped lock serialises every writer.
- The session clock is the only asynchronous caller; an expiry for a
  handle that is no longer current is stale and ignored.
- Scoring and the next-batch fetch run outside the lock; the commit checks
  that the session is still live and still the same session.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Literal, Union

from loguru import logger

from config import Settings, get_settings
from src.placement.branching import (
    AdvanceOutcome,
    BranchOutcome,
    select_branch,
    validate_branch_config,
)
from src.placement.clock import ClockHandle, SessionClock
from src.placement.evaluators import check_answer
from src.placement.exceptions import (
    ConfigurationError,
    ContentUnavailableError,
    InvalidAnswerIndexError,
    NoActiveSessionError,
    PhaseExpiredError,
    SessionAbandonedError,
    SessionFinalizedError,
    SessionInProgressError,
)
from src.placement.interfaces import QuestionSource, ResultSink, RewardLedger
from src.placement.models import Branch, BranchConfig, Phase, Result, percent_score
from src.placement.rewards import compute_reward


@dataclass
class Session:
    """Mutable state of one attempt. Only the PhaseController writes it."""

    config: BranchConfig
    current_batch: list[Any]
    phase: Phase = Phase.INITIAL
    answers: dict[int, Any] = field(default_factory=dict)
    remaining_seconds: int = 0
    branch_name_trail: list[str] = field(default_factory=list)
    branch_scope: list[Branch] | None = None
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)
    alive: bool = True

    @property
    def finalized(self) -> bool:
        return self.phase is Phase.COMPLETED


@dataclass(frozen=True)
class PhaseView:
    """What the caller needs to present a running phase."""

    phase: Phase
    batch: tuple[Any, ...]
    remaining_seconds: int


@dataclass(frozen=True)
class AdvanceView:
    """A phase finished and the attempt moved on to a new batch."""

    phase: Phase
    batch: tuple[Any, ...]
    branch_name: str
    correct_count: int
    total_questions: int
    kind: Literal["advance"] = "advance"


@dataclass(frozen=True)
class TerminalView:
    """The attempt finished with a result."""

    result: Result
    kind: Literal["terminal"] = "terminal"


PhaseOutcomeView = Union[AdvanceView, TerminalView]


class PhaseController:
    """
    Orchestrates clock, evaluator and branch selector for one learner.

    Usage:
        controller = PhaseController(question_source, result_sink, ledger)
        view = controller.start(config)
        controller.submit_answer(0, 2)
        outcome = controller.submit_phase()
    """

    def __init__(
        self,
        question_source: QuestionSource,
        result_sink: ResultSink | None = None,
        ledger: RewardLedger | None = None,
        settings: Settings | None = None,
        autostart_clock: bool = True,
        auto_submit: bool = False,
        on_phase_change: Callable[[PhaseOutcomeView], None] | None = None,
    ):
        self.settings = settings or get_settings()
        self.question_source = question_source
        self.result_sink = result_sink
        self.ledger = ledger
        self.auto_submit = auto_submit
        self.on_phase_change = on_phase_change

        self.clock = SessionClock(
            on_expired=self._on_clock_expired,
            on_tick=self._on_clock_tick,
            tick_seconds=self.settings.clock_tick_seconds,
            autostart=autostart_clock,
        )

        # State Management
        self._lock = threading.RLock()
        self._session: Session | None = None
        self._clock_handle: ClockHandle | None = None
        self._completing = False
        self._result: Result | None = None
        self.last_error: Exception | None = None

    # ========================================
    # Read-only views
    # ========================================

    @property
    def phase(self) -> Phase | None:
        return self._session.phase if self._session else None

    @property
    def batch(self) -> tuple[Any, ...]:
        return tuple(self._session.current_batch) if self._session else ()

    @property
    def answers(self) -> dict[int, Any]:
        return dict(self._session.answers) if self._session else {}

    @property
    def remaining_seconds(self) -> int:
        return self._session.remaining_seconds if self._session else 0

    @property
    def branch_name_trail(self) -> tuple[str, ...]:
        return tuple(self._session.branch_name_trail) if self._session else ()

    @property
    def clock_handle(self) -> ClockHandle | None:
        return self._clock_handle

    @property
    def result(self) -> Result | None:
        return self._result

    @property
    def is_live(self) -> bool:
        session = self._session
        return bool(session and session.alive and not session.finalized)

    # ========================================
    # Operations
    # ========================================

    def start(self, config: BranchConfig) -> PhaseView:
        """
        Begin an attempt with the configured initial batch.

        Raises:
            ConfigurationError: broken branch table or empty initial batch;
                no session is created
            SessionInProgressError: an attempt is still running
        """
        with self._lock:
            if self.is_live:
                raise SessionInProgressError("Finish or abandon the current attempt first")

            validate_branch_config(config)
            batch = list(self.question_source.fetch_batch(config.initial_questions))
            if not batch:
                raise ConfigurationError(f"Initial batch for '{config.name}' is empty")
            if len(batch) < config.initial_batch_size:
                logger.warning(
                    "Initial batch short: {}/{} questions", len(batch), config.initial_batch_size
                )

            session = Session(config=config, current_batch=batch)
            self._session = session
            self._result = None
            self.last_error = None
            self._start_clock(session)

            logger.info(
                "Placement {} started: {} questions, {}s",
                session.session_id, len(batch), session.remaining_seconds,
            )
            return PhaseView(
                phase=session.phase,
                batch=tuple(batch),
                remaining_seconds=session.remaining_seconds,
            )

    def submit_answer(self, index: int, value: Any) -> PhaseOutcomeView | None:
        """
        Store an answer for the active batch. Scoring waits for the phase end.

        Returns:
            None, or the phase outcome when ``auto_submit`` is on and this
            answer completed the batch
        """
        with self._lock:
            session = self._require_live()
            if self._clock_handle is not None and self._clock_handle.expired:
                raise PhaseExpiredError(f"Time is up for phase '{session.phase.value}'")
            if self._completing:
                raise SessionFinalizedError("Phase is being finalized")
            if not 0 <= index < len(session.current_batch):
                raise InvalidAnswerIndexError(
                    f"Answer index {index} outside batch of {len(session.current_batch)}"
                )
            session.answers[index] = value
            batch_done = len(session.answers) == len(session.current_batch)

        if self.auto_submit and batch_done:
            return self.submit_phase()
        return None

    def submit_phase(self) -> PhaseOutcomeView:
        """
        Score the active batch and advance or finish.

        Raises:
            SessionFinalizedError: the attempt already has a result
            ContentUnavailableError: next batch could not be loaded; the
                phase and its answers are kept so the call can be retried
        """
        view = self._complete_phase(trigger="submit")
        assert view is not None
        return view

    def abandon(self) -> None:
        """Tear the session down. Later submissions are rejected."""
        with self._lock:
            session = self._session
            if session is None or not session.alive:
                return
            self.clock.cancel(self._clock_handle)
            session.alive = False
            logger.info("Placement {} abandoned in phase {}", session.session_id, session.phase.value)

    # ========================================
    # Phase completion
    # ========================================

    def _complete_phase(self, trigger: str, handle: ClockHandle | None = None) -> PhaseOutcomeView | None:
        with self._lock:
            if trigger == "expiry" and not self._is_current_expiry(handle):
                return None
            session = self._require_live()
            if self._completing:
                raise SessionFinalizedError("Phase completion already in progress")
            self._completing = True
            phase = session.phase
            batch = list(session.current_batch)
            answers = dict(session.answers)
            scope = session.branch_scope

        try:
            correct_count = sum(
                1 for i, question in enumerate(batch)
                if check_answer(question, answers.get(i)).correct
            )
            total = len(batch)
            outcome = select_branch(session.config, phase, correct_count, total, scope=scope)

            next_batch: list[Any] = []
            if isinstance(outcome, AdvanceOutcome):
                next_batch = list(self.question_source.fetch_batch(outcome.next_batch_spec))
                if not next_batch:
                    raise ContentUnavailableError(
                        f"No questions available for branch '{outcome.branch_name}'"
                    )
        except Exception:
            with self._lock:
                self._completing = False
            raise

        with self._lock:
            self._completing = False
            if session is not self._session or not session.alive:
                logger.info("Discarding {} result for torn-down session {}", phase.value, session.session_id)
                raise SessionAbandonedError("Session was abandoned during scoring")

            logger.info(
                "Phase {} done ({}): {}/{} correct -> '{}'",
                phase.value, trigger, correct_count, total, outcome.branch_name,
            )
            if isinstance(outcome, AdvanceOutcome):
                return self._advance(session, outcome, next_batch, correct_count, total)
            result = self._finalize(session, outcome, correct_count, total)

        self._deliver(result)
        return TerminalView(result=result)

    def _advance(
        self,
        session: Session,
        outcome: AdvanceOutcome,
        next_batch: list[Any],
        correct_count: int,
        total: int,
    ) -> AdvanceView:
        requested = outcome.branch.batch_size
        if len(next_batch) < requested:
            logger.warning(
                "Batch for '{}' short: {}/{} questions", outcome.branch_name, len(next_batch), requested
            )

        self.clock.cancel(self._clock_handle)
        session.phase = outcome.next_phase
        session.current_batch = next_batch
        session.answers = {}
        session.branch_name_trail.append(outcome.branch_name)
        session.branch_scope = list(outcome.branch.sub_branches) or None
        self.last_error = None
        self._start_clock(session)

        return AdvanceView(
            phase=session.phase,
            batch=tuple(next_batch),
            branch_name=outcome.branch_name,
            correct_count=correct_count,
            total_questions=total,
        )

    def _finalize(self, session: Session, outcome: BranchOutcome, correct_count: int, total: int) -> Result:
        self.clock.cancel(self._clock_handle)
        session.branch_name_trail.append(outcome.branch_name)
        session.phase = Phase.COMPLETED

        result = Result(
            level=outcome.level,
            correct_count=correct_count,
            total_questions=total,
            score=percent_score(correct_count, total),
            branch_name_trail=tuple(session.branch_name_trail),
            time_spent_seconds=int(time.monotonic() - session.started_at),
        )
        result = replace(result, rewards=compute_reward(result, session.config.rewards))
        self._result = result
        self.last_error = None

        logger.info(
            "Placement {} completed: level {} score {} (+{} XP, +{} currency)",
            session.session_id, result.level, result.score,
            result.rewards.experience, result.rewards.currency,
        )
        return result

    def _deliver(self, result: Result) -> None:
        """Hand the result to the sink and credit the ledger once."""
        if self.result_sink is not None:
            try:
                self.result_sink.record(result)
            except Exception as e:
                logger.error(f"Result sink failed, result not persisted: {e}")
        if self.ledger is not None:
            self.ledger.apply_reward(result.rewards)

    # ========================================
    # Clock plumbing
    # ========================================

    def _start_clock(self, session: Session) -> None:
        seconds = session.config.time_limit_seconds(
            session.phase, self.settings.phase_time_limit_minutes
        )
        session.remaining_seconds = seconds
        self._clock_handle = self.clock.start(seconds)

    def _is_current_expiry(self, handle: ClockHandle | None) -> bool:
        session = self._session
        if handle is None or handle is not self._clock_handle or handle.cancelled:
            logger.debug("Ignoring stale clock expiry")
            return False
        if session is None or not session.alive or session.finalized:
            return False
        if self._completing:
            logger.debug("Expiry during phase completion ignored")
            return False
        return True

    def _on_clock_tick(self, handle: ClockHandle) -> None:
        with self._lock:
            session = self._session
            if handle is self._clock_handle and session is not None and session.alive:
                session.remaining_seconds = handle.remaining_seconds

    def _on_clock_expired(self, handle: ClockHandle) -> None:
        """Expiry wins over late answers: score what was submitted."""
        try:
            view = self._complete_phase(trigger="expiry", handle=handle)
        except ContentUnavailableError as exc:
            self.last_error = exc
            logger.warning("Automatic phase completion failed, retry submit_phase(): {}", exc)
            return
        except SessionAbandonedError:
            return
        if view is not None and self.on_phase_change is not None:
            self.on_phase_change(view)

    def _require_live(self) -> Session:
        session = self._session
        if session is None:
            raise NoActiveSessionError("No placement attempt has been started")
        if not session.alive:
            raise SessionAbandonedError("Session was abandoned")
        if session.finalized:
            raise SessionFinalizedError("Session already finalized")
        return session

