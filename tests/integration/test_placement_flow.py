"""
Integration tests for full placement attempts.

Covers the three reference flows end to end:
- A: strong initial phase routes to the hard final phase
- B: perfect final phase produces an immutable result with rewards
- C: the clock runs out mid-phase and scoring proceeds automatically

Usage:
    pytest tests/integration/test_placement_flow.py -v
"""

import threading

import pytest

from config import Settings
from src.placement.controller import AdvanceView, PhaseController, TerminalView
from src.placement.evaluators import evaluate
from src.placement.exceptions import SessionFinalizedError
from src.placement.interfaces import InMemoryLedger, InMemoryResultSink
from src.placement.loader import load_branch_config, parse_branch_config
from src.placement.models import Phase, Reward
from src.quiz.question_bank import QuestionBank


def correct_answer_for(question):
    """The answer key in the shape a learner would submit it."""
    if question.question_type == "reading-comprehension":
        return [sub.correct_answer for sub in question.sub_questions]
    return question.correct_answer


def wrong_answer_for(question):
    if question.question_type == "fill-blank":
        return "definitely wrong"
    if question.question_type == "reading-comprehension":
        return []
    return None


class TestScenarios:
    """Reference flows against the scenario table."""

    @pytest.fixture
    def controller(self, question_source, result_sink, ledger, settings):
        return PhaseController(
            question_source, result_sink, ledger, settings=settings, autostart_clock=False
        )

    def test_a_four_of_five_goes_to_hard_final(self, controller, scenario_config):
        controller.start(scenario_config)
        first_handle = controller.clock_handle
        first_ids = {q.id for q in controller.batch}
        for i, answer in enumerate([0, 0, 1, 0, 0]):
            controller.submit_answer(i, answer)

        view = controller.submit_phase()

        assert isinstance(view, AdvanceView)
        assert view.phase is Phase.FINAL
        assert view.branch_name == "hard"
        assert len(view.batch) == 5
        assert first_ids.isdisjoint(q.id for q in view.batch)
        assert controller.remaining_seconds == 30
        assert first_handle.cancelled and controller.clock_handle.active

    def test_b_perfect_final_is_immutable(self, controller, scenario_config, result_sink, ledger):
        controller.start(scenario_config)
        for i in range(5):
            controller.submit_answer(i, 0)
        controller.submit_phase()
        for i in range(5):
            controller.submit_answer(i, 0)

        view = controller.submit_phase()

        assert isinstance(view, TerminalView)
        result = view.result
        assert result.score == 100
        assert result.level == 4
        assert result.rewards == Reward(experience=45, currency=20)
        assert result.branch_name_trail == ("hard", "final-high")
        assert result_sink.results == [result]
        assert ledger.history == [result.rewards]

        with pytest.raises(SessionFinalizedError):
            controller.submit_answer(0, 0)
        assert controller.result is result
        assert len(ledger.history) == 1

    def test_c_expiry_scores_answered_subset(self, controller, scenario_config):
        outcomes = []
        controller.on_phase_change = outcomes.append
        controller.start(scenario_config)
        controller.submit_answer(0, 0)
        controller.submit_answer(1, 0)

        handle = controller.clock_handle
        while controller.clock.tick(handle):
            pass

        assert handle.expired
        assert len(outcomes) == 1
        assert outcomes[0].correct_count == 2
        assert outcomes[0].total_questions == 5
        assert outcomes[0].branch_name == "easy"
        assert controller.phase is Phase.FOLLOWUP


class TestThreadedClock:
    """Expiry from the background clock thread."""

    def test_background_expiry_advances(self, question_source, scenario_config_data):
        scenario_config_data["timeLimits"] = {"initial": 0.5, "followup": 10, "final": 10}
        config = parse_branch_config(scenario_config_data)
        settings = Settings(_env_file=None, clock_tick_seconds=0.01)
        changed = threading.Event()
        views = []

        def on_change(view):
            views.append(view)
            changed.set()

        controller = PhaseController(question_source, settings=settings, on_phase_change=on_change)
        controller.start(config)
        controller.submit_answer(0, 0)

        assert changed.wait(timeout=5)
        assert views[0].phase is Phase.FOLLOWUP
        assert views[0].correct_count == 1
        assert controller.phase is Phase.FOLLOWUP
        controller.abandon()


class TestSampleContent:
    """The shipped branch table and question bank work together."""

    @pytest.fixture
    def config(self, project_root):
        return load_branch_config(project_root / "data" / "placement_config.yaml")

    @pytest.fixture
    def controller(self, project_root):
        bank = QuestionBank.from_file(project_root / "data" / "question_bank.yaml", seed="it")
        return PhaseController(
            bank,
            InMemoryResultSink(),
            InMemoryLedger(),
            settings=Settings(_env_file=None),
            autostart_clock=False,
        )

    def _answer_all(self, controller, correct):
        for i, question in enumerate(controller.batch):
            answer = correct_answer_for(question) if correct else wrong_answer_for(question)
            assert evaluate(question, answer) is correct
            controller.submit_answer(i, answer)

    def test_all_correct_reaches_top_level(self, controller, config):
        controller.start(config)
        self._answer_all(controller, True)
        assert controller.submit_phase().phase is Phase.FINAL

        self._answer_all(controller, True)
        result = controller.submit_phase().result

        assert result.level == 5
        assert result.score == 100
        assert result.rewards == Reward(experience=54, currency=25)

    def test_all_wrong_is_beginner(self, controller, config):
        controller.start(config)
        self._answer_all(controller, False)

        result = controller.submit_phase().result

        assert result.level == 1
        assert result.branch_name_trail == ("beginner",)
        assert result.score == 0

    def test_middle_path_uses_sub_branches(self, controller, config):
        controller.start(config)
        for i, question in enumerate(controller.batch):
            answer = correct_answer_for(question) if i < 2 else wrong_answer_for(question)
            controller.submit_answer(i, answer)
        view = controller.submit_phase()
        assert view.branch_name == "easy"
        assert view.phase is Phase.FOLLOWUP

        self._answer_all(controller, True)
        result = controller.submit_phase().result

        assert result.branch_name_trail == ("easy", "easy-high")
        assert result.level == 2
