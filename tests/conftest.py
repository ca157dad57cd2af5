"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import itertools
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.placement.interfaces import InMemoryLedger, InMemoryResultSink
from src.placement.loader import parse_branch_config
from src.placement.models import MultipleChoiceQuestion


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full placement flows)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Test doubles
# ========================================


class FakeQuestionSource:
    """
    Question source that builds multiple-choice questions on demand.

    Every generated question has ``correct_answer == 0``, so answering 0
    is correct and 1 is wrong. ``short_by`` trims the next batch and
    ``empty_batches`` makes the next N fetches return nothing.
    """

    def __init__(self, items=None):
        self.items = items or {}
        self.calls = []
        self.short_by = 0
        self.empty_batches = 0
        self._ids = itertools.count(1)

    def fetch_batch(self, level_specs):
        self.calls.append(list(level_specs))
        if self.empty_batches:
            self.empty_batches -= 1
            return []
        batch = []
        for spec in level_specs:
            for _ in range(spec.count):
                batch.append(make_mc(f"q{next(self._ids)}", level=spec.level))
        if self.short_by:
            batch = batch[: max(0, len(batch) - self.short_by)]
            self.short_by = 0
        return batch

    def fetch_single_item_quiz(self, item_id):
        return list(self.items.get(item_id, []))


def make_mc(qid, level=1, correct=0, options=None):
    return MultipleChoiceQuestion(
        id=qid,
        level=level,
        prompt=f"Question {qid}",
        options=options or ["right", "wrong", "other"],
        correct_answer=correct,
    )


# ========================================
# Fixtures
# ========================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, log_level="DEBUG")


@pytest.fixture
def question_source():
    return FakeQuestionSource()


@pytest.fixture
def result_sink():
    return InMemoryResultSink()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def scenario_config_data():
    """
    Five-question initial phase.

    0-3 correct -> followup "easy" (5 questions), 4-5 -> final "hard"
    (5 questions). Followup and final both end in a placement level.
    """
    return {
        "name": "Scenario Placement",
        "initialQuestions": [{"level": 1, "count": 3}, {"level": 2, "count": 2}],
        "timeLimits": {"initial": 1, "followup": 1, "final": 0.5},
        "branches": [
            {
                "name": "easy",
                "condition": {"correctRange": [0, 3], "fromPhase": "initial"},
                "nextQuestions": [{"level": 1, "count": 5}],
                "nextPhase": "followup",
            },
            {
                "name": "hard",
                "condition": {"correctRange": [4, 5], "fromPhase": "initial"},
                "nextQuestions": [{"level": 3, "count": 5}],
                "nextPhase": "final",
            },
            {
                "name": "followup-low",
                "condition": {"correctRange": [0, 2], "fromPhase": "followup"},
                "resultLevel": 1,
            },
            {
                "name": "followup-high",
                "condition": {"correctRange": [3, 5], "fromPhase": "followup"},
                "resultLevel": 2,
            },
            {
                "name": "final-low",
                "condition": {"correctRange": [0, 2], "fromPhase": "final"},
                "resultLevel": 3,
            },
            {
                "name": "final-high",
                "condition": {"correctRange": [3, 5], "fromPhase": "final"},
                "resultLevel": 4,
            },
        ],
        "rewards": {
            "levels": {"1": {"experience": 10, "currency": 5}, "4": {"experience": 40, "currency": 20}},
            "default": {"experience": 15, "currency": 5},
            "perCorrect": {"experience": 1, "currency": 0},
        },
    }


@pytest.fixture
def scenario_config(scenario_config_data):
    return parse_branch_config(scenario_config_data)


@pytest.fixture
def make_question():
    """Factory for multiple-choice questions keyed to option 0 by default."""
    return make_mc
