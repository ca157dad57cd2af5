"""
Unit tests for scoring and reward calculation.
"""

import pytest

from src.placement.models import Result, Reward, RewardTable, percent_score
from src.placement.rewards import compute_reward


class TestPercentScore:
    """round(correct / total * 100), halves up."""

    @pytest.mark.parametrize("correct,total,expected", [
        (5, 5, 100),
        (0, 5, 0),
        (2, 3, 67),
        (1, 3, 33),
        (1, 8, 13),  # 12.5 rounds up
        (3, 8, 38),  # 37.5 rounds up
    ])
    def test_rounding(self, correct, total, expected):
        assert percent_score(correct, total) == expected

    def test_empty_phase_scores_zero(self):
        assert percent_score(0, 0) == 0


class TestComputeReward:
    """Table-driven rewards."""

    @pytest.fixture
    def table(self):
        return RewardTable.model_validate({
            "levels": {1: {"experience": 10, "currency": 5}, "B2": {"experience": 50, "currency": 25}},
            "default": {"experience": 1, "currency": 1},
            "per_correct": {"experience": 2, "currency": 0.5},
        })

    def _result(self, level, correct=0, total=5):
        return Result(
            level=level,
            correct_count=correct,
            total_questions=total,
            score=percent_score(correct, total),
        )

    def test_level_base_plus_rate(self, table):
        reward = compute_reward(self._result(1, correct=3), table)
        assert reward == Reward(experience=16, currency=6.5)

    def test_int_and_string_level_keys_match(self, table):
        assert compute_reward(self._result("1"), table) == Reward(experience=10, currency=5)
        assert compute_reward(self._result("B2"), table).experience == 50

    def test_unknown_level_uses_default(self, table):
        assert compute_reward(self._result(9), table) == Reward(experience=1, currency=1)

    def test_empty_table_pays_nothing(self):
        assert compute_reward(self._result(1, correct=5), RewardTable()) == Reward()

    def test_deterministic(self, table):
        result = self._result(1, correct=4)
        assert compute_reward(result, table) == compute_reward(result, table)


class TestArtifacts:
    """Reward and Result value objects."""

    def test_reward_addition(self):
        assert Reward(1, 2) + Reward(3, 4) == Reward(4, 6)

    def test_result_is_immutable(self):
        result = Result(level=1, correct_count=1, total_questions=1, score=100)
        with pytest.raises(AttributeError):
            result.level = 2

    def test_result_to_dict(self):
        result = Result(
            level="A2",
            correct_count=4,
            total_questions=5,
            score=80,
            rewards=Reward(experience=20, currency=10),
            branch_name_trail=("easy", "easy-high"),
        )
        data = result.to_dict()
        assert data["rewards"] == {"experience": 20, "currency": 10}
        assert data["branch_name_trail"] == ["easy", "easy-high"]
