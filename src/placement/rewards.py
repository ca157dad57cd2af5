"""
Reward calculation for finished placement attempts.

Table driven: the placement level's base payout plus a per-correct rate.
Score bands and "perfect" bonuses belong in the table, not in code.
"""

from __future__ import annotations

from src.placement.models import Result, Reward, RewardTable


def compute_reward(result: Result, table: RewardTable) -> Reward:
    """Experience and currency earned by ``result`` under ``table``."""
    base = table.for_level(result.level)
    rate = table.per_correct
    return Reward(
        experience=base.experience + rate.experience * result.correct_count,
        currency=base.currency + rate.currency * result.correct_count,
    )
