"""
Question Bank: in-memory question source.

Serves placement batches by content level, single-item mastery quizzes and
immediate-practice batches from a YAML/JSON document:

    questions:
      - {id: q1, question_type: multiple-choice, level: 1, ...}
    items:
      vocab-001:
        - {id: v1, question_type: multiple-choice, ...}

Selection is random with a reproducible seed. Questions already served by
this bank are skipped until the level runs dry, so follow-up phases do not
repeat initial questions. Short batches are returned as-is.
"""
from __future__ import annotations

import hashlib
import random
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from loguru import logger

from src.placement.exceptions import ConfigurationError
from src.placement.loader import parse_questions, read_document
from src.placement.models import LevelSpec


class QuestionBank:
    """
    File- or dict-backed question source.

    Handles:
    - Level batches for placement phases (fetch_batch)
    - Per-item quizzes for mastery validation (fetch_single_item_quiz)
    - Unseen-first batches for immediate practice (fetch_next)
    """

    def __init__(
        self,
        questions: Iterable[Any] = (),
        items: Mapping[str, Sequence[Any]] | None = None,
        seed: str | int | None = None,
    ):
        self.questions = list(questions)
        self.items = {str(k): list(v) for k, v in (items or {}).items()}
        self._rng = random.Random(self._create_seed(seed) if seed is not None else None)
        self._served: set[str] = set()

    @classmethod
    def from_document(cls, data: Mapping[str, Any], seed: str | int | None = None) -> QuestionBank:
        """Build a bank from a parsed document, validating every question."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Question bank must be a mapping")
        questions = parse_questions(data.get("questions") or [])
        items = {
            str(item_id): parse_questions(entries or [])
            for item_id, entries in (data.get("items") or {}).items()
        }
        return cls(questions=questions, items=items, seed=seed)

    @classmethod
    def from_file(cls, path: str | Path, seed: str | int | None = None) -> QuestionBank:
        bank = cls.from_document(read_document(path), seed=seed)
        logger.info(
            "Loaded question bank {}: {} questions, {} items",
            path, len(bank.questions), len(bank.items),
        )
        return bank

    # ========================================
    # Question Source
    # ========================================

    def fetch_batch(self, level_specs: Sequence[LevelSpec]) -> list[Any]:
        """Draw ``count`` questions per level spec, in spec order."""
        batch: list[Any] = []
        for spec in level_specs:
            pool = [
                q for q in self.questions
                if str(q.level) == str(spec.level) and q.id not in self._served
            ]
            picked = self._rng.sample(pool, min(spec.count, len(pool)))
            if len(picked) < spec.count:
                logger.warning(
                    "Level {} exhausted: {}/{} questions", spec.level, len(picked), spec.count
                )
            self._served.update(q.id for q in picked)
            batch.extend(picked)
        return batch

    def fetch_single_item_quiz(self, item_id: str) -> list[Any]:
        """All quiz questions attached to one learning item."""
        return list(self.items.get(str(item_id), []))

    def fetch_next(self, limit: int) -> list[Any]:
        """Unseen questions first, then previously served ones, in bank order."""
        unseen = [q for q in self.questions if q.id not in self._served]
        seen = [q for q in self.questions if q.id in self._served]
        batch = (unseen + seen)[:limit]
        self._served.update(q.id for q in batch)
        return batch

    def reset(self) -> None:
        """Forget which questions were served."""
        self._served.clear()

    def _create_seed(self, seed: str | int) -> int:
        """Create a reproducible integer seed from string or int."""
        if isinstance(seed, int):
            return seed

        # Hash string to create seed
        hash_bytes = hashlib.sha256(str(seed).encode()).digest()
        return int.from_bytes(hash_bytes[:8], byteorder='big')
