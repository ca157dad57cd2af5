"""
Loading of branch tables and questions from YAML/JSON documents.

Every structural check runs here so that a broken table or answer key fails
before any session starts. Keys written by the web admin (camelCase, ``_id``,
``question``, ``correctOrder``) are accepted alongside snake_case.
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from src.placement.branching import validate_branch_config
from src.placement.exceptions import ConfigurationError, QuestionShapeError
from src.placement.models import BranchConfig, Question

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_QUESTION_ADAPTER: TypeAdapter[Question] = TypeAdapter(Question)

# Keys whose values are data dictionaries (level names, phases), not fields
_DATA_KEYS = {"levels", "time_limits", "items"}


def _snake(key: str) -> str:
    if not key[:1].islower():
        return key
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def normalize_keys(data: Any) -> Any:
    """Recursively convert camelCase mapping keys to snake_case."""
    if isinstance(data, Mapping):
        normalized = {}
        for key, value in data.items():
            new_key = _snake(key) if isinstance(key, str) else key
            if new_key in _DATA_KEYS and isinstance(value, Mapping):
                normalized[new_key] = {k: normalize_keys(v) for k, v in value.items()}
            else:
                normalized[new_key] = normalize_keys(value)
        return normalized
    if isinstance(data, list):
        return [normalize_keys(item) for item in data]
    return data


def read_document(path: str | Path) -> Any:
    """Read a YAML or JSON file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc


def _question_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    fields = dict(normalize_keys(data))
    if "id" not in fields and "_id" in fields:
        fields["id"] = fields.pop("_id")
    if "prompt" not in fields and "question" in fields:
        fields["prompt"] = fields.pop("question")
    if fields.get("question_type") == "sentence-order" and "correct_answer" not in fields:
        if "correct_order" in fields:
            fields["correct_answer"] = fields.pop("correct_order")
    return fields


def parse_question(data: Mapping[str, Any]) -> Question:
    """Build a typed question, failing fast on a key/type mismatch."""
    if not isinstance(data, Mapping):
        raise QuestionShapeError(f"Question must be a mapping, got {type(data).__name__}")
    try:
        return _QUESTION_ADAPTER.validate_python(_question_fields(data))
    except ValidationError as exc:
        ident = data.get("id") or data.get("_id") or "?"
        raise QuestionShapeError(f"Question {ident} is malformed: {exc}") from exc


def parse_questions(items: Iterable[Mapping[str, Any]]) -> list[Question]:
    """Build a list of questions; ids must be unique."""
    questions = [parse_question(item) for item in items]
    ids = [q.id for q in questions]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise QuestionShapeError(f"Duplicate question ids: {', '.join(duplicates)}")
    return questions


def parse_branch_config(data: Mapping[str, Any]) -> BranchConfig:
    """Build and fully validate a branch table."""
    if not isinstance(data, Mapping):
        raise ConfigurationError("Branch config must be a mapping")
    try:
        config = BranchConfig.model_validate(normalize_keys(data))
    except ValidationError as exc:
        raise ConfigurationError(f"Branch config is malformed: {exc}") from exc
    validate_branch_config(config)
    return config


@lru_cache(maxsize=16)
def _load_cached(path: str, mtime_ns: int) -> BranchConfig:
    logger.info("Loading branch config from {}", path)
    return parse_branch_config(read_document(path))


def load_branch_config(path: str | Path) -> BranchConfig:
    """
    Load a branch table from disk.

    Configs are immutable, so the parsed table is cached per file
    and reloaded when the file changes.
    """
    resolved = Path(path).resolve()
    try:
        mtime_ns = resolved.stat().st_mtime_ns
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {resolved}: {exc}") from exc
    return _load_cached(str(resolved), mtime_ns)
