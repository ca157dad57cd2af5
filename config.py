"""
Configuration settings for the placement engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Content Sources
    # ========================================
    branch_config_path: str | None = Field(
        default=None,
        description="YAML/JSON file holding the placement branch table",
    )
    question_bank_path: str | None = Field(
        default=None,
        description="YAML/JSON file holding the question bank used by the CLI",
    )

    # ========================================
    # Placement Timing
    # ========================================
    phase_time_limit_minutes: float = Field(
        default=30,
        ge=0,
        description="Time budget per phase when the branch table does not set one",
    )
    clock_tick_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Wall-clock seconds between session clock ticks",
    )

    # ========================================
    # Mastery Validation
    # ========================================
    mastery_quiz_size: int = Field(
        default=3,
        ge=1,
        description="Maximum number of questions drawn for a single-item quiz",
    )
    mastery_reward_experience: float = Field(
        default=0.5,
        ge=0,
        description="Experience granted when an item is validated as learned",
    )
    mastery_reward_currency: float = Field(
        default=0.5,
        ge=0,
        description="Currency granted when an item is validated as learned",
    )

    # ========================================
    # Immediate Practice
    # ========================================
    practice_default_questions: int = Field(
        default=10,
        ge=1,
        description="Question count used when a practice request does not set one",
    )
    practice_max_questions: int = Field(
        default=20,
        ge=1,
        description="Upper bound on questions in one practice session",
    )
    practice_reward_experience: float = Field(
        default=10,
        ge=0,
        description="Experience per correct practice answer",
    )
    practice_reward_currency: float = Field(
        default=10,
        ge=0,
        description="Currency per correct practice answer",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    def get_practice_config(self) -> dict[str, float | int]:
        """Get immediate-practice configuration as a dictionary."""
        return {
            "default_questions": self.practice_default_questions,
            "max_questions": self.practice_max_questions,
            "reward_experience": self.practice_reward_experience,
            "reward_currency": self.practice_reward_currency,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
