"""Centralized rule settings - all configurable gameplay and timing constants."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field


class RuleSettings(BaseModel):
    """
    Configuration for scoring rules, session timing and client batching.

    All fields have default values matching the standard ten-minute challenge.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # --- Scoring ---
    initial_misses: int = Field(default=3, ge=1)
    freebies_after_ten: int = Field(default=3, ge=0)
    multiplier_shots: int = Field(default=5, ge=1)
    tier_size: int = Field(default=10, ge=1)

    # --- Session timing ---
    session_duration_seconds: int = Field(default=600, ge=1)
    grace_window_seconds: int = Field(default=60, ge=0)

    # --- History ---
    undo_capacity: int = Field(default=20, ge=1)

    # --- Client I/O ---
    event_batch_size: int = Field(default=5, ge=1)
    sync_debounce_seconds: float = Field(default=0.5, ge=0)
    min_intent_confidence: float = Field(default=0.5, ge=0, le=1)


DEFAULT_RULES = RuleSettings()


def load_rules(path: Path | None) -> RuleSettings:
    """
    Load rule overrides from a YAML file with a top-level ``rules`` mapping.

    A missing path or file yields the defaults; unknown keys are rejected by
    validation like any other bad value.
    """
    if path is None or not path.exists():
        return DEFAULT_RULES

    with path.open() as f:
        config = yaml.safe_load(f) or {}

    return RuleSettings.model_validate(config.get("rules") or {})
