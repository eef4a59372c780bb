"""
Immutable play state models.

ScoringState is the per-game scoring snapshot; TrackerState wraps it with the
session-level phase and aggregates. Both are frozen, so every transition
produces a new object via model_copy.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from hoops.logic.enums import EndReason, GameMode, SessionPhase
from hoops.logic.settings import DEFAULT_RULES, RuleSettings


class ScoringState(BaseModel):
    """Scoring snapshot of one game."""

    model_config = ConfigDict(frozen=True)

    mode: GameMode = GameMode.MULTIPLIER
    score: int = Field(default=0, ge=0)
    multiplier: int = Field(default=1, ge=1)
    multiplier_shots_remaining: int = Field(default=0, ge=0)
    misses: int = Field(default=DEFAULT_RULES.initial_misses, ge=0)  # lives left
    freebies_remaining: int = Field(default=0, ge=0)
    can_enter_multiplier_mode: bool = True
    ten_threshold: int = Field(default=0, ge=0)  # highest tier boundary reached


class TrackerState(BaseModel):
    """Full tracker state: phase, current game scoring and session aggregates."""

    model_config = ConfigDict(frozen=True)

    phase: SessionPhase = SessionPhase.NO_SESSION
    scoring: ScoringState = Field(default_factory=ScoringState)
    high_score: int = 0
    games_played: int = 0
    total_points: int = 0
    last_end_reason: EndReason | None = None

    @property
    def game_active(self) -> bool:
        return self.phase == SessionPhase.GAME_ACTIVE

    @property
    def session_active(self) -> bool:
        return self.phase in (SessionPhase.NO_GAME, SessionPhase.GAME_ACTIVE, SessionPhase.GAME_OVER)


def initial_scoring_state(settings: RuleSettings = DEFAULT_RULES) -> ScoringState:
    """Return the scoring state every new game starts from."""
    return ScoringState(misses=settings.initial_misses)


def tier_of(score: int, settings: RuleSettings = DEFAULT_RULES) -> int:
    """Return the number of whole tiers contained in score."""
    return score // settings.tier_size
