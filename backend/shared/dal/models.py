"""Persistence models for the data access layer.

Records serialise with camelCase keys on the wire (model_dump(by_alias=True))
and accept either camelCase or snake_case on input.
"""

import uuid

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hoops.logic.enums import EndReason, EventType, GameMode

_RECORD_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)
# Partial updates: only the fields a client actually sends are applied (model_dump(exclude_unset=True)).
_UPDATE_CONFIG = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

ID_PATTERN = r"^[a-zA-Z0-9_-]+$"
ID_MAX_LENGTH = 64


def new_record_id() -> str:
    """Return a fresh id for a session, game or event; clients mint these locally."""
    return uuid.uuid4().hex


class SessionRecord(BaseModel):
    """A timed session grouping sequential games."""

    model_config = _RECORD_CONFIG

    id: str = Field(min_length=1)
    duration_seconds: int = Field(default=600, ge=1)  # fixed for the session's lifetime
    started_at: AwareDatetime

    # pause accounting
    is_paused: bool = False
    paused_at: AwareDatetime | None = None
    total_paused_ms: int = Field(default=0, ge=0)

    current_game_id: str | None = None  # weak reference, not ownership

    # aggregates, rebuilt by reconciliation
    high_score: int = 0
    total_games: int = 0
    total_points: int = 0

    ended_at: AwareDatetime | None = None  # may be back-filled after the fact


class GameRecord(BaseModel):
    """One game within a session: live mirror of the scoring state plus terminal results."""

    model_config = _RECORD_CONFIG

    id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    started_at: AwareDatetime
    ended_at: AwareDatetime | None = None
    is_active: bool = True

    # live state, for restoring a game after a reload
    current_score: int = 0
    current_mode: GameMode = GameMode.MULTIPLIER
    current_multiplier: int = 1
    current_multiplier_shots_remaining: int = 0
    current_misses: int = 3
    current_freebies_remaining: int = 0

    # terminal results
    final_score: int = 0
    high_multiplier: int = 1
    total_makes: int = 0
    total_misses: int = 0
    duration_seconds: int | None = None
    end_reason: EndReason | None = None


class EventRecord(BaseModel):
    """Immutable entry in a game's event log with the scoring snapshot taken after the action."""

    model_config = _RECORD_CONFIG

    id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    event_type: EventType

    # snapshot
    score: int = Field(default=0, ge=0)
    multiplier: int = Field(default=1, ge=1)
    multiplier_shots_remaining: int = Field(default=0, ge=0)
    misses_remaining: int = Field(default=3, ge=0)
    freebies_remaining: int = Field(default=0, ge=0)
    mode: GameMode = GameMode.MULTIPLIER

    # type-specific
    points_earned: int | None = None
    previous_mode: GameMode | None = None
    new_mode: GameMode | None = None
    used_freebie: bool | None = None  # None when the producer did not say
    is_tip_in: bool | None = None

    occurred_at: AwareDatetime  # advisory only, never used for ordering
    sequence_number: int = Field(ge=0)  # authoritative replay order within the game


class SessionUpdate(BaseModel):
    """Pause bookkeeping and end-of-session report for PUT /api/session."""

    model_config = _UPDATE_CONFIG

    session_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH, pattern=ID_PATTERN)
    is_paused: bool | None = None
    paused_at: AwareDatetime | None = None
    total_paused_ms: int | None = Field(default=None, ge=0)
    ended_at: AwareDatetime | None = None
    high_score: int | None = Field(default=None, ge=0)
    total_points: int | None = Field(default=None, ge=0)
    total_games: int | None = Field(default=None, ge=0)


class GameStateUpdate(BaseModel):
    """Live-state cache sync and end-of-game report for PUT /api/game."""

    model_config = _UPDATE_CONFIG

    game_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH, pattern=ID_PATTERN)
    current_score: int | None = Field(default=None, ge=0)
    current_mode: GameMode | None = None
    current_multiplier: int | None = Field(default=None, ge=1)
    current_multiplier_shots_remaining: int | None = Field(default=None, ge=0)
    current_misses: int | None = Field(default=None, ge=0)
    current_freebies_remaining: int | None = Field(default=None, ge=0)

    is_active: bool | None = None
    ended_at: AwareDatetime | None = None
    end_reason: EndReason | None = None
    final_score: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, ge=0)
