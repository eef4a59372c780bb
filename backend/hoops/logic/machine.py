"""
Scoring state machine.

apply_command() is a pure, synchronous reducer over TrackerState. Each
handler validates the current phase and mode and returns a Transition; an
action that is not allowed in the current state returns the unchanged state
with applied=False instead of raising, because input arrives from buttons and
voice and is expected to be permissive.

Phases: no_session -> no_game -> game_active <-> game_over -> session_ended.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from pydantic import BaseModel, ConfigDict

from hoops.logic.enums import CommandType, EndReason, GameMode, SessionPhase
from hoops.logic.settings import DEFAULT_RULES, RuleSettings
from hoops.logic.state import ScoringState, TrackerState, initial_scoring_state, tier_of

if TYPE_CHECKING:
    from collections.abc import Callable

    from hoops.logic.commands import Command


class ActionOutcome(BaseModel):
    """Side information about an applied action, used to build log events."""

    model_config = ConfigDict(frozen=True)

    points_earned: int = 0
    used_freebie: bool = False
    tiers_crossed: int = 0
    previous_mode: GameMode | None = None
    new_mode: GameMode | None = None
    game_started: bool = False
    ended_game: EndReason | None = None  # set when this action ended the current game


class Transition(NamedTuple):
    """Result of reducing one command."""

    state: TrackerState
    applied: bool
    outcome: ActionOutcome | None = None


def _no_op(state: TrackerState) -> Transition:
    return Transition(state=state, applied=False)


# ---------------------------------------------------------------------------
# Scoring arithmetic
# ---------------------------------------------------------------------------


def _spend_multiplier_shot(scoring: ScoringState) -> dict[str, int]:
    """Consume one multiplier shot; the multiplier resets to 1 when none remain."""
    if scoring.multiplier_shots_remaining <= 0:
        return {}
    remaining = scoring.multiplier_shots_remaining - 1
    if remaining == 0:
        return {"multiplier_shots_remaining": 0, "multiplier": 1}
    return {"multiplier_shots_remaining": remaining}


def score_point_make(scoring: ScoringState, settings: RuleSettings = DEFAULT_RULES) -> tuple[ScoringState, int, int]:
    """
    Apply a point-mode make.

    Returns the new scoring state, the points earned and the number of tiers
    crossed. Each crossed tier grants one life; crossing any tier refills the
    freebies and reopens the switch to multiplier mode, while a make that
    crosses nothing cancels both.
    """
    points = scoring.multiplier if scoring.multiplier_shots_remaining > 0 else 1
    new_score = scoring.score + points
    updates: dict[str, object] = {"score": new_score, **_spend_multiplier_shot(scoring)}

    tiers_crossed = tier_of(new_score, settings) - tier_of(scoring.score, settings)
    if tiers_crossed > 0:
        updates["misses"] = scoring.misses + tiers_crossed
        updates["freebies_remaining"] = settings.freebies_after_ten
        updates["can_enter_multiplier_mode"] = True
        updates["ten_threshold"] = tier_of(new_score, settings) * settings.tier_size
    else:
        updates["freebies_remaining"] = 0
        updates["can_enter_multiplier_mode"] = False
    return scoring.model_copy(update=updates), points, tiers_crossed


def score_point_miss(scoring: ScoringState) -> tuple[ScoringState, bool]:
    """
    Apply a point-mode miss.

    The multiplier shot is spent regardless of the freebie outcome. A freebie
    absorbs the miss but forfeits the switch window; otherwise a life is lost.
    Returns the new scoring state and whether a freebie was used.
    """
    updates: dict[str, object] = _spend_multiplier_shot(scoring)
    if scoring.freebies_remaining > 0:
        updates["freebies_remaining"] = scoring.freebies_remaining - 1
        updates["can_enter_multiplier_mode"] = False
        return scoring.model_copy(update=updates), True
    updates["misses"] = max(0, scoring.misses - 1)
    return scoring.model_copy(update=updates), False


# ---------------------------------------------------------------------------
# Phase helpers
# ---------------------------------------------------------------------------


def _finish_game(state: TrackerState, scoring: ScoringState, reason: EndReason) -> TrackerState:
    """Close the current game and fold its score into the session aggregates."""
    return state.model_copy(
        update={
            "phase": SessionPhase.GAME_OVER,
            "scoring": scoring,
            "high_score": max(state.high_score, scoring.score),
            "total_points": state.total_points + scoring.score,
            "last_end_reason": reason,
        },
    )


def _begin_game(state: TrackerState, settings: RuleSettings) -> TrackerState:
    return state.model_copy(
        update={
            "phase": SessionPhase.GAME_ACTIVE,
            "scoring": initial_scoring_state(settings),
            "games_played": state.games_played + 1,
            "last_end_reason": None,
        },
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def start_session(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    if state.phase not in (SessionPhase.NO_SESSION, SessionPhase.SESSION_ENDED):
        return _no_op(state)
    fresh = TrackerState(phase=SessionPhase.NO_GAME, scoring=initial_scoring_state(settings))
    return Transition(state=_begin_game(fresh, settings), applied=True, outcome=ActionOutcome(game_started=True))


def start_game(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    if state.phase not in (SessionPhase.NO_GAME, SessionPhase.GAME_OVER):
        return _no_op(state)
    return Transition(state=_begin_game(state, settings), applied=True, outcome=ActionOutcome(game_started=True))


def end_game(state: TrackerState, reason: EndReason = EndReason.MANUAL_END) -> Transition:
    if not state.game_active:
        return _no_op(state)
    return Transition(
        state=_finish_game(state, state.scoring, reason),
        applied=True,
        outcome=ActionOutcome(ended_game=reason),
    )


def end_session(state: TrackerState, reason: EndReason = EndReason.MANUAL_END) -> Transition:
    """End the session, closing an active game first with the given reason."""
    if not state.session_active:
        return _no_op(state)
    ended_game = None
    if state.game_active:
        state = _finish_game(state, state.scoring, reason)
        ended_game = reason
    return Transition(
        state=state.model_copy(update={"phase": SessionPhase.SESSION_ENDED}),
        applied=True,
        outcome=ActionOutcome(ended_game=ended_game),
    )


def make_shot(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    if not state.game_active:
        return _no_op(state)
    scoring = state.scoring
    if scoring.mode == GameMode.MULTIPLIER:
        new_scoring = scoring.model_copy(update={"multiplier": scoring.multiplier + 1})
        return Transition(
            state=state.model_copy(update={"scoring": new_scoring}),
            applied=True,
            outcome=ActionOutcome(),
        )

    new_scoring, points, tiers = score_point_make(scoring, settings)
    new_state = state.model_copy(
        update={"scoring": new_scoring, "high_score": max(state.high_score, new_scoring.score)},
    )
    return Transition(
        state=new_state,
        applied=True,
        outcome=ActionOutcome(points_earned=points, tiers_crossed=tiers),
    )


def miss_shot(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:  # noqa: ARG001
    if not state.game_active:
        return _no_op(state)
    scoring = state.scoring
    used_freebie = False
    if scoring.mode == GameMode.MULTIPLIER:
        new_scoring = scoring.model_copy(update={"misses": max(0, scoring.misses - 1)})
    else:
        new_scoring, used_freebie = score_point_miss(scoring)

    if new_scoring.misses == 0:
        return Transition(
            state=_finish_game(state, new_scoring, EndReason.OUT_OF_MISSES),
            applied=True,
            outcome=ActionOutcome(used_freebie=used_freebie, ended_game=EndReason.OUT_OF_MISSES),
        )
    return Transition(
        state=state.model_copy(update={"scoring": new_scoring}),
        applied=True,
        outcome=ActionOutcome(used_freebie=used_freebie),
    )


def enter_point_mode(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    scoring = state.scoring
    if not state.game_active or scoring.mode != GameMode.MULTIPLIER:
        return _no_op(state)
    updates: dict[str, object] = {
        "mode": GameMode.POINT,
        "can_enter_multiplier_mode": False,
        "freebies_remaining": settings.freebies_after_ten,  # grace at entry
    }
    if scoring.multiplier > 1:
        updates["multiplier_shots_remaining"] = settings.multiplier_shots
    return Transition(
        state=state.model_copy(update={"scoring": scoring.model_copy(update=updates)}),
        applied=True,
        outcome=ActionOutcome(previous_mode=GameMode.MULTIPLIER, new_mode=GameMode.POINT),
    )


def enter_multiplier_mode(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:  # noqa: ARG001
    scoring = state.scoring
    if not state.game_active or scoring.mode != GameMode.POINT or not scoring.can_enter_multiplier_mode:
        return _no_op(state)
    new_scoring = scoring.model_copy(update={"mode": GameMode.MULTIPLIER, "multiplier": 1, "freebies_remaining": 0})
    return Transition(
        state=state.model_copy(update={"scoring": new_scoring}),
        applied=True,
        outcome=ActionOutcome(previous_mode=GameMode.POINT, new_mode=GameMode.MULTIPLIER),
    )


def continue_in_point_mode(state: TrackerState, settings: RuleSettings = DEFAULT_RULES) -> Transition:  # noqa: ARG001
    scoring = state.scoring
    if not state.game_active or scoring.mode != GameMode.POINT or not scoring.can_enter_multiplier_mode:
        return _no_op(state)
    new_scoring = scoring.model_copy(update={"can_enter_multiplier_mode": False})
    return Transition(state=state.model_copy(update={"scoring": new_scoring}), applied=True, outcome=ActionOutcome())


def final_shot(state: TrackerState, *, made: bool, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    """
    Apply the post-expiry correction shot to the ended game.

    Uses point-mode arithmetic whatever the game's mode was, and never reopens
    the game: the phase stays session_ended. Only a game that was still running
    when the timer ran out can take it. Window and once-only checks are the
    caller's responsibility.
    """
    if state.phase != SessionPhase.SESSION_ENDED or state.last_end_reason != EndReason.SESSION_ENDED:
        return _no_op(state)
    scoring = state.scoring
    if made:
        new_scoring, points, tiers = score_point_make(scoring, settings)
        outcome = ActionOutcome(points_earned=points, tiers_crossed=tiers)
    else:
        new_scoring, used_freebie = score_point_miss(scoring)
        outcome = ActionOutcome(used_freebie=used_freebie)
    gained = new_scoring.score - scoring.score
    new_state = state.model_copy(
        update={
            "scoring": new_scoring,
            "high_score": max(state.high_score, new_scoring.score),
            "total_points": state.total_points + gained,
        },
    )
    return Transition(state=new_state, applied=True, outcome=outcome)


_HANDLERS: dict[CommandType, Callable[[TrackerState, RuleSettings], Transition]] = {
    CommandType.START_SESSION: start_session,
    CommandType.START_GAME: start_game,
    CommandType.END_GAME: lambda state, _settings: end_game(state),
    CommandType.END_SESSION: lambda state, _settings: end_session(state),
    CommandType.MAKE: make_shot,
    CommandType.MISS: miss_shot,
    CommandType.ENTER_POINT_MODE: enter_point_mode,
    CommandType.ENTER_MULTIPLIER_MODE: enter_multiplier_mode,
    CommandType.CONTINUE_IN_POINT_MODE: continue_in_point_mode,
    CommandType.FINAL_MAKE: lambda state, settings: final_shot(state, made=True, settings=settings),
    CommandType.FINAL_MISS: lambda state, settings: final_shot(state, made=False, settings=settings),
}


def apply_command(state: TrackerState, command: Command, settings: RuleSettings = DEFAULT_RULES) -> Transition:
    """
    Reduce one command against the tracker state.

    Undo, pause and resume need history or a clock and are handled by the
    score keeper; passed here they are no-ops.
    """
    handler = _HANDLERS.get(command.type)
    if handler is None:
        return _no_op(state)
    return handler(state, settings)
