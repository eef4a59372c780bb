"""
Projection of applied transitions onto event log entries.

Each applied command maps to zero or more EventDraft values; the recorder
stamps them with ids, the game id and sequence numbers. A game that runs out
of misses gets no game_end entry: its terminal miss (misses_remaining 0, no
freebie) is what marks the end. Explicit endings, manual or by the session
timer, are logged as game_end.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from hoops.logic.enums import CommandType, EndReason, EventType, GameMode
from shared.dal.models import EventRecord

if TYPE_CHECKING:
    from datetime import datetime

    from hoops.logic.machine import Transition
    from hoops.logic.state import ScoringState

_MAKE_COMMANDS = frozenset({CommandType.MAKE, CommandType.FINAL_MAKE})
_MISS_COMMANDS = frozenset({CommandType.MISS, CommandType.FINAL_MISS})
_LOGGED_END_REASONS = frozenset({EndReason.MANUAL_END, EndReason.SESSION_ENDED})


class EventDraft(NamedTuple):
    """An event before it is bound to a game and a position in its log."""

    event_type: EventType
    scoring: ScoringState
    points_earned: int | None = None
    previous_mode: GameMode | None = None
    new_mode: GameMode | None = None
    used_freebie: bool | None = None
    is_tip_in: bool | None = None


def drafts_for(command_type: CommandType, transition: Transition, *, is_tip_in: bool = False) -> list[EventDraft]:
    """Return the log entries produced by an applied transition, in order."""
    if not transition.applied or transition.outcome is None:
        return []
    outcome = transition.outcome
    scoring = transition.state.scoring
    drafts: list[EventDraft] = []

    if outcome.game_started:
        drafts.append(EventDraft(EventType.GAME_START, scoring))
    elif command_type in _MAKE_COMMANDS:
        drafts.append(EventDraft(EventType.MAKE, scoring, points_earned=outcome.points_earned, is_tip_in=is_tip_in))
    elif command_type in _MISS_COMMANDS:
        drafts.append(EventDraft(EventType.MISS, scoring, used_freebie=outcome.used_freebie, is_tip_in=is_tip_in))
    elif outcome.new_mode is not None:
        drafts.append(
            EventDraft(
                EventType.MODE_CHANGE,
                scoring,
                previous_mode=outcome.previous_mode,
                new_mode=outcome.new_mode,
            ),
        )

    if outcome.ended_game in _LOGGED_END_REASONS:
        drafts.append(EventDraft(EventType.GAME_END, scoring))
    return drafts


def build_event(
    draft: EventDraft,
    *,
    event_id: str,
    game_id: str,
    sequence_number: int,
    occurred_at: datetime,
) -> EventRecord:
    scoring = draft.scoring
    return EventRecord(
        id=event_id,
        game_id=game_id,
        event_type=draft.event_type,
        score=scoring.score,
        multiplier=scoring.multiplier,
        multiplier_shots_remaining=scoring.multiplier_shots_remaining,
        misses_remaining=scoring.misses,
        freebies_remaining=scoring.freebies_remaining,
        mode=scoring.mode,
        points_earned=draft.points_earned,
        previous_mode=draft.previous_mode,
        new_mode=draft.new_mode,
        used_freebie=draft.used_freebie,
        is_tip_in=draft.is_tip_in,
        occurred_at=occurred_at,
        sequence_number=sequence_number,
    )
