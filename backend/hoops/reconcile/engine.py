"""
Rebuild session and game aggregates by replaying the event log.

reconcile() is pure: it never touches storage and never reads the wall
clock; the caller passes "now" once and it is used only to decide whether an
unset session end time should be back-filled. Cached values on the input
records are ignored except for a game's end_reason, which may have been set
by an explicit end report and is kept.

Events are replayed in sequence_number order with duplicate sequence
numbers dropped, so at-least-once delivery and arrival order have no effect
on the result. Applying reconcile() to its own output changes nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import structlog

from hoops.logic.clock import MS_PER_SECOND, SessionClock, to_ms
from hoops.logic.enums import EndReason, EventType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from shared.dal.models import EventRecord, GameRecord, SessionRecord

logger = structlog.get_logger()


class GameReplay(NamedTuple):
    """A stored game together with its raw event log."""

    game: GameRecord
    events: Sequence[EventRecord]


class Reconciliation(NamedTuple):
    """Result of one reconciliation pass."""

    session: SessionRecord
    games: list[GameRecord]  # every game of the session, in replay order
    updated_games: list[GameRecord]  # games rebuilt from events (skipped games excluded)
    games_processed: int
    session_ended: bool

    @property
    def total_games(self) -> int:
        return self.session.total_games

    @property
    def total_points(self) -> int:
        return self.session.total_points

    @property
    def high_score(self) -> int:
        return self.session.high_score


def ordered_events(events: Iterable[EventRecord]) -> list[EventRecord]:
    """Sort by sequence_number and keep the first entry of each number."""
    seen: set[int] = set()
    result: list[EventRecord] = []
    for event in sorted(events, key=lambda e: e.sequence_number):
        if event.sequence_number in seen:
            continue
        seen.add(event.sequence_number)
        result.append(event)
    return result


def infer_used_freebie(previous: EventRecord | None, current: EventRecord) -> bool:
    """A freebie was spent if the freebie count fell while the miss count held."""
    if previous is None:
        return False
    freebie_spent = previous.freebies_remaining > current.freebies_remaining
    return freebie_spent and previous.misses_remaining == current.misses_remaining


def resolve_used_freebie(previous: EventRecord | None, current: EventRecord) -> bool:
    """Prefer the flag stored on the event; fall back to the state-delta inference."""
    inferred = infer_used_freebie(previous, current)
    if current.used_freebie is None:
        return inferred
    if current.used_freebie != inferred:
        logger.warning(
            "used_freebie mismatch",
            game_id=current.game_id,
            sequence_number=current.sequence_number,
            stored=current.used_freebie,
            inferred=inferred,
        )
    return current.used_freebie


def _ended_out_of_misses(events: list[EventRecord]) -> bool:
    last = events[-1]
    if last.event_type != EventType.MISS or last.misses_remaining > 0:
        return False
    previous = events[-2] if len(events) > 1 else None
    return not resolve_used_freebie(previous, last)


def reconcile_game(game: GameRecord, events: Iterable[EventRecord]) -> GameRecord | None:
    """Rebuild one game from its events, or return None if it has none (abandoned before play)."""
    replay = ordered_events(events)
    if not replay:
        return None

    last = replay[-1]
    game_end = next((e for e in replay if e.event_type == EventType.GAME_END), None)
    out_of_misses = _ended_out_of_misses(replay)
    ended = game_end is not None or game.end_reason is not None or out_of_misses

    ended_at = None
    duration_seconds = None
    end_reason = game.end_reason
    if ended:
        ended_at = (game_end or last).occurred_at
        duration_seconds = max(0, to_ms(ended_at - game.started_at) // MS_PER_SECOND)
        if end_reason is None:
            end_reason = EndReason.OUT_OF_MISSES if out_of_misses else EndReason.SESSION_ENDED

    return game.model_copy(
        update={
            "is_active": not ended,
            "ended_at": ended_at,
            "duration_seconds": duration_seconds,
            "end_reason": end_reason,
            "final_score": last.score,
            "high_multiplier": max(e.multiplier for e in replay),
            "total_makes": sum(1 for e in replay if e.event_type == EventType.MAKE),
            "total_misses": sum(1 for e in replay if e.event_type == EventType.MISS),
            "current_score": last.score,
            "current_mode": last.mode,
            "current_multiplier": last.multiplier,
            "current_multiplier_shots_remaining": last.multiplier_shots_remaining,
            "current_misses": last.misses_remaining,
            "current_freebies_remaining": last.freebies_remaining,
        },
    )


def _current_game_id(session: SessionRecord, games: list[GameRecord], rebuilt: list[GameRecord]) -> str | None:
    # A newest game still waiting for its first event is the one in play.
    if games and games[-1].is_active and all(g.id != games[-1].id for g in rebuilt):
        return games[-1].id
    active = [g for g in rebuilt if g.is_active]
    if active:
        return active[-1].id
    if rebuilt:
        return rebuilt[-1].id
    return session.current_game_id


def reconcile(session: SessionRecord, replays: Iterable[GameReplay], now: datetime) -> Reconciliation:
    ordered = sorted(replays, key=lambda r: (r.game.started_at, r.game.id))

    games: list[GameRecord] = []
    rebuilt: list[GameRecord] = []
    last_event_at: datetime | None = None
    for replay in ordered:
        updated = reconcile_game(replay.game, replay.events)
        if updated is None:
            logger.debug("skipping game without events", game_id=replay.game.id)
            games.append(replay.game)
            continue
        games.append(updated)
        rebuilt.append(updated)
        latest = max(e.occurred_at for e in replay.events)
        last_event_at = latest if last_event_at is None else max(last_event_at, latest)

    ended_at = session.ended_at
    if ended_at is None:
        clock = SessionClock.from_session(session)
        if clock.is_expired(now):
            ended_at = clock.backfill_end(last_event_at)
            logger.info("back-filled session end", session_id=session.id, ended_at=ended_at)

    scores = [g.final_score for g in rebuilt]
    new_session = session.model_copy(
        update={
            "total_games": len(rebuilt),
            "total_points": sum(scores),
            "high_score": max(scores, default=0),
            "current_game_id": _current_game_id(session, games, rebuilt),
            "ended_at": ended_at,
        },
    )
    logger.info(
        "session reconciled",
        session_id=session.id,
        games_processed=len(games),
        total_games=new_session.total_games,
        total_points=new_session.total_points,
        high_score=new_session.high_score,
    )
    return Reconciliation(
        session=new_session,
        games=games,
        updated_games=rebuilt,
        games_processed=len(games),
        session_ended=ended_at is not None,
    )
