"""
Score keeper: the single synchronous entry point for commands.

Every command, from a button or from voice, goes through dispatch(), which
reads the current state itself, so no caller ever holds a stale copy. A
dispatch reads "now" once, ends the session first if its timer has run out,
then routes the command:

    undo, pause, resume, final shot   handled here (need history or the clock)
    everything else                   reduced by hoops.logic.machine

Applied transitions become event log entries and cache-sync updates; I/O is
handed to the recorder and syncer and never blocks play.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import structlog

from hoops.logic.clock import MS_PER_SECOND, SessionClock, to_ms, utc_now
from hoops.logic.enums import UNDOABLE_COMMANDS, CommandType, EndReason
from hoops.logic.events import build_event, drafts_for
from hoops.logic.machine import Transition, apply_command, end_session
from hoops.logic.settings import DEFAULT_RULES, RuleSettings
from hoops.logic.state import TrackerState
from hoops.logic.undo import UndoSnapshot, UndoStack
from shared.dal.models import GameRecord, GameStateUpdate, SessionRecord, SessionUpdate, new_record_id
from shared.logging import bind_tracking_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from hoops.logic.commands import Command
    from hoops.session.recorder import EventRecorder
    from hoops.session.sync import StateSyncer
    from shared.dal.models import EventRecord

logger = structlog.get_logger()


class DispatchResult(NamedTuple):
    """State after a command, whether it changed anything, and the log entries it produced."""

    state: TrackerState
    applied: bool
    events: tuple[EventRecord, ...] = ()


class ScoreKeeper:
    def __init__(
        self,
        *,
        settings: RuleSettings = DEFAULT_RULES,
        recorder: EventRecorder | None = None,
        syncer: StateSyncer | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        self._settings = settings
        self._recorder = recorder
        self._syncer = syncer
        self._now = clock
        self._new_id = id_factory

        self._state = TrackerState()
        self._undo = UndoStack(settings.undo_capacity)

        self._session_id: str | None = None
        self._session_clock: SessionClock | None = None
        self._session_ended_at: datetime | None = None
        self._expired = False
        self._final_shot_taken = False

        self._game_id: str | None = None
        self._game_started_at: datetime | None = None
        self._next_sequence = 0

        self._handlers: dict[CommandType, Callable[[Command, datetime], DispatchResult]] = {
            CommandType.UNDO: self._undo_last,
            CommandType.PAUSE: self._pause,
            CommandType.RESUME: self._resume,
            CommandType.FINAL_MAKE: self._final_shot,
            CommandType.FINAL_MISS: self._final_shot,
            CommandType.END_SESSION: self._end_session_manually,
        }

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def game_id(self) -> str | None:
        return self._game_id

    @property
    def session_clock(self) -> SessionClock | None:
        return self._session_clock

    @property
    def session_ended_at(self) -> datetime | None:
        return self._session_ended_at

    @property
    def can_undo(self) -> bool:
        return self._state.game_active and self._undo.can_undo

    def time_remaining(self, now: datetime | None = None) -> int:
        """Whole seconds left on the session timer; 0 once the session has ended."""
        if self._session_clock is None or self._session_ended_at is not None:
            return 0
        return self._session_clock.remaining_seconds(now if now is not None else self._now())

    def final_shot_available(self, now: datetime | None = None) -> bool:
        """True inside the grace window after the timer cut off a running game."""
        if not self._expired or self._final_shot_taken or self._session_clock is None:
            return False
        if self._state.last_end_reason != EndReason.SESSION_ENDED:
            return False
        return self._session_clock.in_grace_window(now if now is not None else self._now(), self._settings)

    def check_expiry(self, now: datetime | None = None) -> DispatchResult:
        """End the session if its timer has run out. Safe to call at any time, e.g. from a UI tick."""
        return self._expire_if_due(now if now is not None else self._now())

    def dispatch(self, command: Command, now: datetime | None = None) -> DispatchResult:
        now = now if now is not None else self._now()
        expiry = self._expire_if_due(now)
        handler = self._handlers.get(command.type, self._apply)
        result = handler(command, now)
        if expiry.applied:
            return result._replace(events=expiry.events + result.events)
        return result

    # ------------------------------------------------------------------
    # Reducer-driven commands
    # ------------------------------------------------------------------

    def _apply(self, command: Command, now: datetime) -> DispatchResult:
        before = self._state
        transition = apply_command(before, command, self._settings)
        if not transition.applied:
            logger.debug("command ignored", command=command.type, phase=before.phase, mode=before.scoring.mode)
            return DispatchResult(before, applied=False)

        if command.type == CommandType.START_SESSION:
            self._open_session(now)
        if command.type in UNDOABLE_COMMANDS:
            self._undo.push(UndoSnapshot.capture(before))
        if transition.outcome is not None and transition.outcome.game_started:
            self._open_game(now)

        self._state = transition.state
        events = self._record(command.type, transition, now, is_tip_in=command.is_tip_in)
        self._sync_game(transition, now)
        return DispatchResult(self._state, applied=True, events=events)

    def _end_session_manually(self, _command: Command, now: datetime) -> DispatchResult:
        return self._close_session(EndReason.MANUAL_END, ended_at=now)

    def _expire_if_due(self, now: datetime) -> DispatchResult:
        clock = self._session_clock
        if clock is None or not self._state.session_active or not clock.is_expired(now):
            return DispatchResult(self._state, applied=False)
        self._expired = True
        logger.info("session timer expired", grace_deadline=clock.grace_deadline(self._settings))
        # The expected end, not "now", so a late discovery records the same instant.
        return self._close_session(EndReason.SESSION_ENDED, ended_at=clock.expected_end())

    def _close_session(self, reason: EndReason, *, ended_at: datetime) -> DispatchResult:
        transition = end_session(self._state, reason)
        if not transition.applied:
            return DispatchResult(self._state, applied=False)
        self._state = transition.state
        self._session_ended_at = ended_at
        events = self._record(CommandType.END_SESSION, transition, ended_at)
        self._sync_game(transition, ended_at)
        self._sync_session()
        logger.info("session ended", reason=reason, games=self._state.games_played, high_score=self._state.high_score)
        return DispatchResult(self._state, applied=True, events=events)

    # ------------------------------------------------------------------
    # Commands handled here
    # ------------------------------------------------------------------

    def _undo_last(self, _command: Command, _now: datetime) -> DispatchResult:
        if not self._state.game_active:
            return DispatchResult(self._state, applied=False)
        snapshot = self._undo.pop()
        if snapshot is None:
            return DispatchResult(self._state, applied=False)
        self._state = snapshot.restore(self._state)
        self._schedule_live_sync()
        return DispatchResult(self._state, applied=True)

    def _pause(self, _command: Command, now: datetime) -> DispatchResult:
        clock = self._session_clock
        if clock is None or not self._state.session_active or clock.is_paused:
            return DispatchResult(self._state, applied=False)
        self._session_clock = clock.pause(now)
        self._sync_session()
        return DispatchResult(self._state, applied=True)

    def _resume(self, _command: Command, now: datetime) -> DispatchResult:
        clock = self._session_clock
        if clock is None or not self._state.session_active or not clock.is_paused:
            return DispatchResult(self._state, applied=False)
        self._session_clock = clock.resume(now)
        self._sync_session()
        return DispatchResult(self._state, applied=True)

    def _final_shot(self, command: Command, now: datetime) -> DispatchResult:
        if not self.final_shot_available(now):
            logger.debug("final shot not available", command=command.type)
            return DispatchResult(self._state, applied=False)
        transition = apply_command(self._state, command, self._settings)
        if not transition.applied:
            return DispatchResult(self._state, applied=False)
        self._final_shot_taken = True
        self._state = transition.state
        events = self._record(command.type, transition, now, is_tip_in=command.is_tip_in)
        self._sync_game(transition, now, report=True)
        self._sync_session()
        return DispatchResult(self._state, applied=True, events=events)

    # ------------------------------------------------------------------
    # Lifecycle and I/O
    # ------------------------------------------------------------------

    def _open_session(self, now: datetime) -> None:
        self._session_id = self._new_id()
        self._session_clock = SessionClock(started_at=now, duration_seconds=self._settings.session_duration_seconds)
        self._session_ended_at = None
        self._expired = False
        self._final_shot_taken = False
        bind_tracking_context(session_id=self._session_id)
        logger.info("session started", duration_seconds=self._settings.session_duration_seconds)
        if self._recorder is not None:
            self._recorder.register_session(
                SessionRecord(
                    id=self._session_id,
                    duration_seconds=self._settings.session_duration_seconds,
                    started_at=now,
                ),
            )

    def _open_game(self, now: datetime) -> None:
        if self._session_id is None:  # pragma: no cover
            raise RuntimeError("game started without a session")
        self._game_id = self._new_id()
        self._game_started_at = now
        self._next_sequence = 0
        self._undo.clear()
        bind_tracking_context(game_id=self._game_id)
        if self._recorder is not None:
            self._recorder.register_game(
                GameRecord(
                    id=self._game_id,
                    session_id=self._session_id,
                    started_at=now,
                    current_misses=self._settings.initial_misses,
                ),
            )

    def _record(
        self,
        command_type: CommandType,
        transition: Transition,
        occurred_at: datetime,
        *,
        is_tip_in: bool = False,
    ) -> tuple[EventRecord, ...]:
        if self._game_id is None:
            return ()
        events: list[EventRecord] = []
        for draft in drafts_for(command_type, transition, is_tip_in=is_tip_in):
            event = build_event(
                draft,
                event_id=self._new_id(),
                game_id=self._game_id,
                sequence_number=self._next_sequence,
                occurred_at=occurred_at,
            )
            self._next_sequence += 1
            events.append(event)
            if self._recorder is not None:
                self._recorder.record(event)
        return tuple(events)

    def _live_update(self, **extra: object) -> GameStateUpdate | None:
        if self._game_id is None:
            return None
        scoring = self._state.scoring
        return GameStateUpdate(
            game_id=self._game_id,
            current_score=scoring.score,
            current_mode=scoring.mode,
            current_multiplier=scoring.multiplier,
            current_multiplier_shots_remaining=scoring.multiplier_shots_remaining,
            current_misses=scoring.misses,
            current_freebies_remaining=scoring.freebies_remaining,
            **extra,
        )

    def _schedule_live_sync(self) -> None:
        if self._syncer is None:
            return
        update = self._live_update()
        if update is not None:
            self._syncer.schedule(update)

    def _sync_game(self, transition: Transition, now: datetime, *, report: bool = False) -> None:
        """Queue a live-state update, or an immediate end-of-game report when the game just ended."""
        if self._syncer is None:
            return
        ended = transition.outcome.ended_game if transition.outcome is not None else None
        if ended is None and not report:
            self._schedule_live_sync()
            return

        extra: dict[str, object] = {"final_score": self._state.scoring.score}
        if ended is not None:
            extra.update(is_active=False, ended_at=now, end_reason=ended)
            if self._game_started_at is not None:
                extra["duration_seconds"] = max(0, to_ms(now - self._game_started_at) // MS_PER_SECOND)
        update = self._live_update(**extra)
        if update is not None:
            self._syncer.schedule(update, immediate=True)

    def _sync_session(self) -> None:
        if self._syncer is None or self._session_id is None or self._session_clock is None:
            return
        clock = self._session_clock
        fields: dict[str, object] = {
            "session_id": self._session_id,
            "is_paused": clock.is_paused,
            "paused_at": clock.paused_at,
            "total_paused_ms": clock.total_paused_ms,
        }
        if self._session_ended_at is not None:
            fields.update(
                ended_at=self._session_ended_at,
                high_score=self._state.high_score,
                total_points=self._state.total_points,
                total_games=self._state.games_played,
            )
        self._syncer.schedule_session(SessionUpdate(**fields))
