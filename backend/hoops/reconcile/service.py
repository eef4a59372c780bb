"""Fetch, reconcile and write back one session's aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from hoops.logic.clock import utc_now
from hoops.logic.exceptions import NotFoundError, RequestValidationError
from hoops.reconcile.engine import GameReplay, Reconciliation, reconcile

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from shared.dal import EventRepository, GameRepository, SessionRepository

logger = structlog.get_logger()


class ReconciliationService:
    """Runs the reconciliation engine against stored records.

    The wall clock is read once per call. Games are written before the
    session, each as a full replacement of the stored record, so a reader
    never sees session totals that its games do not back up.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        games: GameRepository,
        events: EventRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sessions = sessions
        self._games = games
        self._events = events
        self._now = clock

    async def reconcile(self, session_id: str) -> Reconciliation:
        if not session_id or not session_id.strip():
            raise RequestValidationError("session id is required")
        now = self._now()

        session = await self._sessions.get_session(session_id)
        if session is None:
            raise NotFoundError(kind="session", record_id=session_id)

        replays = [
            GameReplay(game=game, events=await self._events.get_events_for_game(game.id))
            for game in await self._games.get_games_for_session(session_id)
        ]
        result = reconcile(session, replays, now)

        await self._games.save_games(result.updated_games)
        await self._sessions.save_session(result.session)
        return result


def reconciliation_payload(result: Reconciliation) -> dict[str, Any]:
    """Response body of POST /api/reconcile."""
    return {
        "session": result.session.model_dump(by_alias=True, mode="json"),
        "games": [game.model_dump(by_alias=True, mode="json") for game in result.games],
        "recalculated": {
            "gamesProcessed": result.games_processed,
            "totalGames": result.total_games,
            "totalPoints": result.total_points,
            "highScore": result.high_score,
            "sessionEnded": result.session_ended,
        },
    }
