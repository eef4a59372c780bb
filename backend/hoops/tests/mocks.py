"""In-memory TrackerTransport for recorder, syncer and keeper tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hoops.logic.exceptions import RequestValidationError, TransientIOError
from hoops.session.client import TrackerTransport

if TYPE_CHECKING:
    from shared.dal.models import EventRecord, GameRecord, GameStateUpdate, SessionRecord, SessionUpdate


class MockTransport(TrackerTransport):
    """
    Records every call. Set `offline` to make every call raise TransientIOError,
    or `reject_events` to make send_events fail with a client error.
    """

    def __init__(self) -> None:
        self.offline = False
        self.reject_events = False
        self.sessions: list[SessionRecord] = []
        self.games: list[GameRecord] = []
        self.batches: list[list[EventRecord]] = []
        self.session_updates: list[SessionUpdate] = []
        self.game_updates: list[GameStateUpdate] = []
        self._seen: set[tuple[str, int]] = set()

    @property
    def events(self) -> list[EventRecord]:
        return [event for batch in self.batches for event in batch]

    def _check(self) -> None:
        if self.offline:
            raise TransientIOError("network unreachable")

    async def create_session(self, session: SessionRecord) -> None:
        self._check()
        self.sessions.append(session)

    async def create_game(self, game: GameRecord) -> None:
        self._check()
        self.games.append(game)

    async def send_events(self, events: list[EventRecord]) -> int:
        self._check()
        if self.reject_events:
            raise RequestValidationError("bad batch")
        self.batches.append(list(events))
        inserted = 0
        for event in events:
            key = (event.game_id, event.sequence_number)
            if key not in self._seen:
                self._seen.add(key)
                inserted += 1
        return inserted

    async def update_session(self, update: SessionUpdate) -> None:
        self._check()
        self.session_updates.append(update)

    async def update_game(self, update: GameStateUpdate) -> None:
        self._check()
        self.game_updates.append(update)
