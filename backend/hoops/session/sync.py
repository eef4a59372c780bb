"""
Debounced cache sync of live game state and session bookkeeping.

Live-state updates are coalesced: each schedule() restarts a short timer and
only the newest update per game is sent when it fires. Session updates and
end-of-game reports skip the timer. Nothing here is needed for correctness;
the event log plus reconciliation rebuild the same records without it, so a
failed send is logged and left for the next trigger.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from hoops.logic.exceptions import TrackerError
from hoops.logic.settings import DEFAULT_RULES, RuleSettings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine

    from hoops.session.client import TrackerTransport
    from shared.dal.models import GameStateUpdate, SessionUpdate

logger = structlog.get_logger()


class StateSyncer:
    def __init__(self, transport: TrackerTransport, settings: RuleSettings = DEFAULT_RULES) -> None:
        self._transport = transport
        self._delay = settings.sync_debounce_seconds
        self._game_updates: dict[str, GameStateUpdate] = {}
        self._session_update: SessionUpdate | None = None
        self._timer: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def has_pending(self) -> bool:
        return bool(self._game_updates) or self._session_update is not None

    def schedule(self, update: GameStateUpdate, *, immediate: bool = False) -> None:
        """Queue a game update, replacing any older one for the same game."""
        self._game_updates[update.game_id] = update
        if immediate:
            self._start(self.flush())
        else:
            self._restart_timer()

    def schedule_session(self, update: SessionUpdate) -> None:
        """Queue a session update and send it without waiting for the debounce timer."""
        self._session_update = update
        self._start(self.flush())

    async def flush(self) -> None:
        """Send every queued update; failed ones stay queued unless a newer one replaced them."""
        self._cancel_timer()
        async with self._lock:
            session_update, self._session_update = self._session_update, None
            game_updates, self._game_updates = self._game_updates, {}

            if session_update is not None and not await self._send(self._transport.update_session, session_update):
                self._session_update = self._session_update or session_update
            for game_id, update in game_updates.items():
                if not await self._send(self._transport.update_game, update):
                    self._game_updates.setdefault(game_id, update)

    async def drain(self) -> None:
        """Stop the debounce timer, wait for in-flight sends, then send what is left."""
        self._cancel_timer()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.flush()

    async def _send(
        self,
        send: Callable[[Any], Awaitable[None]],
        update: GameStateUpdate | SessionUpdate,
    ) -> bool:
        try:
            await send(update)
        except TrackerError as exc:
            logger.warning("state sync failed", update=type(update).__name__, error=str(exc))
            return False
        return True

    def _restart_timer(self) -> None:
        self._cancel_timer()
        task = self._start(self._flush_after_delay())
        self._timer = task

    async def _flush_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        self._timer = None
        await self.flush()

    def _cancel_timer(self) -> None:
        current = asyncio.current_task() if _loop_running() else None
        if self._timer is not None and self._timer is not current and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _start(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None] | None:
        if not _loop_running():
            # No loop: updates stay queued until flush() is awaited.
            coro.close()
            return None
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
