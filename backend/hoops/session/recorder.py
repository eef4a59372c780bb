"""
At-least-once outbound queue for the event log.

Events are queued in sequence order and shipped in batches: a flush is
triggered once the queue holds event_batch_size entries, or right away for
game_start, game_end and mode_change. A batch that fails with
TransientIOError goes back to the head of the queue, ahead of anything
queued while it was in flight, and is retried on the next trigger. The
server ignores entries it already holds, keyed by (game_id, sequence_number),
so re-sending is always safe.

Session and game records are registered with the transport before the
first batch that could reference them. Ids are generated locally, so play
never waits for the server.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

import structlog

from hoops.logic.enums import IMMEDIATE_FLUSH_EVENTS
from hoops.logic.exceptions import TrackerError, TransientIOError
from hoops.logic.settings import DEFAULT_RULES, RuleSettings
from shared.dal.models import GameRecord, SessionRecord

if TYPE_CHECKING:
    from hoops.session.client import TrackerTransport
    from shared.dal.models import EventRecord

logger = structlog.get_logger()


class EventRecorder:
    def __init__(self, transport: TrackerTransport, settings: RuleSettings = DEFAULT_RULES) -> None:
        self._transport = transport
        self._batch_size = settings.event_batch_size
        self._pending: deque[EventRecord] = deque()
        self._registrations: deque[SessionRecord | GameRecord] = deque()
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[int]] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_events(self) -> list[EventRecord]:
        return list(self._pending)

    @property
    def has_unregistered_records(self) -> bool:
        return bool(self._registrations)

    def register_session(self, session: SessionRecord) -> None:
        self._registrations.append(session)

    def register_game(self, game: GameRecord) -> None:
        self._registrations.append(game)

    def record(self, event: EventRecord) -> None:
        """Queue an event and start a flush if a trigger condition is met."""
        self._pending.append(event)
        if len(self._pending) >= self._batch_size or event.event_type in IMMEDIATE_FLUSH_EVENTS:
            self._schedule_flush()

    async def flush(self) -> int:
        """
        Register outstanding records, then send every queued event as one batch.

        Returns the number of events handed to the transport; 0 when the queue
        was empty or the send failed and was re-queued.
        """
        async with self._lock:
            if not await self._register_pending():
                return 0
            if not self._pending:
                return 0

            batch = list(self._pending)
            self._pending.clear()
            try:
                inserted = await self._transport.send_events(batch)
            except TransientIOError as exc:
                self._pending.extendleft(reversed(batch))
                logger.warning("event batch send failed, re-queued", batch_size=len(batch), error=str(exc))
                return 0
            except TrackerError as exc:
                logger.error("event batch rejected, dropping", batch_size=len(batch), error=str(exc))
                return 0

        if inserted < len(batch):
            logger.info("server already held some events", sent=len(batch), inserted=inserted)
        return len(batch)

    async def drain(self) -> None:
        """Wait for scheduled flushes, then flush whatever is still queued."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.flush()

    async def _register_pending(self) -> bool:
        while self._registrations:
            record = self._registrations[0]
            try:
                if isinstance(record, SessionRecord):
                    await self._transport.create_session(record)
                else:
                    await self._transport.create_game(record)
            except TransientIOError as exc:
                logger.warning("record registration failed, will retry", record_id=record.id, error=str(exc))
                return False
            except TrackerError as exc:
                logger.error("record registration rejected, dropping", record_id=record.id, error=str(exc))
            self._registrations.popleft()
        return True

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: events stay queued until flush() is awaited.
            return
        task = loop.create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._on_flush_done)

    def _on_flush_done(self, task: asyncio.Task[int]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("event flush failed", error=str(task.exception()))
