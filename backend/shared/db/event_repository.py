"""SQLite-backed event log repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from hoops.logic.exceptions import PersistenceError
from shared.dal.event_repository import EventRepository
from shared.dal.models import EventRecord

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteEventRepository(EventRepository):
    """SQLite implementation of EventRepository.

    The unique (game_id, sequence_number) index makes appends idempotent:
    a re-delivered event is dropped by INSERT OR IGNORE. A batch is written
    in a single transaction so a failure leaves no partial batch behind.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def append_events(self, events: list[EventRecord]) -> int:
        if not events:
            return 0
        inserted = 0
        async with self._lock:
            try:
                for event in events:
                    cursor = self._db.connection.execute(
                        "INSERT OR IGNORE INTO events (id, game_id, sequence_number, data) VALUES (?, ?, ?, ?)",
                        (event.id, event.game_id, event.sequence_number, event.model_dump_json()),
                    )
                    inserted += cursor.rowcount
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc
        duplicates = len(events) - inserted
        if duplicates:
            logger.info("ignored duplicate events", inserted=inserted, duplicates=duplicates)
        return inserted

    async def get_events_for_game(self, game_id: str) -> list[EventRecord]:
        rows = self._db.connection.execute(
            "SELECT data FROM events WHERE game_id = ? ORDER BY sequence_number",
            (game_id,),
        ).fetchall()
        return [EventRecord.model_validate(json.loads(row[0])) for row in rows]
