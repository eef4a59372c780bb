"""SQLite-backed session repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from hoops.logic.exceptions import PersistenceError
from shared.dal.models import SessionRecord
from shared.dal.session_repository import SessionRepository

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


def _ended_at_column(session: SessionRecord) -> str | None:
    return session.ended_at.isoformat() if session.ended_at else None


class SqliteSessionRepository(SessionRepository):
    """SQLite implementation of SessionRepository.

    Stores full session records as JSON with the timestamps mirrored into
    indexed columns. Writes run under an asyncio lock; storage failures are
    raised as PersistenceError carrying the sqlite message.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_session(self, session: SessionRecord) -> None:
        """Insert a session. Logs a warning and returns on duplicate id."""
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO sessions (id, started_at, ended_at, data) VALUES (?, ?, ?, ?)",
                    (
                        session.id,
                        session.started_at.isoformat(),
                        _ended_at_column(session),
                        session.model_dump_json(),
                    ),
                )
                self._db.connection.commit()
            except sqlite3.IntegrityError:
                self._db.connection.rollback()
                logger.warning("session already exists, ignoring duplicate create", session_id=session.id)
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc

    async def get_session(self, session_id: str) -> SessionRecord | None:
        row = self._db.connection.execute(
            "SELECT data FROM sessions WHERE id = ?",
            (session_id,),
        ).fetchone()
        if row is None:
            return None
        return SessionRecord.model_validate(json.loads(row[0]))

    async def save_session(self, session: SessionRecord) -> bool:
        """Replace a stored session. Returns False when no row has that id."""
        async with self._lock:
            try:
                cursor = self._db.connection.execute(
                    "UPDATE sessions SET started_at = ?, ended_at = ?, data = ? WHERE id = ?",
                    (
                        session.started_at.isoformat(),
                        _ended_at_column(session),
                        session.model_dump_json(),
                        session.id,
                    ),
                )
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc
        if cursor.rowcount == 0:
            logger.warning("save_session had no effect (not found)", session_id=session.id)
            return False
        return True

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session together with its games and events (cascade)."""
        async with self._lock:
            try:
                cursor = self._db.connection.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc
        return cursor.rowcount > 0

    async def get_recent_sessions(self, limit: int = 20) -> list[SessionRecord]:
        """Retrieve the most recent sessions, ordered by started_at descending."""
        rows = self._db.connection.execute(
            "SELECT data FROM sessions ORDER BY started_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [SessionRecord.model_validate(json.loads(row[0])) for row in rows]
