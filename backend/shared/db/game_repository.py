"""SQLite-backed game repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from hoops.logic.exceptions import NotFoundError, PersistenceError
from shared.dal.game_repository import GameRepository
from shared.dal.models import GameRecord

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteGameRepository(GameRepository):
    """SQLite implementation of GameRepository.

    Stores full game records as JSON with session id, start time and the
    active flag mirrored into columns for per-session queries.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_game(self, game: GameRecord) -> None:
        """Insert a game record.

        A duplicate id is logged and ignored so that registration can be
        retried. Raises NotFoundError when the owning session does not exist.
        """
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO games (id, session_id, started_at, is_active, data) VALUES (?, ?, ?, ?, ?)",
                    (
                        game.id,
                        game.session_id,
                        game.started_at.isoformat(),
                        int(game.is_active),
                        game.model_dump_json(),
                    ),
                )
                self._db.connection.commit()
            except sqlite3.IntegrityError as exc:
                self._db.connection.rollback()
                if "FOREIGN KEY" in str(exc).upper():
                    raise NotFoundError(kind="session", record_id=game.session_id) from exc
                logger.warning("game already exists, ignoring duplicate create", game_id=game.id)
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc

    async def get_game(self, game_id: str) -> GameRecord | None:
        """Retrieve a single game by its id."""
        row = self._db.connection.execute(
            "SELECT data FROM games WHERE id = ?",
            (game_id,),
        ).fetchone()
        if row is None:
            return None
        return GameRecord.model_validate(json.loads(row[0]))

    async def save_games(self, games: list[GameRecord]) -> None:
        """Replace the stored games in one transaction; unknown ids are logged and skipped."""
        if not games:
            return
        async with self._lock:
            missing: list[str] = []
            try:
                for game in games:
                    cursor = self._db.connection.execute(
                        "UPDATE games SET started_at = ?, is_active = ?, data = ? WHERE id = ?",
                        (game.started_at.isoformat(), int(game.is_active), game.model_dump_json(), game.id),
                    )
                    if cursor.rowcount == 0:
                        missing.append(game.id)
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError(str(exc)) from exc
        if missing:
            logger.warning("save_games skipped unknown games", game_ids=missing)

    async def get_games_for_session(self, session_id: str) -> list[GameRecord]:
        """Return a session's games ordered by started_at, ties broken by id."""
        rows = self._db.connection.execute(
            "SELECT data FROM games WHERE session_id = ? ORDER BY started_at, id",
            (session_id,),
        ).fetchall()
        return [GameRecord.model_validate(json.loads(row[0])) for row in rows]
