"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.event_repository import SqliteEventRepository
from shared.db.game_repository import SqliteGameRepository
from shared.db.session_repository import SqliteSessionRepository

__all__ = [
    "Database",
    "SqliteEventRepository",
    "SqliteGameRepository",
    "SqliteSessionRepository",
]
