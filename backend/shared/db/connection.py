"""SQLite database connection and schema management.

The schema version lives in ``PRAGMA user_version``. A fresh file is created
at the current version; an older file is brought forward by running each
pending step of ``_UPGRADES`` in order, so an existing history survives an
upgrade of the tracker.
"""

import os
import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger()

IN_MEMORY = ":memory:"
SCHEMA_VERSION = 2

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_started
    ON sessions (started_at);

CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions (id) ON DELETE CASCADE,
    started_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_games_session_started
    ON games (session_id, started_at);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL REFERENCES games (id) ON DELETE CASCADE,
    sequence_number INTEGER NOT NULL,
    data TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_events_game_sequence
    ON events (game_id, sequence_number);
"""

# Version reached -> statements that take a database from the previous version to it.
# Version 1 files predate the history listing and lack its index.
_UPGRADES: dict[int, str] = {
    2: "CREATE INDEX IF NOT EXISTS idx_sessions_started ON sessions (started_at);",
}


class Database:
    """SQLite database wrapper with schema management."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def schema_version(self) -> int:
        return self.connection.execute("PRAGMA user_version").fetchone()[0]

    def connect(self) -> None:
        """Open the database, apply pragmas, create or upgrade the schema, and restrict file permissions."""
        if self._path != IN_MEMORY:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        # Repositories are called from the event loop thread of whichever server hosts them.
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._apply_schema()

        self._harden_permissions()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _apply_schema(self) -> None:
        conn = self.connection
        version = self.schema_version
        if version > SCHEMA_VERSION:
            msg = f"Database {self._path} has schema version {version}, newer than supported {SCHEMA_VERSION}"
            raise RuntimeError(msg)
        if version == 0:
            conn.executescript(_SCHEMA_SQL)
        else:
            for target in range(version + 1, SCHEMA_VERSION + 1):
                conn.executescript(_UPGRADES[target])
                logger.info("database schema upgraded", path=self._path, version=target)
        if version != SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()

    def _harden_permissions(self) -> None:
        """Restrict the database file and its WAL/SHM siblings to the owner (POSIX, best effort)."""
        if os.name != "posix" or self._path == IN_MEMORY:  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if not p.exists():
                continue
            try:
                p.chmod(_DB_FILE_PERMISSIONS)
            except OSError:
                logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
