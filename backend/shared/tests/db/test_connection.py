"""Tests for Database connection and schema."""

from __future__ import annotations

import sqlite3
import sys
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from shared.db.connection import SCHEMA_VERSION, Database

if TYPE_CHECKING:
    from pathlib import Path

_TRACKER_TABLES = ("events", "games", "sessions")


def _table_names(db: Database) -> list[str]:
    rows = db.connection.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name",
    ).fetchall()
    return [row[0] for row in rows]


class TestConnect:
    def test_creates_schema_and_connects(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()

        table_names = _table_names(db)
        for name in _TRACKER_TABLES:
            assert name in table_names
        db.close()

    def test_reconnect_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        db.connect()

        assert len([name for name in _table_names(db) if name in _TRACKER_TABLES]) == 3
        db.close()

    def test_in_memory_database(self) -> None:
        db = Database(":memory:")
        db.connect()
        assert "sessions" in _table_names(db)
        db.close()

    def test_connection_raises_when_disconnected(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_connection_raises_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "test.db")
        db.connect()
        assert db.connection is not None
        db.close()


class TestSchemaConstraints:
    def test_event_sequence_is_unique_per_game(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        conn = db.connection
        conn.execute("INSERT INTO sessions (id, started_at, data) VALUES ('s1', '2025-01-01', '{}')")
        conn.execute("INSERT INTO games (id, session_id, started_at, data) VALUES ('g1', 's1', '2025-01-01', '{}')")
        conn.execute("INSERT INTO events (id, game_id, sequence_number, data) VALUES ('e1', 'g1', 0, '{}')")

        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO events (id, game_id, sequence_number, data) VALUES ('e2', 'g1', 0, '{}')")
        db.close()

    def test_deleting_session_cascades(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        conn = db.connection
        conn.execute("INSERT INTO sessions (id, started_at, data) VALUES ('s1', '2025-01-01', '{}')")
        conn.execute("INSERT INTO games (id, session_id, started_at, data) VALUES ('g1', 's1', '2025-01-01', '{}')")
        conn.execute("INSERT INTO events (id, game_id, sequence_number, data) VALUES ('e1', 'g1', 0, '{}')")
        conn.execute("DELETE FROM sessions WHERE id = 's1'")

        assert conn.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM events").fetchone()[0] == 0
        db.close()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions only")
class TestPermissions:
    def test_db_file_has_restricted_permissions(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        db = Database(db_path)
        db.connect()

        mode = db_path.stat().st_mode & 0o777
        assert mode == 0o600
        db.close()

    def test_harden_permissions_warns_on_failure(self, tmp_path: Path) -> None:
        """Permission hardening logs a warning on failure instead of raising."""
        db_path = tmp_path / "test.db"
        db = Database(db_path)
        with patch("pathlib.Path.chmod", side_effect=OSError("permission denied")):
            db.connect()
        assert db.connection is not None
        db.close()


class TestSchemaVersion:
    def test_new_database_is_stamped(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        assert db.schema_version == SCHEMA_VERSION
        db.close()

    def test_version_one_file_is_upgraded(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        legacy = sqlite3.connect(db_path)
        legacy.execute(
            "CREATE TABLE sessions (id TEXT PRIMARY KEY, started_at TEXT NOT NULL, ended_at TEXT, data TEXT NOT NULL)",
        )
        legacy.execute("INSERT INTO sessions (id, started_at, data) VALUES ('s1', '2025-01-01', '{}')")
        legacy.execute("PRAGMA user_version = 1")
        legacy.commit()
        legacy.close()

        db = Database(db_path)
        db.connect()

        assert db.schema_version == SCHEMA_VERSION
        indexes = {row[1] for row in db.connection.execute("PRAGMA index_list(sessions)").fetchall()}
        assert "idx_sessions_started" in indexes
        assert db.connection.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 1
        db.close()

    def test_newer_file_is_refused(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        future = sqlite3.connect(db_path)
        future.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
        future.close()

        db = Database(db_path)
        with pytest.raises(RuntimeError, match="newer than supported"):
            db.connect()
        db.close()
