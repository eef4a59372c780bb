"""Tests for SqliteSessionRepository."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from hoops.logic.exceptions import PersistenceError
from shared.dal.models import GameRecord, SessionRecord
from shared.db.game_repository import SqliteGameRepository
from shared.db.session_repository import SqliteSessionRepository

if TYPE_CHECKING:
    from shared.db.connection import Database


def _session(session_id: str = "s1", started_at: datetime | None = None) -> SessionRecord:
    return SessionRecord(
        id=session_id,
        started_at=started_at or datetime(2025, 1, 15, 18, 0, 0, tzinfo=UTC),
    )


@pytest.fixture
def repo(db: Database) -> SqliteSessionRepository:
    return SqliteSessionRepository(db)


class TestCreateAndGet:
    async def test_create_and_get_session(self, repo: SqliteSessionRepository) -> None:
        await repo.create_session(_session())

        result = await repo.get_session("s1")
        assert result is not None
        assert result.id == "s1"
        assert result.duration_seconds == 600
        assert result.ended_at is None

    async def test_get_returns_none_for_unknown(self, repo: SqliteSessionRepository) -> None:
        assert await repo.get_session("nonexistent") is None

    async def test_duplicate_create_keeps_first_record(self, repo: SqliteSessionRepository) -> None:
        await repo.create_session(_session())
        await repo.create_session(_session().model_copy(update={"duration_seconds": 60}))

        result = await repo.get_session("s1")
        assert result is not None
        assert result.duration_seconds == 600


class TestSaveSession:
    async def test_save_replaces_record(self, repo: SqliteSessionRepository) -> None:
        await repo.create_session(_session())
        ended = datetime(2025, 1, 15, 18, 10, 0, tzinfo=UTC)
        updated = _session().model_copy(update={"high_score": 42, "total_games": 3, "ended_at": ended})

        assert await repo.save_session(updated) is True

        result = await repo.get_session("s1")
        assert result == updated

    async def test_save_unknown_returns_false(self, repo: SqliteSessionRepository) -> None:
        assert await repo.save_session(_session("missing")) is False

    async def test_storage_failure_raises_persistence_error(self, db: Database) -> None:
        repo = SqliteSessionRepository(db)
        await repo.create_session(_session())
        db.connection.execute("DROP TABLE events")
        db.connection.execute("DROP TABLE games")
        db.connection.execute("DROP TABLE sessions")

        with pytest.raises(PersistenceError, match="no such table"):
            await repo.save_session(_session())


class TestDeleteSession:
    async def test_delete_cascades_to_games(self, db: Database) -> None:
        repo = SqliteSessionRepository(db)
        games = SqliteGameRepository(db)
        await repo.create_session(_session())
        await games.create_game(GameRecord(id="g1", session_id="s1", started_at=datetime(2025, 1, 15, tzinfo=UTC)))

        assert await repo.delete_session("s1") is True
        assert await repo.get_session("s1") is None
        assert await games.get_game("g1") is None

    async def test_delete_unknown_returns_false(self, repo: SqliteSessionRepository) -> None:
        assert await repo.delete_session("nonexistent") is False


class TestGetRecentSessions:
    async def test_ordered_newest_first(self, repo: SqliteSessionRepository) -> None:
        for day in (1, 3, 2):
            await repo.create_session(_session(f"s{day}", datetime(2025, 1, day, tzinfo=UTC)))

        result = await repo.get_recent_sessions()
        assert [s.id for s in result] == ["s3", "s2", "s1"]

    async def test_respects_limit(self, repo: SqliteSessionRepository) -> None:
        for day in range(1, 6):
            await repo.create_session(_session(f"s{day}", datetime(2025, 1, day, tzinfo=UTC)))

        result = await repo.get_recent_sessions(limit=2)
        assert [s.id for s in result] == ["s5", "s4"]
