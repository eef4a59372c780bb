"""Abstract interface for game persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import GameRecord


class GameRepository(ABC):
    """Abstract interface for game persistence."""

    @abstractmethod
    async def create_game(self, game: GameRecord) -> None: ...

    @abstractmethod
    async def get_game(self, game_id: str) -> GameRecord | None: ...

    @abstractmethod
    async def save_games(self, games: list[GameRecord]) -> None:
        """Replace the stored games with the given records in a single transaction."""

    @abstractmethod
    async def get_games_for_session(self, session_id: str) -> list[GameRecord]:
        """Return a session's games ordered by started_at."""
