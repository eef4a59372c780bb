"""Abstract interface for session persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import SessionRecord


class SessionRepository(ABC):
    """Abstract interface for session persistence.

    Implementations can use SQLite, PostgreSQL, etc.
    """

    @abstractmethod
    async def create_session(self, session: SessionRecord) -> None: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> SessionRecord | None: ...

    @abstractmethod
    async def save_session(self, session: SessionRecord) -> bool:
        """Replace the stored session with the given record. Return False if it did not exist."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session with its games and events. Return False if it did not exist."""

    @abstractmethod
    async def get_recent_sessions(self, limit: int = 20) -> list[SessionRecord]: ...
