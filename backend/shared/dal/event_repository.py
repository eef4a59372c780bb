"""Abstract interface for the append-only event log."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import EventRecord


class EventRepository(ABC):
    """Abstract interface for event log persistence.

    Appends are idempotent on (game_id, sequence_number): delivery is
    at-least-once, so a re-sent event must not create a second entry.
    """

    @abstractmethod
    async def append_events(self, events: list[EventRecord]) -> int:
        """Append events, ignoring duplicates. Return the number actually inserted."""

    @abstractmethod
    async def get_events_for_game(self, game_id: str) -> list[EventRecord]:
        """Return a game's events ordered by sequence_number."""
