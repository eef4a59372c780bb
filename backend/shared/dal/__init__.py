"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.event_repository import EventRepository
from shared.dal.game_repository import GameRepository
from shared.dal.models import EventRecord, GameRecord, SessionRecord
from shared.dal.session_repository import SessionRepository

__all__ = [
    "EventRecord",
    "EventRepository",
    "GameRecord",
    "GameRepository",
    "SessionRecord",
    "SessionRepository",
]
