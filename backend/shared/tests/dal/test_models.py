"""Tests for DAL persistence models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from hoops.logic.enums import EventType, GameMode
from shared.dal.models import EventRecord, GameRecord, SessionRecord


class TestWireFormat:
    def test_session_dumps_camel_case(self):
        session = SessionRecord(id="s1", started_at=datetime(2025, 1, 1, tzinfo=UTC))
        data = session.model_dump(by_alias=True, mode="json")

        assert data["durationSeconds"] == 600
        assert data["totalPausedMs"] == 0
        assert data["currentGameId"] is None
        assert "duration_seconds" not in data

    def test_game_accepts_camel_case_input(self):
        game = GameRecord.model_validate(
            {
                "id": "g1",
                "sessionId": "s1",
                "startedAt": "2025-01-01T00:00:00Z",
                "currentMode": "point",
                "currentMultiplierShotsRemaining": 4,
            },
        )
        assert game.session_id == "s1"
        assert game.current_mode == GameMode.POINT
        assert game.current_multiplier_shots_remaining == 4

    def test_event_accepts_snake_case_input(self):
        event = EventRecord(
            id="e1",
            game_id="g1",
            event_type=EventType.MISS,
            misses_remaining=2,
            occurred_at=datetime(2025, 1, 1, tzinfo=UTC),
            sequence_number=3,
        )
        assert event.model_dump(by_alias=True)["missesRemaining"] == 2


class TestValidation:
    def test_event_rejects_negative_sequence(self):
        with pytest.raises(ValidationError):
            EventRecord(
                id="e1",
                game_id="g1",
                event_type=EventType.MAKE,
                occurred_at=datetime(2025, 1, 1, tzinfo=UTC),
                sequence_number=-1,
            )

    def test_event_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            EventRecord.model_validate(
                {
                    "id": "e1",
                    "gameId": "g1",
                    "eventType": "dunk",
                    "occurredAt": "2025-01-01T00:00:00Z",
                    "sequenceNumber": 0,
                },
            )

    def test_event_rejects_timestamp_without_timezone(self):
        with pytest.raises(ValidationError, match="timezone"):
            EventRecord.model_validate(
                {
                    "id": "e1",
                    "gameId": "g1",
                    "eventType": "make",
                    "occurredAt": "2025-01-01T00:00:00",
                    "sequenceNumber": 0,
                },
            )

    def test_session_rejects_timestamp_without_timezone(self):
        with pytest.raises(ValidationError, match="timezone"):
            SessionRecord(id="s1", started_at=datetime(2025, 1, 1))  # noqa: DTZ001

    def test_session_rejects_empty_id(self):
        with pytest.raises(ValidationError):
            SessionRecord(id="", started_at=datetime(2025, 1, 1, tzinfo=UTC))

    def test_records_are_frozen(self):
        session = SessionRecord(id="s1", started_at=datetime(2025, 1, 1, tzinfo=UTC))
        with pytest.raises(ValidationError):
            session.high_score = 10
