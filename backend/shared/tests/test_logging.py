import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from shared.logging import _serialize_values, bind_tracking_context, clear_tracking_context, setup_logging


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture(autouse=True)
def _default_log_env(monkeypatch):
    """Start each test from the built-in defaults, not the LOG_* values loaded from .env.tests."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestSetupLogging:
    def test_configures_stdout_handler(self):
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1

        handler = root.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_configures_file_handler_in_log_dir(self, tmp_path):
        log_dir = tmp_path / "tracker"
        setup_logging(log_dir=log_dir)
        root = logging.getLogger()

        assert len(root.handlers) == 2
        file_handler = root.handlers[1]
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename).parent == log_dir

    def test_log_file_has_datetime_in_name(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_time
            log_path = setup_logging(log_dir=tmp_path / "tracker")

        assert log_path is not None
        assert log_path.name == "tracker-2025-03-15_10-30-45.log"

    def test_returns_none_without_log_dir(self):
        assert setup_logging() is None

    def test_skips_file_output_under_tests(self, tmp_path):
        with patch("shared.logging._is_test", return_value=True):
            assert setup_logging(log_dir=tmp_path / "tracker") is None
        assert not (tmp_path / "tracker").exists()

    def test_writes_to_file(self, tmp_path):
        log_path = setup_logging(log_dir=tmp_path / "tracker")

        structlog.get_logger("test.writes_to_file").info("hello from test")

        assert log_path is not None
        assert "hello from test" in log_path.read_text()

    def test_clears_existing_handlers_on_repeated_calls(self):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_custom_log_level(self):
        setup_logging(level=logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            setup_logging()

    def test_invalid_log_format_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid LOG_FORMAT"):
            setup_logging()

    def test_json_mode_carries_tracking_context(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path / "tracker")

        bind_tracking_context(session_id="s1", game_id="g1")
        structlog.get_logger("test.json").info("shot recorded", points=3)
        clear_tracking_context()
        structlog.get_logger("test.json").info("after clear")

        assert log_path is not None
        lines = [json.loads(line) for line in log_path.read_text().strip().splitlines()]
        assert lines[0]["event"] == "shot recorded"
        assert lines[0]["session_id"] == "s1"
        assert lines[0]["game_id"] == "g1"
        assert lines[0]["points"] == 3
        assert "session_id" not in lines[1]


class TestTrackingContext:
    def test_skips_missing_ids(self):
        bind_tracking_context(session_id="s1")

        assert structlog.contextvars.get_contextvars() == {"session_id": "s1"}

    def test_clear_is_safe_when_unbound(self):
        clear_tracking_context()

        assert structlog.contextvars.get_contextvars() == {}


class TestSerializeValues:
    class _Mode(Enum):
        POINT = "point"

    def test_replaces_enum_with_value(self):
        result = _serialize_values(None, "", {"mode": self._Mode.POINT, "msg": "hello"})
        assert result == {"mode": "point", "msg": "hello"}

    def test_replaces_datetime_with_iso_string(self):
        at = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        result = _serialize_values(None, "", {"ended_at": at})
        assert result["ended_at"] == "2025-01-01T12:00:00+00:00"

    def test_replaces_values_inside_dict(self):
        result = _serialize_values(None, "", {"data": {"mode": self._Mode.POINT, "count": 3}})
        assert result["data"] == {"mode": "point", "count": 3}
