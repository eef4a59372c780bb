"""Root conftest: load test environment variables and route structlog through stdlib for caplog."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import clear_tracking_context

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Event dicts reach caplog records unrendered: record.msg["event"], record.msg["game_id"], ...
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Session and game ids bound by one test must not tag the next one's log lines."""
    clear_tracking_context()
    yield
    structlog.contextvars.clear_contextvars()
