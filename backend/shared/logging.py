"""Structured logging configuration with structlog.

Environment variables:
- LOG_FORMAT: "json" for log aggregation, "console" or unset for
  human-readable colored output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".

Session and game ids are carried through contextvars, so every log line
emitted while handling a request or command is tagged with them.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_PREFIX = "tracker"
LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_VALID_LOG_FORMATS = {"json", "console", ""}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

def _plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value

def _serialize_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace Enum and datetime values with plain strings for readable log output."""
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _plain(v) for k, v in value.items()}
        else:
            event_dict[key] = _plain(value)
    return event_dict

def bind_tracking_context(*, session_id: str | None = None, game_id: str | None = None) -> None:
    """Tag subsequent log lines in this context with the session and game ids."""
    values = {key: value for key, value in (("session_id", session_id), ("game_id", game_id)) if value}
    if values:
        structlog.contextvars.bind_contextvars(**values)

def clear_tracking_context() -> None:
    structlog.contextvars.unbind_contextvars("session_id", "game_id")

def _is_test() -> bool:
    return "pytest" in sys.modules

class _LogConfig(NamedTuple):
    json_mode: bool
    level: int

def _read_env_config() -> _LogConfig:
    """Validate LOG_FORMAT and LOG_LEVEL; an invalid value fails startup instead of being ignored."""
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format not in _VALID_LOG_FORMATS:
        msg = f"Invalid LOG_FORMAT={log_format!r}. Must be 'json', 'console', or unset."
        raise ValueError(msg)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    if level_name not in _VALID_LOG_LEVELS:
        msg = f"Invalid LOG_LEVEL={level_name!r}. Must be one of {', '.join(sorted(_VALID_LOG_LEVELS))}."
        raise ValueError(msg)

    return _LogConfig(json_mode=log_format == "json", level=getattr(logging, level_name))

# Tracebacks are rendered by the handler formatter, so each output gets them exactly once.
_PROCESSORS: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    _serialize_values,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
)

# Per-request lines of the transport client's HTTP stack.
_QUIET_LOGGERS = ("httpx", "httpcore")

def _formatter(*, json_mode: bool, colors: bool = False) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

def _open_log_file(log_dir: Path | str, *, json_mode: bool) -> tuple[logging.Handler, Path]:
    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = dir_path / f"{LOG_FILE_PREFIX}-{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    handler = logging.FileHandler(file_path)
    handler.setFormatter(_formatter(json_mode=json_mode))
    return handler, file_path

def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog through stdlib to stdout and, when log_dir is given, to a timestamped file.

    The level comes from LOG_LEVEL unless passed explicitly. Calling this again
    replaces the previous handlers. Returns the log file path, or None when no
    file was opened (no log_dir, or running under pytest).
    """
    config = _read_env_config()

    structlog.configure(
        processors=list(_PROCESSORS),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level if level is not None else config.level)
    root_logger.handlers.clear()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(_formatter(json_mode=config.json_mode, colors=sys.stdout.isatty()))
    root_logger.addHandler(stdout_handler)

    if log_dir is None or _is_test():
        return None
    file_handler, file_path = _open_log_file(log_dir, json_mode=config.json_mode)
    root_logger.addHandler(file_handler)
    return file_path
