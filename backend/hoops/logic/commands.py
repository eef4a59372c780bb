"""
Self-contained command values and the voice intent boundary.

A Command carries everything the score keeper needs to act; the keeper
always reads its own current state when handling one, so commands can be
produced anywhere (buttons, voice, tests) and dispatched later.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, Field

from hoops.logic.enums import CommandType
from hoops.logic.settings import DEFAULT_RULES, RuleSettings

logger = structlog.get_logger()

UNKNOWN_ACTION = "unknown"

# Voice tokens that name the same command with a different word.
_ACTION_ALIASES = {
    "start": CommandType.START_SESSION,
    "new_game": CommandType.START_GAME,
    "point_mode": CommandType.ENTER_POINT_MODE,
    "multiplier_mode": CommandType.ENTER_MULTIPLIER_MODE,
    "continue": CommandType.CONTINUE_IN_POINT_MODE,
}


class Command(BaseModel):
    """A user or voice action dispatched to the score keeper."""

    model_config = ConfigDict(frozen=True)

    type: CommandType
    is_tip_in: bool = False  # shot was tipped in before touching the floor


class VoiceIntent(BaseModel):
    """Classifier verdict for one transcript."""

    model_config = ConfigDict(frozen=True)

    action: str
    confidence: float = Field(default=0.0, ge=0, le=1)


def parse_action(action: str) -> CommandType | None:
    """Map an action token to a known command type, or None if unrecognised."""
    token = action.strip().lower()
    if token in _ACTION_ALIASES:
        return _ACTION_ALIASES[token]
    try:
        return CommandType(token)
    except ValueError:
        return None


def command_from_intent(intent: VoiceIntent, settings: RuleSettings = DEFAULT_RULES) -> Command | None:
    """
    Convert a classifier verdict into a command.

    Returns None when the action is "unknown", is not a known action token,
    or the confidence is below the configured minimum.
    """
    if intent.action == UNKNOWN_ACTION:
        logger.info("voice intent ignored", reason="unknown", confidence=intent.confidence)
        return None
    if intent.confidence < settings.min_intent_confidence:
        logger.info("voice intent ignored", reason="low_confidence", action=intent.action, confidence=intent.confidence)
        return None
    command_type = parse_action(intent.action)
    if command_type is None:
        logger.warning("voice intent ignored", reason="unrecognised_action", action=intent.action)
        return None
    return Command(type=command_type)
