"""
String enum definitions for session tracking concepts.
"""

from enum import StrEnum


class GameMode(StrEnum):
    """Scoring mode of an active game."""

    MULTIPLIER = "multiplier"  # makes build the multiplier
    POINT = "point"  # makes spend the multiplier for points


class EventType(StrEnum):
    """Types of entries in a game's event log."""

    MAKE = "make"
    MISS = "miss"
    MODE_CHANGE = "mode_change"
    GAME_START = "game_start"
    GAME_END = "game_end"


class EndReason(StrEnum):
    """Why a game stopped accepting shots."""

    OUT_OF_MISSES = "out_of_misses"
    SESSION_ENDED = "session_ended"
    MANUAL_END = "manual_end"


class SessionPhase(StrEnum):
    """Lifecycle phase of the tracker."""

    NO_SESSION = "no_session"
    NO_GAME = "no_game"
    GAME_ACTIVE = "game_active"
    GAME_OVER = "game_over"
    SESSION_ENDED = "session_ended"


class CommandType(StrEnum):
    """Commands accepted by the score keeper (voice action tokens use the same values)."""

    START_SESSION = "start_session"
    START_GAME = "start_game"
    END_GAME = "end_game"
    END_SESSION = "end_session"
    MAKE = "make"
    MISS = "miss"
    ENTER_POINT_MODE = "enter_point_mode"
    ENTER_MULTIPLIER_MODE = "enter_multiplier_mode"
    CONTINUE_IN_POINT_MODE = "continue_in_point_mode"
    UNDO = "undo"
    PAUSE = "pause"
    RESUME = "resume"
    FINAL_MAKE = "final_make"
    FINAL_MISS = "final_miss"


# Events that bypass batching and flush the outbound queue immediately.
IMMEDIATE_FLUSH_EVENTS = frozenset({EventType.GAME_START, EventType.GAME_END, EventType.MODE_CHANGE})

# Actions that change scoring state and can be reverted with a single undo.
UNDOABLE_COMMANDS = frozenset(
    {
        CommandType.MAKE,
        CommandType.MISS,
        CommandType.ENTER_POINT_MODE,
        CommandType.ENTER_MULTIPLIER_MODE,
        CommandType.CONTINUE_IN_POINT_MODE,
    },
)
