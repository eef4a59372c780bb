"""
Bounded undo history.

Snapshots are immutable and live in a fixed-size slot array addressed by a
head index, so push and pop are O(1) and the buffer never grows. When the
buffer is full the oldest snapshot is overwritten.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from hoops.logic.settings import DEFAULT_RULES
from hoops.logic.state import ScoringState, TrackerState


class UndoSnapshot(BaseModel):
    """State restored by a single undo: the game's scoring plus session high score."""

    model_config = ConfigDict(frozen=True)

    scoring: ScoringState
    high_score: int

    @classmethod
    def capture(cls, state: TrackerState) -> UndoSnapshot:
        return cls(scoring=state.scoring, high_score=state.high_score)

    def restore(self, state: TrackerState) -> TrackerState:
        """Return state with the snapshot's scoring fields and high score put back."""
        return state.model_copy(update={"scoring": self.scoring, "high_score": self.high_score})


class UndoStack:
    """Fixed-capacity ring buffer of undo snapshots."""

    def __init__(self, capacity: int = DEFAULT_RULES.undo_capacity) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._slots: list[UndoSnapshot | None] = [None] * capacity
        self._head = 0  # index of the next free slot
        self._size = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def can_undo(self) -> bool:
        return self._size > 0

    def __len__(self) -> int:
        return self._size

    def push(self, snapshot: UndoSnapshot) -> None:
        self._slots[self._head] = snapshot
        self._head = (self._head + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    def pop(self) -> UndoSnapshot | None:
        """Remove and return the most recent snapshot, or None if empty."""
        if self._size == 0:
            return None
        self._head = (self._head - 1) % self.capacity
        snapshot = self._slots[self._head]
        self._slots[self._head] = None
        self._size -= 1
        return snapshot

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._head = 0
        self._size = 0
