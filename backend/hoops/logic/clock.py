"""
Session clock arithmetic.

The clock is a frozen value computed from timestamps only; there is no
background ticker. Expiry is discovered lazily whenever the clock is read,
which lets a session be found expired on first access after going offline.

    elapsed   = (paused ? paused_at : now) - started_at - total_paused
    remaining = floor(max(0, duration - elapsed) / 1s)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from hoops.logic.settings import DEFAULT_RULES, RuleSettings

if TYPE_CHECKING:
    from shared.dal.models import SessionRecord

_ONE_MS = timedelta(milliseconds=1)
MS_PER_SECOND = 1000


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_ms(delta: timedelta) -> int:
    """Convert a timedelta to whole milliseconds (floored)."""
    return delta // _ONE_MS


class SessionClock(BaseModel):
    """Timing state of one session."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    duration_seconds: int = Field(default=DEFAULT_RULES.session_duration_seconds, ge=1)
    is_paused: bool = False
    paused_at: datetime | None = None
    total_paused_ms: int = Field(default=0, ge=0)

    @classmethod
    def from_session(cls, session: SessionRecord) -> SessionClock:
        return cls(
            started_at=session.started_at,
            duration_seconds=session.duration_seconds,
            is_paused=session.is_paused,
            paused_at=session.paused_at,
            total_paused_ms=session.total_paused_ms,
        )

    @property
    def duration_ms(self) -> int:
        return self.duration_seconds * MS_PER_SECOND

    def elapsed_ms(self, now: datetime) -> int:
        reference = self.paused_at if self.is_paused and self.paused_at is not None else now
        return to_ms(reference - self.started_at) - self.total_paused_ms

    def remaining_seconds(self, now: datetime) -> int:
        remaining_ms = max(0, self.duration_ms - self.elapsed_ms(now))
        return remaining_ms // MS_PER_SECOND

    def is_expired(self, now: datetime) -> bool:
        return self.elapsed_ms(now) >= self.duration_ms

    def pause(self, now: datetime) -> SessionClock:
        if self.is_paused:
            return self
        return self.model_copy(update={"is_paused": True, "paused_at": now})

    def resume(self, now: datetime) -> SessionClock:
        if not self.is_paused:
            return self
        paused_for = to_ms(now - self.paused_at) if self.paused_at is not None else 0
        return self.model_copy(
            update={
                "is_paused": False,
                "paused_at": None,
                "total_paused_ms": self.total_paused_ms + max(0, paused_for),
            },
        )

    def expected_end(self) -> datetime:
        """Instant at which the timer runs out given the pauses recorded so far."""
        return self.started_at + timedelta(milliseconds=self.duration_ms + self.total_paused_ms)

    def backfill_end(self, last_event_at: datetime | None = None) -> datetime:
        """
        Reproducible end timestamp for a session discovered expired after the fact.

        Never derived from the current wall clock, so repeated reconciliation
        yields the same value.
        """
        if self.is_paused:
            if self.paused_at is not None:
                return self.paused_at
            if last_event_at is not None:
                return last_event_at
        return self.expected_end()

    def grace_deadline(self, settings: RuleSettings = DEFAULT_RULES) -> datetime:
        """End of the one-shot final shot window that opens at expiry."""
        return self.expected_end() + timedelta(seconds=settings.grace_window_seconds)

    def in_grace_window(self, now: datetime, settings: RuleSettings = DEFAULT_RULES) -> bool:
        return self.is_expired(now) and now < self.grace_deadline(settings)
