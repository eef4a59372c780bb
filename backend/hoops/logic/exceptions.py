"""Typed error taxonomy for the session tracker.

Invalid gameplay transitions are not errors: the state machine reports them
as no-op transitions. The exceptions below cover request validation, missing
records, and I/O failures at the persistence and transport boundaries.
"""


class TrackerError(Exception):
    """Base exception for tracker failures surfaced to a caller."""


class RequestValidationError(TrackerError):
    """A request is missing a required identifier or carries malformed data."""


class NotFoundError(TrackerError):
    """A session or game id does not exist.

    Attributes:
        kind: Record kind that was looked up ("session" or "game").
        record_id: The id that was not found.

    """

    def __init__(self, *, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class TransientIOError(TrackerError):
    """Outbound send failed; the caller re-queues and retries on the next trigger."""


class PersistenceError(TrackerError):
    """Storage operation failed; the message carries the underlying cause."""
