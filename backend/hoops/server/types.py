"""Request bodies of the tracker HTTP API.

Bodies are camelCase on the wire; Python code uses the snake_case names.
The partial update bodies live in shared.dal.models, beside the records
they patch, because the session client sends them too.
"""

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.dal.models import ID_MAX_LENGTH, ID_PATTERN, EventRecord

_REQUEST_CONFIG = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    id: str | None = Field(default=None, min_length=1, max_length=ID_MAX_LENGTH, pattern=ID_PATTERN)
    duration_seconds: int | None = Field(default=None, ge=1, le=24 * 60 * 60)  # server rules default when omitted
    started_at: AwareDatetime | None = None


class CreateGameRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    id: str | None = Field(default=None, min_length=1, max_length=ID_MAX_LENGTH, pattern=ID_PATTERN)
    session_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH, pattern=ID_PATTERN)
    started_at: AwareDatetime | None = None


class EventBatchRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    events: list[EventRecord] = Field(max_length=500)


class ReconcileRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    session_id: str = Field(min_length=1)
