"""
Outbound boundaries of the score keeper.

TrackerTransport is what the recorder and syncer talk to; HttpTrackerTransport
implements it against the tracker HTTP API. Every failure that a later retry
may cure (connection errors, timeouts, 5xx) is raised as TransientIOError so
callers can re-queue. Client errors (4xx) are not retryable and are raised as
the matching tracker error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from hoops.logic.commands import UNKNOWN_ACTION, VoiceIntent
from hoops.logic.exceptions import NotFoundError, RequestValidationError, TransientIOError

if TYPE_CHECKING:
    from shared.dal.models import EventRecord, GameRecord, GameStateUpdate, SessionRecord, SessionUpdate

logger = structlog.get_logger()

_DEFAULT_TIMEOUT = 5.0


class TrackerTransport(ABC):
    """Abstract interface for shipping tracker records to storage."""

    @abstractmethod
    async def create_session(self, session: SessionRecord) -> None: ...

    @abstractmethod
    async def create_game(self, game: GameRecord) -> None: ...

    @abstractmethod
    async def send_events(self, events: list[EventRecord]) -> int:
        """Deliver a batch of events. Return how many were new to the server."""

    @abstractmethod
    async def update_session(self, update: SessionUpdate) -> None: ...

    @abstractmethod
    async def update_game(self, update: GameStateUpdate) -> None: ...


_SESSION_CREATE_FIELDS = {"id", "duration_seconds", "started_at"}
_GAME_CREATE_FIELDS = {"id", "session_id", "started_at"}


class HttpTrackerTransport(TrackerTransport):
    """TrackerTransport over the tracker HTTP API using httpx."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_session(self, session: SessionRecord) -> None:
        body = session.model_dump(by_alias=True, mode="json", include=_SESSION_CREATE_FIELDS)
        await self._request("POST", "/api/session", body)

    async def create_game(self, game: GameRecord) -> None:
        body = game.model_dump(by_alias=True, mode="json", include=_GAME_CREATE_FIELDS)
        await self._request("POST", "/api/game", body)

    async def send_events(self, events: list[EventRecord]) -> int:
        body = {"events": [event.model_dump(by_alias=True, mode="json") for event in events]}
        data = await self._request("PUT", "/api/event", body)
        return int(data.get("inserted", 0))

    async def update_session(self, update: SessionUpdate) -> None:
        await self._request("PUT", "/api/session", update.model_dump(by_alias=True, mode="json", exclude_unset=True))

    async def update_game(self, update: GameStateUpdate) -> None:
        await self._request("PUT", "/api/game", update.model_dump(by_alias=True, mode="json", exclude_unset=True))

    async def _request(self, method: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.RequestError as exc:
            raise TransientIOError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            raise TransientIOError(f"{method} {path} returned {response.status_code}")
        data = _json_or_empty(response)
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError(kind=data.get("kind", "record"), record_id=data.get("id", path))
        if response.status_code >= HTTPStatus.BAD_REQUEST:
            raise RequestValidationError(data.get("error", f"{method} {path} returned {response.status_code}"))
        return data


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class HttpIntentClassifier:
    """Client for the remote transcript classifier.

    The service answers {"action": str, "confidence": float}. Any failure
    degrades to an "unknown" intent so a flaky classifier never interrupts play.
    """

    def __init__(
        self,
        url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def classify(self, transcript: str) -> VoiceIntent:
        if not transcript.strip():
            return VoiceIntent(action=UNKNOWN_ACTION)
        try:
            response = await self._client.post(self._url, json={"transcript": transcript})
            response.raise_for_status()
            return VoiceIntent.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("intent classification failed", error=str(exc))
            return VoiceIntent(action=UNKNOWN_ACTION)
