"""JSON handlers of the tracker HTTP API.

Handlers raise tracker errors; app.py maps them to status codes. Record
bodies are returned in their camelCase wire form.
"""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

from hoops.logic.clock import SessionClock
from hoops.logic.exceptions import NotFoundError, RequestValidationError
from hoops.reconcile.service import reconciliation_payload
from hoops.server.types import CreateGameRequest, CreateSessionRequest, EventBatchRequest, ReconcileRequest
from shared.dal.models import GameRecord, GameStateUpdate, SessionRecord, SessionUpdate, new_record_id

if TYPE_CHECKING:
    from starlette.requests import Request

    from hoops.server.settings import TrackerServerSettings

logger = structlog.get_logger()

# Once a game is over these are owned by its end report and by reconciliation.
_GAME_END_FIELDS = frozenset({"is_active", "ended_at", "end_reason", "duration_seconds"})

# Record fields that may legitimately be cleared; an explicit null elsewhere is ignored.
_NULLABLE_FIELDS = frozenset({"paused_at", "ended_at", "end_reason", "duration_seconds"})


async def _read_body[T: BaseModel](request: Request, model: type[T]) -> T:
    settings: TrackerServerSettings = request.app.state.settings
    raw_body = await request.body()
    if len(raw_body) > settings.max_request_body_size:
        raise HTTPException(status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE, detail="Request body too large")
    try:
        body = json.loads(raw_body) if raw_body.strip() else {}
    except (ValueError, UnicodeDecodeError) as e:
        raise RequestValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise RequestValidationError("JSON body must be an object")
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(str(e)) from e


def _required_query_id(request: Request) -> str:
    session_id = request.query_params.get("id", "").strip()
    if not session_id:
        raise RequestValidationError("id query parameter is required")
    return session_id


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(by_alias=True, mode="json")


def _update_fields(update: BaseModel, *, exclude: set[str]) -> dict[str, Any]:
    fields = update.model_dump(exclude_unset=True, exclude=exclude)
    return {name: value for name, value in fields.items() if value is not None or name in _NULLABLE_FIELDS}


async def health(request: Request) -> JSONResponse:
    build = request.app.state.build
    return JSONResponse({"status": "ok", "version": build.version, "commit": build.commit})


async def create_session(request: Request) -> JSONResponse:
    """POST /api/session - register a session; re-sending the same id is harmless."""
    req = await _read_body(request, CreateSessionRequest)
    rules = request.app.state.rules
    session = SessionRecord(
        id=req.id or new_record_id(),
        duration_seconds=req.duration_seconds or rules.session_duration_seconds,
        started_at=req.started_at or request.app.state.clock(),
    )
    sessions = request.app.state.sessions
    await sessions.create_session(session)
    stored = await sessions.get_session(session.id)
    return JSONResponse(_dump(stored or session), status_code=HTTPStatus.CREATED)


async def get_session(request: Request) -> JSONResponse:
    """GET /api/session - session history, or one reconciled session with ?id=."""
    if "id" not in request.query_params:
        settings: TrackerServerSettings = request.app.state.settings
        recent = await request.app.state.sessions.get_recent_sessions(limit=settings.recent_sessions_limit)
        return JSONResponse({"sessions": [_dump(s) for s in recent]})

    result = await request.app.state.reconciler.reconcile(_required_query_id(request))
    session = result.session
    current_game = next((g for g in result.games if g.id == session.current_game_id), None)
    is_ended = session.ended_at is not None
    time_remaining = 0 if is_ended else SessionClock.from_session(session).remaining_seconds(request.app.state.clock())
    return JSONResponse(
        {
            "session": _dump(session),
            "games": [_dump(g) for g in result.games],
            "currentGame": _dump(current_game) if current_game is not None else None,
            "timeRemaining": time_remaining,
            "isEnded": is_ended,
        },
    )


async def update_session(request: Request) -> JSONResponse:
    """PUT /api/session - pause bookkeeping and the end-of-session report."""
    update = await _read_body(request, SessionUpdate)
    sessions = request.app.state.sessions
    session = await sessions.get_session(update.session_id)
    if session is None:
        raise NotFoundError(kind="session", record_id=update.session_id)

    fields = _update_fields(update, exclude={"session_id"})
    if session.ended_at is not None:
        fields.pop("ended_at", None)
    updated = session.model_copy(update=fields)
    await sessions.save_session(updated)
    return JSONResponse(_dump(updated))


async def delete_session(request: Request) -> JSONResponse:
    """DELETE /api/session?id= - remove a session with its games and events."""
    session_id = _required_query_id(request)
    if not await request.app.state.sessions.delete_session(session_id):
        raise NotFoundError(kind="session", record_id=session_id)
    logger.info("session deleted", session_id=session_id)
    return JSONResponse({"deleted": session_id})


async def create_game(request: Request) -> JSONResponse:
    """POST /api/game - register a game and make it the session's current game."""
    req = await _read_body(request, CreateGameRequest)
    sessions = request.app.state.sessions
    games = request.app.state.games
    session = await sessions.get_session(req.session_id)
    if session is None:
        raise NotFoundError(kind="session", record_id=req.session_id)

    game = GameRecord(
        id=req.id or new_record_id(),
        session_id=session.id,
        started_at=req.started_at or request.app.state.clock(),
        current_misses=request.app.state.rules.initial_misses,
    )
    await games.create_game(game)
    stored = await games.get_game(game.id) or game
    if stored.session_id != session.id:
        raise RequestValidationError(f"game {game.id} belongs to another session")
    await sessions.save_session(session.model_copy(update={"current_game_id": stored.id}))
    return JSONResponse(_dump(stored), status_code=HTTPStatus.CREATED)


async def update_game(request: Request) -> JSONResponse:
    """PUT /api/game - live-state cache sync and the end-of-game report."""
    update = await _read_body(request, GameStateUpdate)
    games = request.app.state.games
    game = await games.get_game(update.game_id)
    if game is None:
        raise NotFoundError(kind="game", record_id=update.game_id)

    fields = _update_fields(update, exclude={"game_id"})
    if not game.is_active:
        for name in fields.keys() & _GAME_END_FIELDS:
            del fields[name]
    updated = game.model_copy(update=fields)
    await games.save_games([updated])
    return JSONResponse(_dump(updated))


async def ingest_events(request: Request) -> JSONResponse:
    """PUT /api/event - append a batch to the event log; duplicates are ignored."""
    batch = await _read_body(request, EventBatchRequest)
    if not batch.events:
        return JSONResponse({"inserted": 0, "duplicates": 0})

    games = request.app.state.games
    for game_id in dict.fromkeys(e.game_id for e in batch.events):
        if await games.get_game(game_id) is None:
            raise NotFoundError(kind="game", record_id=game_id)

    inserted = await request.app.state.events.append_events(batch.events)
    return JSONResponse({"inserted": inserted, "duplicates": len(batch.events) - inserted})


async def reconcile_session(request: Request) -> JSONResponse:
    """POST /api/reconcile - rebuild a session's aggregates from its event log."""
    req = await _read_body(request, ReconcileRequest)
    result = await request.app.state.reconciler.reconcile(req.session_id)
    return JSONResponse(reconciliation_payload(result))
