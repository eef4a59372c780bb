from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from hoops.logic.clock import utc_now
from hoops.logic.exceptions import NotFoundError, PersistenceError, RequestValidationError
from hoops.logic.settings import load_rules
from hoops.reconcile.service import ReconciliationService
from hoops.server.handlers import (
    create_game,
    create_session,
    delete_session,
    get_session,
    health,
    ingest_events,
    reconcile_session,
    update_game,
    update_session,
)
from hoops.server.middleware import BodySizeLimitMiddleware, SlashNormalizationMiddleware
from hoops.server.settings import TrackerServerSettings
from shared.build_info import read_build_info
from shared.db import Database, SqliteEventRepository, SqliteGameRepository, SqliteSessionRepository
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from datetime import datetime

    from starlette.requests import Request


async def _validation_error(_request: Request, exc: Exception) -> Response:
    return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.BAD_REQUEST)


async def _not_found(_request: Request, exc: Exception) -> Response:
    err = cast("NotFoundError", exc)
    return JSONResponse(
        {"error": str(err), "kind": err.kind, "id": err.record_id},
        status_code=HTTPStatus.NOT_FOUND,
    )


async def _persistence_error(request: Request, exc: Exception) -> Response:
    logger.error("storage failure", path=request.url.path, error=str(exc))
    return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


async def _http_error(_request: Request, exc: Exception) -> Response:
    http_exc = cast("HTTPException", exc)
    if http_exc.status_code in {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}:
        return Response(status_code=http_exc.status_code, headers=http_exc.headers)
    return JSONResponse({"error": http_exc.detail}, status_code=http_exc.status_code, headers=http_exc.headers)


def create_app(
    settings: TrackerServerSettings | None = None,
    db: Database | None = None,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = TrackerServerSettings()

    # When the app opens its own database, it owns the connection lifecycle.
    owned_db: Database | None = None
    if db is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db

    sessions = SqliteSessionRepository(db)
    games = SqliteGameRepository(db)
    events = SqliteEventRepository(db)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/api/session", create_session, methods=["POST"]),
        Route("/api/session", get_session, methods=["GET"]),
        Route("/api/session", update_session, methods=["PUT"]),
        Route("/api/session", delete_session, methods=["DELETE"]),
        Route("/api/game", create_game, methods=["POST"]),
        Route("/api/game", update_game, methods=["PUT"]),
        Route("/api/event", ingest_events, methods=["PUT"]),
        Route("/api/reconcile", reconcile_session, methods=["POST"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        if owned_db is not None:
            owned_db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            RequestValidationError: _validation_error,
            NotFoundError: _not_found,
            PersistenceError: _persistence_error,
            HTTPException: _http_error,
        },
    )
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_request_body_size)  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.state.settings = settings
    app.state.db = db
    app.state.clock = clock
    app.state.build = read_build_info()
    app.state.rules = load_rules(settings.rules_path)
    app.state.sessions = sessions
    app.state.games = games
    app.state.events = events
    app.state.reconciler = ReconciliationService(sessions, games, events, clock=clock)

    logger.info("tracker server ready", database=settings.database_path)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory hoops.server.app:get_app."""
    s = TrackerServerSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s)
