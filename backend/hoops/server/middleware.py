"""ASGI middleware for the tracker server."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


class SlashNormalizationMiddleware:
    """Strip trailing slashes so that /api/session/ is handled the same as /api/session.

    Starlette would otherwise answer the trailing-slash variant with a 307
    redirect, which fetch() turns into a second request and drops the body
    of a PUT on some clients.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path: str = scope["path"]
            if len(path) > 1 and path.endswith("/"):
                scope["path"] = path.rstrip("/")
        await self.app(scope, receive, send)


class BodySizeLimitMiddleware:
    """Reject requests whose declared Content-Length exceeds the limit with 413.

    Bodies without a Content-Length are still bounded when handlers read them.
    """

    def __init__(self, app: ASGIApp, *, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name != b"content-length":
                continue
            try:
                too_large = int(value) > self.max_body_size
            except ValueError:
                too_large = False
            if too_large:
                response = JSONResponse({"error": "Request body too large"}, status_code=413)
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)
