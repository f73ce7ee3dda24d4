"""
Canonical Redirect Middleware.

Applies the redirect engine in front of every route.

Key behaviors:
- Requests that are already canonical pass through unchanged
- Non-canonical requests get a 301 with the canonical Location
- Query strings are carried over untouched
- A Location that cannot be rebuilt is answered with a plain 500
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp

from src.components.redirects import RedirectEngine, RedirectRewriteError, RequestView

logger = logging.getLogger(__name__)

FORWARDED_HOST_HEADER = "x-forwarded-host"


def request_view(request: Request) -> RequestView:
    """Build the engine's view of a Starlette request."""
    # Read the scope directly; request.url would choke on a malformed Host header
    scope = request.scope
    host = request.headers.get("host")
    if not host and scope.get("server"):
        server_host, port = scope["server"]
        host = f"{server_host}:{port}" if port else server_host

    return RequestView(
        scheme=scope.get("scheme", "http"),
        host=host or "",
        path=scope.get("path") or "/",
        query=scope.get("query_string", b"").decode("latin-1"),
        forwarded_hosts=tuple(request.headers.getlist(FORWARDED_HOST_HEADER)),
    )


class CanonicalRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect non-canonical requests before they reach the app."""

    def __init__(
        self,
        app: ASGIApp,
        engine: RedirectEngine | None = None,
        engine_provider: Callable[[], RedirectEngine] | None = None,
    ) -> None:
        super().__init__(app)
        if engine is None and engine_provider is None:
            raise ValueError("Either engine or engine_provider must be provided")
        self._engine = engine
        self._engine_provider = engine_provider

    @property
    def engine(self) -> RedirectEngine:
        if self._engine is not None:
            return self._engine
        assert self._engine_provider is not None
        return self._engine_provider()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        view = request_view(request)

        try:
            decision = self.engine.evaluate(view)
        except RedirectRewriteError:
            logger.exception("Redirect failed for %s%s", view.host, view.path)
            return PlainTextResponse("redirection error", status_code=500)

        if decision is None:
            return await call_next(request)

        # Location is already escaped; RedirectResponse would quote it again
        return Response(status_code=decision.status_code, headers={"location": decision.location})
