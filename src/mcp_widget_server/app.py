"""HTTP entry point.

Composes the session manager and the static asset gateway into one
Starlette application:

- ``GET <sse_path>`` opens an SSE session
- ``POST <post_path>?sessionId=<id>`` delivers one message to it
- ``/assets/<path>`` serves the frontend build
- ``/health`` and ``/ready`` report status

Everything else answers 404.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from mcp_widget_server.assets import StaticAssetGateway
from mcp_widget_server.config import ServerConfig
from mcp_widget_server.protocol.jsonrpc import MAX_MESSAGE_SIZE
from mcp_widget_server.security.audit import AuditLogger
from mcp_widget_server.server import MCPServer
from mcp_widget_server.sessions import SessionManager, UnknownSessionError
from mcp_widget_server.widgets.base import WidgetDefinition
from mcp_widget_server.widgets.compiler import compile_widgets

logger = logging.getLogger(__name__)

HealthProvider = Callable[[], dict[str, Any]]

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "content-type",
}

_RAW_CORS_HEADERS = [
    (name.lower().encode("latin-1"), value.encode("latin-1"))
    for name, value in CORS_HEADERS.items()
]


def _not_found() -> Response:
    return PlainTextResponse("Not Found", status_code=404)


def _preflight() -> Response:
    return Response(status_code=204)


class CorsSend:
    """ASGI ``send`` wrapper adding CORS headers to the response start.

    Also records whether the response has started, so a handler knows if
    it may still answer with an error.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self.started = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            message = {**message, "headers": [*message.get("headers", []), *_RAW_CORS_HEADERS]}
        await self._send(message)


StreamHandler = Callable[[Request, CorsSend], Awaitable[None]]


class StreamEndpoint:
    """Raw ASGI endpoint for handlers that write to ``send`` themselves.

    ``Route`` mounts class instances as ASGI apps instead of wrapping
    them in request/response handling.
    """

    def __init__(self, handler: StreamHandler) -> None:
        self._handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        await self._handler(request, CorsSend(send))


async def _respond(response: Response, request: Request, send: Send) -> None:
    await response(request.scope, request.receive, send)


class WidgetServer:
    """Widget server: compiled widgets, sessions and assets behind HTTP.

    Widget definitions are compiled once at construction; a bad
    definition fails here, before anything listens.
    """

    def __init__(
        self,
        config: ServerConfig,
        widgets: Iterable[WidgetDefinition],
        health_provider: HealthProvider | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Server configuration.
            widgets: Widget definitions to serve.
            health_provider: Optional callable returning a health snapshot
                with at least a ``status`` key.

        Raises:
            WidgetConfigError: If the widget definitions are invalid.
        """
        self.config = config
        self.widgets = compile_widgets(widgets, config.version, config.frontend_url)
        self._health_provider = health_provider

        self.audit_logger: AuditLogger | None = None
        if config.audit_log_file:
            self.audit_logger = AuditLogger(Path(config.audit_log_file))

        self.sessions = SessionManager(
            self._create_router,
            post_path=config.post_path,
            audit_logger=self.audit_logger,
        )
        self.assets = StaticAssetGateway(config.assets_dir)

        logger.info(
            "Compiled %d widgets: %s",
            len(self.widgets),
            ", ".join(widget.component for widget in self.widgets),
        )

    def _create_router(self) -> MCPServer:
        return MCPServer(
            self.widgets,
            name=self.config.name,
            version=self.config.version,
            audit_logger=self.audit_logger,
        )

    def health(self) -> dict[str, Any]:
        """Return the current health snapshot."""
        snapshot = dict(self._health_provider()) if self._health_provider else {"status": "ok"}
        snapshot["sessions"] = len(self.sessions)
        snapshot["widgets"] = [widget.component for widget in self.widgets]
        return snapshot

    async def handle_sse(self, request: Request, send: CorsSend) -> None:
        """Open a session and stream its events until it ends."""
        if request.method == "OPTIONS":
            return await _respond(_preflight(), request, send)
        if request.method != "GET":
            return await _respond(_not_found(), request, send)

        try:
            await self.sessions.serve(request.scope, request.receive, send)
        except Exception:
            if send.started:
                return
            await _respond(
                PlainTextResponse("Failed to open session", status_code=500), request, send
            )

    async def handle_post(self, request: Request, send: CorsSend) -> None:
        """Deliver one JSON-RPC message to an open session.

        The session may be named by ``sessionId`` or by ``session_id``, the
        parameter the endpoint event carries.
        """
        if request.method == "OPTIONS":
            return await _respond(_preflight(), request, send)
        if request.method != "POST":
            return await _respond(_not_found(), request, send)

        session_id = request.query_params.get("sessionId") or request.query_params.get("session_id")
        if not session_id:
            return await _respond(
                PlainTextResponse("Missing sessionId", status_code=400), request, send
            )
        if self.sessions.get(session_id) is None:
            return await _respond(
                PlainTextResponse("Unknown session", status_code=404), request, send
            )

        body = await request.body()
        if len(body) > MAX_MESSAGE_SIZE:
            return await _respond(
                PlainTextResponse("Message too large", status_code=413), request, send
            )

        try:
            await self.sessions.deliver(session_id, body, request.scope, send)
        except UnknownSessionError:
            # The stream went away while the body was being read
            await _respond(PlainTextResponse("Unknown session", status_code=404), request, send)

    async def handle_health(self, request: Request) -> Response:
        if request.method != "GET":
            return _not_found()
        return JSONResponse(self.health(), headers={"Cache-Control": "no-cache"})

    async def handle_ready(self, request: Request) -> Response:
        if request.method != "GET":
            return _not_found()
        snapshot = self.health()
        status_code = 503 if snapshot.get("status") == "down" else 200
        return JSONResponse(
            snapshot, status_code=status_code, headers={"Cache-Control": "no-cache"}
        )

    @contextlib.asynccontextmanager
    async def lifespan(self, app: Starlette) -> AsyncIterator[None]:
        logger.info(
            "%s %s serving SSE at %s, messages at %s",
            self.config.name,
            self.config.version,
            self.config.sse_path,
            self.config.post_path,
        )
        try:
            yield
        finally:
            self.sessions.close_all()
            if self.audit_logger:
                self.audit_logger.close()
            logger.info("Server stopped")

    def build_app(self) -> Starlette:
        """Build the Starlette application."""
        routes = [
            Route(self.config.sse_path, StreamEndpoint(self.handle_sse), methods=ALL_METHODS),
            Route(self.config.post_path, StreamEndpoint(self.handle_post), methods=ALL_METHODS),
            Route("/assets/{path:path}", self.assets.endpoint, methods=ALL_METHODS),
            Route("/health", self.handle_health, methods=ALL_METHODS),
            Route("/ready", self.handle_ready, methods=ALL_METHODS),
        ]
        return Starlette(routes=routes, lifespan=self.lifespan)

    def run(self) -> None:
        """Serve until interrupted."""
        uvicorn.run(
            self.build_app(),
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
