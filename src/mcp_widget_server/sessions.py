"""Session management.

Owns the table of live client sessions. Each session pairs one stream of
the SDK's ``SseServerTransport`` with its own router instance; nothing but
this module adds or removes entries.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlencode

import anyio
from anyio.streams.memory import MemoryObjectSendStream
from mcp.server.sse import SseServerTransport
from mcp.shared.message import SessionMessage
from starlette.types import Message, Receive, Scope, Send

from mcp_widget_server.security.audit import AuditLogger
from mcp_widget_server.server import MCPServer

logger = logging.getLogger(__name__)

RouterFactory = Callable[[], MCPServer]

# The transport names the session only in its endpoint event
_ENDPOINT_SESSION_ID = re.compile(rb"session_id=([0-9a-f]{32})")


class SessionState(Enum):
    """Session lifecycle states."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class UnknownSessionError(Exception):
    """Raised when a message names a session that is not open."""

    pass


@dataclass
class Session:
    """One live client connection and its bound router."""

    server: MCPServer
    session_id: str = ""
    state: SessionState = SessionState.CONNECTING
    write_stream: MemoryObjectSendStream[SessionMessage] | None = None
    tasks: set[asyncio.Task[None]] = field(default_factory=set)

    @property
    def pending(self) -> int:
        """Number of messages still being handled."""
        return len(self.tasks)


class SessionManager:
    """Creates, tracks and tears down sessions.

    Every way out of a session (client disconnect, transport error,
    failed handshake, shutdown) goes through ``_teardown``, which removes
    the table entry and closes the router.
    """

    def __init__(
        self,
        router_factory: RouterFactory,
        post_path: str = "/mcp/messages",
        audit_logger: AuditLogger | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            router_factory: Builds a fresh router for each session.
            post_path: Path clients POST messages to.
            audit_logger: Optional audit trail for session events.
        """
        self._router_factory = router_factory
        self._audit_logger = audit_logger
        self._sessions: dict[str, Session] = {}
        self.transport = SseServerTransport(post_path)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Session | None:
        """Return the open session with this id, if any."""
        session = self._sessions.get(session_id)
        if session is None or session.state != SessionState.OPEN:
            return None
        return session

    async def serve(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run one SSE session until either side ends it.

        The session opens when the transport sends its endpoint event and
        is torn down however the stream ends.

        Args:
            scope: ASGI scope of the GET request.
            receive: ASGI receive channel.
            send: ASGI send channel.

        Raises:
            Exception: Whatever failed in the transport, after cleanup.
        """
        session = Session(server=self._router_factory())

        async def send_and_watch(message: Message) -> None:
            if session.state == SessionState.CONNECTING and message["type"] == "http.response.body":
                match = _ENDPOINT_SESSION_ID.search(message.get("body", b""))
                if match:
                    self._open(session, match.group(1).decode("ascii"))
            await send(message)

        try:
            async with self.transport.connect_sse(scope, receive, send_and_watch) as streams:
                read_stream, session.write_stream = streams
                async for item in read_stream:
                    if isinstance(item, Exception):
                        logger.warning(
                            "Unreadable message on session %s: %s", session.session_id, item
                        )
                        continue
                    self._dispatch(session, item)
        except Exception:
            logger.exception("SSE session %s failed", session.session_id or "<pending>")
            self._teardown(session, "failed")
            raise
        finally:
            self._teardown(session, "closed")

    async def deliver(self, session_id: str, body: bytes, scope: Scope, send: Send) -> None:
        """Hand one POSTed message to the transport of an open session.

        The transport answers the POST itself: 202 once the body parses as
        JSON-RPC, 400 when it does not.

        Args:
            session_id: Session named by the client.
            body: Raw request body, already read.
            scope: ASGI scope of the POST request.
            send: ASGI send channel for the POST response.

        Raises:
            UnknownSessionError: If no open session has this id.
        """
        if self.get(session_id) is None:
            raise UnknownSessionError(f"Unknown session: {session_id}")

        forwarded = {**scope, "query_string": urlencode({"session_id": session_id}).encode()}

        async def replay() -> Message:
            return {"type": "http.request", "body": body, "more_body": False}

        try:
            await self.transport.handle_post_message(forwarded, replay, send)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Accepted, but the stream closed before the message was read
            logger.debug("Session %s closed while delivering", session_id)

    def close_session(self, session_id: str) -> None:
        """Close one session; its event stream ends."""
        session = self._sessions.get(session_id)
        if session is not None:
            self._teardown(session, "closed")

    def close_all(self) -> None:
        """Close every session (server shutdown)."""
        for session in list(self._sessions.values()):
            self._teardown(session, "closed")

    def _open(self, session: Session, session_id: str) -> None:
        session.session_id = session_id
        session.server.session_id = session_id
        session.state = SessionState.OPEN
        self._sessions[session_id] = session
        logger.info("Session %s opened (%d active)", session_id, len(self._sessions))
        if self._audit_logger:
            self._audit_logger.log_session_event(session_id, "opened")

    def _dispatch(self, session: Session, item: SessionMessage) -> None:
        # One task per message so a slow handler never blocks the stream
        task = asyncio.create_task(self._handle(session, item))
        session.tasks.add(task)
        task.add_done_callback(session.tasks.discard)

    async def _handle(self, session: Session, item: SessionMessage) -> None:
        try:
            response = await session.server.handle_message(item.message)
        except Exception:
            logger.exception("Router failed on session %s", session.session_id)
            return

        if response is None or session.state != SessionState.OPEN or session.write_stream is None:
            return
        try:
            await session.write_stream.send(SessionMessage(response))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Dropped response for closed session %s", session.session_id)

    def _teardown(self, session: Session, reason: str) -> None:
        if session.state == SessionState.CLOSED:
            return
        was_open = session.state == SessionState.OPEN
        session.state = SessionState.CLOSED

        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
        session.server.close()
        if session.write_stream is not None:
            # Ends the event stream, and with it ``serve``
            session.write_stream.close()

        if not was_open:
            logger.info("Session handshake %s", reason)
            return
        logger.info("Session %s %s (%d active)", session.session_id, reason, len(self._sessions))
        if self._audit_logger:
            self._audit_logger.log_session_event(session.session_id, reason)
