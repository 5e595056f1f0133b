"""Per-session handshake state.

A router starts UNINITIALIZED, moves to INITIALIZING on ``initialize`` and
to READY on ``notifications/initialized``. Teardown moves it to SHUTDOWN,
after which nothing is served.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Answered when the client's initialize carries no protocolVersion
MCP_PROTOCOL_VERSION = "2024-11-05"


class LifecycleState(Enum):
    """Handshake states of one router."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTDOWN = "shutdown"


class ProtocolError(Exception):
    """Raised when a message arrives in a state that forbids it."""

    pass


def _default_server_info() -> dict[str, str]:
    return {"name": "mcp-widget-server", "version": "0.0.0"}


def _widget_capabilities() -> dict[str, Any]:
    return {"tools": {}, "resources": {}}


@dataclass
class LifecycleManager:
    """Handshake bookkeeping for one session's router.

    The handshake is advisory: every state but SHUTDOWN serves discovery
    and tool calls.
    """

    server_info: dict[str, str] = field(default_factory=_default_server_info)
    capabilities: dict[str, Any] = field(default_factory=_widget_capabilities)
    state: LifecycleState = LifecycleState.UNINITIALIZED
    client_info: dict[str, str] | None = None
    client_capabilities: dict[str, Any] | None = None

    @property
    def is_ready(self) -> bool:
        return self.state == LifecycleState.READY

    @property
    def is_shutdown(self) -> bool:
        return self.state == LifecycleState.SHUTDOWN

    def require_open(self) -> None:
        """Raise ProtocolError once the router has been torn down."""
        if self.is_shutdown:
            raise ProtocolError("Session router is shut down")

    def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Answer ``initialize``.

        The client's requested protocol version is echoed back unchanged.

        Args:
            params: The request's params object.

        Returns:
            Result with protocolVersion, capabilities and serverInfo.

        Raises:
            ProtocolError: On a second initialize or after shutdown.
        """
        self.require_open()
        if self.state != LifecycleState.UNINITIALIZED:
            raise ProtocolError("Server already initialized")

        self.client_info = params.get("clientInfo")
        self.client_capabilities = params.get("capabilities", {})
        self.state = LifecycleState.INITIALIZING

        return {
            "protocolVersion": params.get("protocolVersion") or MCP_PROTOCOL_VERSION,
            "capabilities": self.capabilities,
            "serverInfo": self.server_info,
        }

    def handle_initialized(self) -> None:
        """Complete the handshake.

        Raises:
            ProtocolError: Unless an initialize is pending.
        """
        if self.state != LifecycleState.INITIALIZING:
            raise ProtocolError("Server not initializing")
        self.state = LifecycleState.READY

    def handle_shutdown(self) -> None:
        self.state = LifecycleState.SHUTDOWN
