"""MCP Protocol layer for JSON-RPC communication."""

from mcp_widget_server.protocol.jsonrpc import (
    RESOURCE_NOT_FOUND,
    error_message,
    response_message,
    rpc_error,
)
from mcp_widget_server.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)
from mcp_widget_server.protocol.resources import ResourcesHandler, ResourcesReadResult
from mcp_widget_server.protocol.tools import ToolsCallResult, ToolsHandler, ToolsListResult

__all__ = [
    "LifecycleManager",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "ProtocolError",
    "RESOURCE_NOT_FOUND",
    "ResourcesHandler",
    "ResourcesReadResult",
    "ToolsCallResult",
    "ToolsHandler",
    "ToolsListResult",
    "error_message",
    "response_message",
    "rpc_error",
]
