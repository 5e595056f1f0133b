"""JSON-RPC envelopes for router replies.

Inbound messages arrive already decoded by the SDK's SSE transport as
``types.JSONRPCMessage``. The router answers each request with one of the
envelopes built here, and signals failures by raising ``McpError``.
"""

from __future__ import annotations

from typing import Any

from mcp import types
from mcp.shared.exceptions import McpError

METHOD_NOT_FOUND = types.METHOD_NOT_FOUND
INVALID_PARAMS = types.INVALID_PARAMS
INTERNAL_ERROR = types.INTERNAL_ERROR

# MCP code for an unknown resource URI
RESOURCE_NOT_FOUND = -32002

# Largest POST body handed to the transport
MAX_MESSAGE_SIZE = 1_048_576


def rpc_error(code: int, message: str, data: Any | None = None) -> McpError:
    """Build the exception the router raises for a failed request."""
    return McpError(types.ErrorData(code=code, message=message, data=data))


def response_message(request_id: types.RequestId, result: dict[str, Any]) -> types.JSONRPCMessage:
    """Wrap a result payload in a response envelope."""
    return types.JSONRPCMessage(types.JSONRPCResponse(jsonrpc="2.0", id=request_id, result=result))


def error_message(request_id: types.RequestId, error: types.ErrorData) -> types.JSONRPCMessage:
    """Wrap error data in an error envelope."""
    return types.JSONRPCMessage(types.JSONRPCError(jsonrpc="2.0", id=request_id, error=error))

