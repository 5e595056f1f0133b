"""MCP Server - the per-session request router.

Integrates the protocol components into a server answering one client.
A fresh instance is created for every session.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from mcp import types
from mcp.shared.exceptions import McpError

from mcp_widget_server.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    RESOURCE_NOT_FOUND,
    error_message,
    response_message,
    rpc_error,
)
from mcp_widget_server.protocol.lifecycle import LifecycleManager, ProtocolError
from mcp_widget_server.protocol.resources import ResourcesHandler
from mcp_widget_server.protocol.tools import ToolsHandler
from mcp_widget_server.security.audit import AuditLogger
from mcp_widget_server.widgets.base import WidgetMeta
from mcp_widget_server.widgets.dispatcher import (
    ResourceNotFoundError,
    ToolExecutionError,
    ToolNotFoundError,
    WidgetDispatcher,
)
from mcp_widget_server.widgets.schema import ArgumentValidationError

logger = logging.getLogger(__name__)


class MCPServer:
    """MCP Server implementation.

    Handles, for a single session:
    - Lifecycle management (initialize/initialized)
    - tools/list and tools/call
    - resources/list, resources/templates/list and resources/read
    """

    def __init__(
        self,
        widgets: list[WidgetMeta],
        name: str = "mcp-widget-server",
        version: str = "0.0.0",
        session_id: str = "",
        audit_logger: AuditLogger | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            widgets: Compiled widget metadata, shared read-only.
            name: Server name reported during initialize.
            version: Server version reported during initialize.
            session_id: Session this router serves, for logs and audit.
                Assigned by the session manager once the stream is open.
            audit_logger: Optional audit trail for tool calls.
        """
        self.session_id = session_id
        self._audit_logger = audit_logger

        self._lifecycle = LifecycleManager(server_info={"name": name, "version": version})
        self._dispatcher = WidgetDispatcher(widgets)
        self._tools_handler = ToolsHandler(self._dispatcher)
        self._resources_handler = ResourcesHandler(self._dispatcher)

    @property
    def closed(self) -> bool:
        return self._lifecycle.is_shutdown

    async def handle_message(self, message: types.JSONRPCMessage) -> types.JSONRPCMessage | None:
        """Handle one decoded JSON-RPC message.

        Args:
            message: Message read from the session transport.

        Returns:
            Response envelope, or None for notifications and for client
            responses, which need no answer.
        """
        match message.root:
            case types.JSONRPCRequest() as request:
                return await self._handle_request(request)
            case types.JSONRPCNotification(method=method):
                self._handle_notification(method)
            case _:
                kind = type(message.root).__name__
                logger.debug("Ignoring %s on session %s", kind, self.session_id)
        return None

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            try:
                self._lifecycle.handle_initialized()
            except ProtocolError as e:
                logger.debug("Ignoring initialized notification: %s", e)
        # Other notifications are silently ignored

    async def _handle_request(self, request: types.JSONRPCRequest) -> types.JSONRPCMessage:
        """Handle a request and return its response envelope."""
        method = request.method
        params = request.params or {}

        try:
            if method == "initialize":
                try:
                    return response_message(request.id, self._lifecycle.handle_initialize(params))
                except ProtocolError as e:
                    raise rpc_error(INTERNAL_ERROR, str(e)) from e

            try:
                self._lifecycle.require_open()
            except ProtocolError as e:
                raise rpc_error(INTERNAL_ERROR, str(e)) from e

            return response_message(request.id, await self._route(method, params))
        except McpError as e:
            return error_message(request.id, e.error)
        except Exception as e:
            logger.exception("Unexpected error handling %s", method)
            return error_message(
                request.id, types.ErrorData(code=INTERNAL_ERROR, message=f"Internal error: {e}")
            )

    async def _route(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Route a request to the appropriate handler and return its result."""
        if method == "ping":
            return {}

        elif method == "tools/list":
            return self._tools_handler.handle_list().to_dict()

        elif method == "tools/call":
            return await self._call_tool(params)

        elif method == "resources/list":
            return self._resources_handler.handle_list()

        elif method == "resources/templates/list":
            return self._resources_handler.handle_list_templates()

        elif method == "resources/read":
            uri = params.get("uri")
            if not isinstance(uri, str):
                raise rpc_error(INVALID_PARAMS, "Invalid params: uri must be a string")
            try:
                return self._resources_handler.handle_read(uri).to_dict()
            except ResourceNotFoundError as e:
                raise rpc_error(RESOURCE_NOT_FOUND, str(e), {"uri": uri}) from e

        else:
            raise rpc_error(METHOD_NOT_FOUND, f"Unknown method: {method}")

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        """Run tools/call, translating dispatcher errors to JSON-RPC errors.

        Handler failures are reported, never retried.
        """
        name = params.get("name")
        if not isinstance(name, str):
            raise rpc_error(INVALID_PARAMS, "Invalid params: name must be a string")
        arguments = params.get("arguments")

        request_id = str(uuid.uuid4())
        logger.info("CallTool %s on session %s", name, self.session_id)
        if self._audit_logger:
            self._audit_logger.log_request(
                request_id, self.session_id, name, arguments if isinstance(arguments, dict) else {}
            )

        start = time.perf_counter()
        status = "success"
        try:
            result = await self._tools_handler.handle_call(name, arguments)
            return result.to_dict()
        except ToolNotFoundError as e:
            status = "not_found"
            raise rpc_error(INVALID_PARAMS, str(e)) from e
        except ArgumentValidationError as e:
            status = "invalid"
            message = f"Invalid arguments for tool {name}"
            raise rpc_error(INVALID_PARAMS, message, e.to_dict()) from e
        except ToolExecutionError as e:
            status = "error"
            logger.error("CallTool %s failed", name, exc_info=e.__cause__ or e)
            raise rpc_error(INTERNAL_ERROR, f"Tool execution failed: {e.__cause__ or e}") from e
        finally:
            if self._audit_logger:
                duration_ms = (time.perf_counter() - start) * 1000
                self._audit_logger.log_response(request_id, status, duration_ms)

    def close(self) -> None:
        """Tear down the router; later requests are rejected."""
        self._lifecycle.handle_shutdown()

    def __enter__(self) -> MCPServer:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
