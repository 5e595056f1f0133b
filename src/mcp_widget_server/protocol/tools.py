"""MCP tools/list and tools/call handlers.

Handles tool-related MCP requests, routing them through the widget
dispatcher and shaping results for the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp_widget_server.widgets.dispatcher import WidgetDispatcher


@dataclass
class ToolsListResult:
    """Result of tools/list request."""

    tools: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/list result format.
        """
        return {"tools": self.tools}


@dataclass
class ToolsCallResult:
    """Result of tools/call request."""

    text: str
    meta: dict[str, Any]
    structured_content: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        ``structuredContent`` is left out when the handler returned no data.

        Returns:
            Dictionary in MCP tools/call result format.
        """
        result: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content
        result["_meta"] = self.meta
        return result


class ToolsHandler:
    """Handles tools/list and tools/call MCP requests.

    Errors from the dispatcher propagate to the caller, which maps them
    to JSON-RPC error responses.
    """

    def __init__(self, dispatcher: WidgetDispatcher) -> None:
        """Initialize the handler.

        Args:
            dispatcher: Widget dispatcher for routing calls.
        """
        self._dispatcher = dispatcher

    def handle_list(self) -> ToolsListResult:
        """Handle tools/list request.

        Returns:
            ToolsListResult with one tool per widget.
        """
        return ToolsListResult(tools=self._dispatcher.list_tools())

    async def handle_call(self, name: str, arguments: dict[str, Any] | None) -> ToolsCallResult:
        """Handle tools/call request.

        Args:
            name: Name of the tool to call.
            arguments: Tool arguments.

        Returns:
            ToolsCallResult with the handler's text and data.
        """
        widget, result = await self._dispatcher.call_tool(name, arguments)
        return ToolsCallResult(
            text=result.text,
            structured_content=result.data,
            meta=widget.meta,
        )
