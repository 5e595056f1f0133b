"""MCP resources/list, resources/templates/list and resources/read handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp_widget_server.widgets.base import WIDGET_MIME_TYPE
from mcp_widget_server.widgets.dispatcher import WidgetDispatcher


@dataclass
class ResourcesReadResult:
    """Result of resources/read request."""

    uri: str
    html: str
    meta: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format."""
        return {
            "contents": [
                {
                    "uri": self.uri,
                    "mimeType": WIDGET_MIME_TYPE,
                    "text": self.html,
                    "_meta": self.meta,
                }
            ]
        }


class ResourcesHandler:
    """Handles resource-related MCP requests for widget markup."""

    def __init__(self, dispatcher: WidgetDispatcher) -> None:
        self._dispatcher = dispatcher

    def handle_list(self) -> dict[str, Any]:
        return {"resources": self._dispatcher.list_resources()}

    def handle_list_templates(self) -> dict[str, Any]:
        return {"resourceTemplates": self._dispatcher.list_resource_templates()}

    def handle_read(self, uri: str) -> ResourcesReadResult:
        """Handle resources/read request.

        Raises:
            ResourceNotFoundError: If no widget has this URI.
        """
        widget = self._dispatcher.read_resource(uri)
        return ResourcesReadResult(uri=widget.template_uri, html=widget.html, meta=widget.meta)
