"""Widget dispatcher - routes tool calls and resource reads to widgets."""

from __future__ import annotations

from typing import Any

from mcp_widget_server.widgets.base import (
    ResourceDefinition,
    ResourceTemplateDefinition,
    ToolDefinition,
    WidgetHandlerResult,
    WidgetMeta,
)


class ToolNotFoundError(Exception):
    """Raised when a tool is not found."""

    pass


class ResourceNotFoundError(Exception):
    """Raised when a resource URI is not found."""

    pass


class ToolExecutionError(Exception):
    """Raised when a widget handler fails."""

    pass


class WidgetDispatcher:
    """Routes tool calls and resource reads to compiled widgets.

    Descriptors are built once at construction; the compiled metadata is
    shared read-only with every other dispatcher.
    """

    def __init__(self, widgets: list[WidgetMeta]) -> None:
        """Initialize the dispatcher.

        Args:
            widgets: Compiled widget metadata.
        """
        self._widgets = list(widgets)
        self._by_component = {w.component: w for w in self._widgets}
        self._by_uri = {w.template_uri: w for w in self._widgets}

        self._tools = [self._to_tool(w).to_dict() for w in self._widgets]
        self._resources = [self._to_resource(w).to_dict() for w in self._widgets]
        self._templates = [self._to_template(w).to_dict() for w in self._widgets]

    @staticmethod
    def _to_tool(widget: WidgetMeta) -> ToolDefinition:
        definition = widget.definition
        return ToolDefinition(
            name=widget.component,
            description=definition.description or definition.title,
            input_schema=widget.input_schema,
            title=definition.title,
            annotations=definition.annotations,
            meta=widget.meta,
        )

    @staticmethod
    def _resource_description(widget: WidgetMeta) -> str:
        return widget.definition.description or f"{widget.title} widget markup"

    def _to_resource(self, widget: WidgetMeta) -> ResourceDefinition:
        return ResourceDefinition(
            uri=widget.template_uri,
            name=widget.title,
            description=self._resource_description(widget),
            meta=widget.meta,
        )

    def _to_template(self, widget: WidgetMeta) -> ResourceTemplateDefinition:
        return ResourceTemplateDefinition(
            uri_template=widget.template_uri,
            name=widget.title,
            description=self._resource_description(widget),
            meta=widget.meta,
        )

    def list_tools(self) -> list[dict[str, Any]]:
        """List all widget tools in MCP format."""
        return list(self._tools)

    def list_resources(self) -> list[dict[str, Any]]:
        """List all widget resources in MCP format."""
        return list(self._resources)

    def list_resource_templates(self) -> list[dict[str, Any]]:
        """List all widget resource templates in MCP format."""
        return list(self._templates)

    def get_widget(self, name: str) -> WidgetMeta:
        """Look up a widget by tool name.

        Raises:
            ToolNotFoundError: If no widget has this component name.
        """
        widget = self._by_component.get(name)
        if widget is None:
            raise ToolNotFoundError(f"Tool not found: {name}")
        return widget

    def read_resource(self, uri: str) -> WidgetMeta:
        """Look up a widget by its template URI.

        Raises:
            ResourceNotFoundError: If no widget has this URI.
        """
        widget = self._by_uri.get(uri)
        if widget is None:
            raise ResourceNotFoundError(f"Resource not found: {uri}")
        return widget

    async def call_tool(
        self, tool_name: str, arguments: dict[str, Any] | None
    ) -> tuple[WidgetMeta, WidgetHandlerResult]:
        """Validate arguments and run the widget handler.

        Args:
            tool_name: Name of the tool to call.
            arguments: Raw arguments from the request.

        Returns:
            The widget and its handler result.

        Raises:
            ToolNotFoundError: If the tool is not registered.
            ArgumentValidationError: If the arguments fail the schema; the
                handler is not invoked.
            ToolExecutionError: If the handler raises or returns a bad result.
        """
        widget = self.get_widget(tool_name)
        definition = widget.definition

        # Raises before the handler ever runs
        args = definition.schema.parse(arguments)

        try:
            raw_result = await definition.handler(args)
        except Exception as e:
            raise ToolExecutionError(f"Tool '{tool_name}' execution failed: {e}") from e

        try:
            result = WidgetHandlerResult.from_value(raw_result)
        except TypeError as e:
            raise ToolExecutionError(f"Tool '{tool_name}' returned an invalid result: {e}") from e

        return widget, result
