"""Widget definition and descriptor data structures.

A widget definition is everything needed to expose one tool: its name,
input schema, async handler and presentation metadata. The server
derives protocol descriptors from it; nothing here talks to a client.

Example::

    async def show_map(args: dict[str, Any]) -> WidgetHandlerResult:
        return WidgetHandlerResult(
            text="Rendered a pizza map!",
            data={"pizzaTopping": args["pizzaTopping"]},
        )

    WidgetDefinition(
        component="pizzaz",
        title="Show Pizza Map",
        schema=obj({"pizzaTopping": string().describe("Topping to mention")}),
        handler=show_map,
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from mcp_widget_server.widgets.schema import ObjectSchema

WIDGET_MIME_TYPE = "text/html+skybridge"


@dataclass
class WidgetHandlerResult:
    """Result returned by a widget handler."""

    text: str
    data: dict[str, Any] | None = None

    @classmethod
    def from_value(cls, value: Any) -> WidgetHandlerResult:
        """Accept a result instance or a ``{"text", "data"}`` mapping.

        Raises:
            TypeError: If the value has no string ``text``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping) and isinstance(value.get("text"), str):
            return cls(text=value["text"], data=value.get("data"))
        raise TypeError(f"Handler must return text and optional data, got {type(value).__name__}")


WidgetHandler = Callable[[dict[str, Any]], Awaitable[WidgetHandlerResult | Mapping[str, Any]]]


@dataclass(frozen=True)
class WidgetMetaOptions:
    """Loading phrases and a description of what the rendered widget shows."""

    invoking: str | None = None
    invoked: str | None = None
    widget_description: str | None = None


@dataclass(frozen=True)
class WidgetDefinition:
    """Declarative description of one widget tool.

    ``html_src``, ``css_src`` and ``root_element`` are filled in by the
    compiler when left unset.
    """

    component: str
    title: str
    schema: ObjectSchema | None
    handler: WidgetHandler | None
    description: str | None = None
    html_src: str | None = None
    css_src: str | None = None
    root_element: str | None = None
    meta: WidgetMetaOptions | None = None
    annotations: dict[str, Any] | None = None
    csp: dict[str, list[str]] | None = None
    widget_domain: str | None = None


@dataclass(frozen=True)
class WidgetMeta:
    """Compiled, read-only view of a widget shared by every session."""

    component: str
    title: str
    template_uri: str
    html: str
    definition: WidgetDefinition
    input_schema: dict[str, Any]
    meta: dict[str, Any]


@dataclass
class ToolDefinition:
    """Tool advertised in ``tools/list``."""

    name: str
    description: str
    input_schema: dict[str, Any]
    title: str
    meta: dict[str, Any]
    annotations: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP tool format.

        Returns:
            Dictionary in MCP tools/list format.
        """
        tool: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "title": self.title,
            "_meta": self.meta,
        }
        if self.annotations is not None:
            tool["annotations"] = self.annotations
        return tool


@dataclass
class ResourceDefinition:
    """Resource advertised in ``resources/list``."""

    uri: str
    name: str
    description: str
    meta: dict[str, Any]
    mime_type: str = WIDGET_MIME_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
            "_meta": self.meta,
        }


@dataclass
class ResourceTemplateDefinition:
    """Resource template advertised in ``resources/templates/list``."""

    uri_template: str
    name: str
    description: str
    meta: dict[str, Any]
    mime_type: str = WIDGET_MIME_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            "uriTemplate": self.uri_template,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
            "_meta": self.meta,
        }
