"""Widget definitions, schemas and compilation."""

from mcp_widget_server.widgets.base import (
    ResourceDefinition,
    ResourceTemplateDefinition,
    ToolDefinition,
    WidgetDefinition,
    WidgetHandler,
    WidgetHandlerResult,
    WidgetMeta,
    WidgetMetaOptions,
)
from mcp_widget_server.widgets.compiler import (
    WidgetConfigError,
    compile_widgets,
    generate_asset_hash,
    generate_widget_html,
    generate_widget_meta,
)
from mcp_widget_server.widgets.dispatcher import (
    ResourceNotFoundError,
    ToolExecutionError,
    ToolNotFoundError,
    WidgetDispatcher,
)
from mcp_widget_server.widgets.schema import ArgumentValidationError, ObjectSchema, to_json_schema

__all__ = [
    "ArgumentValidationError",
    "ObjectSchema",
    "ResourceDefinition",
    "ResourceNotFoundError",
    "ResourceTemplateDefinition",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolNotFoundError",
    "WidgetConfigError",
    "WidgetDefinition",
    "WidgetDispatcher",
    "WidgetHandler",
    "WidgetHandlerResult",
    "WidgetMeta",
    "WidgetMetaOptions",
    "compile_widgets",
    "generate_asset_hash",
    "generate_widget_html",
    "generate_widget_meta",
    "to_json_schema",
]
