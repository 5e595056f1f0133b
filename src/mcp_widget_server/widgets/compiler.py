"""Widget metadata compiler.

Turns the raw widget definitions into read-only ``WidgetMeta`` records:
asset URLs and root element ids are defaulted, markup is rendered and the
advertised input schema is computed once.
"""

from __future__ import annotations

import dataclasses
import hashlib
import html
import json
import logging
from collections.abc import Iterable
from typing import Any

from mcp_widget_server.widgets.base import WidgetDefinition, WidgetMeta
from mcp_widget_server.widgets.schema import to_json_schema

logger = logging.getLogger(__name__)

DEFAULT_FRONTEND_URL = "http://localhost:4444"


class WidgetConfigError(Exception):
    """Raised when widget definitions cannot be served."""

    pass


def generate_asset_hash(version: str) -> str:
    """Fingerprint a version string for asset filenames.

    Must stay identical to the frontend build, which names its bundles
    ``{component}-{hash}.js``.

    Args:
        version: Release version string.

    Returns:
        First four hex characters of the SHA-256 digest.
    """
    return hashlib.sha256(version.encode("utf-8")).hexdigest()[:4]


def template_uri(component: str) -> str:
    """Return the resource URI for a widget's markup."""
    return f"ui://widget/{component}.html"


def generate_widget_html(root_element: str, html_src: str, css_src: str | None = None) -> str:
    """Render the markup that boots a widget bundle.

    Args:
        root_element: Id of the container element.
        html_src: URL of the module script.
        css_src: Optional stylesheet URL.

    Returns:
        Container, stylesheet and script tags joined by newlines.
    """
    parts = [f'<div id="{html.escape(root_element)}"></div>']

    if css_src:
        parts.append(f'<link rel="stylesheet" href="{html.escape(css_src)}">')

    parts.append(f'<script type="module" src="{html.escape(html_src)}"></script>')

    return "\n".join(parts)


def generate_widget_meta(definition: WidgetDefinition) -> dict[str, Any]:
    """Build the ``_meta`` block attached to tools, resources and results.

    Args:
        definition: Widget definition.

    Returns:
        Metadata dictionary keyed by the Apps SDK names.
    """
    options = definition.meta
    invoking = options.invoking if options else None
    invoked = options.invoked if options else None

    meta: dict[str, Any] = {
        "openai/outputTemplate": template_uri(definition.component),
        "openai/toolInvocation/invoking": invoking or f"Loading {definition.title}...",
        "openai/toolInvocation/invoked": invoked or f"Loaded {definition.title}",
        "openai/widgetAccessible": True,
        "openai/resultCanProduceWidget": True,
    }

    if options and options.widget_description:
        meta["openai/widgetDescription"] = options.widget_description
    if definition.csp is not None:
        meta["openai/widgetCSP"] = definition.csp
    if definition.widget_domain:
        meta["openai/widgetDomain"] = definition.widget_domain

    return meta


def _check_definitions(definitions: list[WidgetDefinition]) -> None:
    seen: set[str] = set()
    for definition in definitions:
        if not definition.component:
            raise WidgetConfigError("Widget component name must not be empty")
        if definition.component in seen:
            raise WidgetConfigError(f"Duplicate widget component: {definition.component}")
        seen.add(definition.component)

        if definition.schema is None or not callable(getattr(definition.schema, "parse", None)):
            raise WidgetConfigError(f"Widget '{definition.component}' has no schema")
        if definition.handler is None or not callable(definition.handler):
            raise WidgetConfigError(f"Widget '{definition.component}' has no handler")


def apply_defaults(
    definition: WidgetDefinition, asset_hash: str, frontend_url: str
) -> WidgetDefinition:
    """Fill in asset URLs and the root element id.

    Explicit values on the definition always win.
    """
    component = definition.component
    return dataclasses.replace(
        definition,
        html_src=definition.html_src or f"{frontend_url}/{component}-{asset_hash}.js",
        css_src=definition.css_src or f"{frontend_url}/{component}-{asset_hash}.css",
        root_element=definition.root_element or f"{component}-root",
    )


def compile_widgets(
    definitions: Iterable[WidgetDefinition],
    version: str,
    frontend_url: str = DEFAULT_FRONTEND_URL,
) -> list[WidgetMeta]:
    """Compile widget definitions into metadata.

    Args:
        definitions: Widget definitions, one per tool.
        version: Release version used for the asset hash.
        frontend_url: Base URL the widget bundles are served from.

    Returns:
        One ``WidgetMeta`` per definition, in input order.

    Raises:
        WidgetConfigError: On duplicate components or a missing schema/handler.
    """
    definitions = list(definitions)
    _check_definitions(definitions)

    asset_hash = generate_asset_hash(version)
    frontend_url = frontend_url.rstrip("/")

    metas = []
    for raw in definitions:
        definition = apply_defaults(raw, asset_hash, frontend_url)
        input_schema = to_json_schema(definition.schema)
        logger.debug(
            "Schema for %s: %s", definition.component, json.dumps(input_schema, indent=2)
        )
        metas.append(
            WidgetMeta(
                component=definition.component,
                title=definition.title,
                template_uri=template_uri(definition.component),
                html=generate_widget_html(
                    definition.root_element or "", definition.html_src or "", definition.css_src
                ),
                definition=definition,
                input_schema=input_schema,
                meta=generate_widget_meta(definition),
            )
        )

    return metas
