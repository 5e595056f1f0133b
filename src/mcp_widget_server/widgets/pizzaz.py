"""Demonstration widget set.

Each component maps to a frontend bundle built from
``src/components/<component>/``.
"""

from __future__ import annotations

from typing import Any

from mcp_widget_server.widgets.base import (
    WidgetDefinition,
    WidgetHandlerResult,
    WidgetMetaOptions,
)
from mcp_widget_server.widgets.schema import obj, string


def _pizza_handler(text: str):
    async def handler(args: dict[str, Any]) -> WidgetHandlerResult:
        return WidgetHandlerResult(text=text, data={"pizzaTopping": args["pizzaTopping"]})

    return handler


def _message_handler(text: str):
    async def handler(args: dict[str, Any]) -> WidgetHandlerResult:
        return WidgetHandlerResult(text=text, data={"message": args.get("message")})

    return handler


def _pizza_widget(
    component: str, title: str, description: str, view: str, meta: WidgetMetaOptions
) -> WidgetDefinition:
    return WidgetDefinition(
        component=component,
        title=title,
        description=description,
        schema=obj(
            {
                "pizzaTopping": string().describe(
                    f"Topping to mention when rendering the pizza {view}."
                )
            }
        ),
        handler=_pizza_handler(f"Rendered a pizza {view.rstrip('s')}!"),
        meta=meta,
    )


def pizzaz_widgets() -> list[WidgetDefinition]:
    """Return the demonstration widgets."""
    return [
        _pizza_widget(
            "pizzaz",
            "Show Pizza Map",
            "Display an interactive pizza map",
            "map",
            WidgetMetaOptions(
                invoking="Hand-tossing a map",
                invoked="Served a fresh map",
                widget_description=(
                    "Renders an interactive map showing pizza places with markers and "
                    "location details. Displays information about the selected pizza topping."
                ),
            ),
        ),
        _pizza_widget(
            "pizzaz-carousel",
            "Show Pizza Carousel",
            "Display a carousel of pizza places",
            "carousel",
            WidgetMetaOptions(
                invoking="Carousel some spots",
                invoked="Served a fresh carousel",
                widget_description=(
                    "Renders a horizontally scrollable carousel displaying pizza places "
                    "with images and details. Shows multiple locations at once for easy browsing."
                ),
            ),
        ),
        _pizza_widget(
            "pizzaz-albums",
            "Show Pizza Album",
            "Display a photo album of pizzas",
            "albums",
            WidgetMetaOptions(invoking="Hand-tossing an album", invoked="Served a fresh album"),
        ),
        _pizza_widget(
            "pizzaz-list",
            "Show Pizza List",
            "Display a list of pizza places",
            "list",
            WidgetMetaOptions(invoking="Hand-tossing a list", invoked="Served a fresh list"),
        ),
        WidgetDefinition(
            component="kaka-haha",
            title="Show Kaka Haha",
            description="Display a simple greeting message",
            schema=obj({"message": string().optional().describe("Optional message to display")}),
            handler=_message_handler("Displayed kaka haha message!"),
            meta=WidgetMetaOptions(
                invoking="Preparing kaka haha...",
                invoked="Kaka haha displayed!",
                widget_description=(
                    "Renders a simple greeting message 'kaka haha!' in large bold text "
                    "on a white background."
                ),
            ),
        ),
        WidgetDefinition(
            component="hoho-haha",
            title="Show Hoho Haha",
            description="Display the hoho haha component",
            schema=obj({"message": string().optional().describe("Optional message to display")}),
            handler=_message_handler("Hoho haha component rendered!"),
            meta=WidgetMetaOptions(
                invoking="Loading hoho haha...",
                invoked="Hoho haha displayed!",
                widget_description=(
                    "Renders a gradient component with the hoho haha title and emoji."
                ),
            ),
        ),
    ]
