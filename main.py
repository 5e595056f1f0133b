#!/usr/bin/env python3
"""MCP Widget Server - Main entry point.

Serves MCP tools whose results render as UI widgets. Clients open an SSE
stream, call tools over it, and load the widget bundles from the
frontend URL or from /assets.

================================================================================
DEVELOPER GUIDE: Adding a Widget
================================================================================

1. BUILD THE FRONTEND COMPONENT
   Create src/components/<component>/ in the frontend project. The build
   emits <component>-<hash>.js and <component>-<hash>.css, where <hash> is
   derived from the frontend package.json version.

2. DEFINE THE WIDGET
   Describe the tool's input with the schema builders and write an async
   handler that returns text for the model and data for the widget.

3. REGISTER IT HERE
   Add the definition to the list passed to WidgetServer in main().

EXAMPLE: A Weather Widget
-------------------------

    from mcp_widget_server.widgets import WidgetDefinition, WidgetHandlerResult
    from mcp_widget_server.widgets.schema import obj, string

    async def show_weather(args):
        forecast = await fetch_forecast(args["city"])
        return WidgetHandlerResult(text=f"Weather for {args['city']}", data=forecast)

    weather = WidgetDefinition(
        component="weather",
        title="Show Weather",
        schema=obj({"city": string().describe("City to forecast")}),
        handler=show_weather,
    )

    server = WidgetServer(config, [*pizzaz_widgets(), weather])

NOTES
-----
- Arguments are validated before the handler runs; it never sees bad input
- Keep version_file in config/server.yaml pointing at the frontend
  package.json so asset URLs match the build
- Handler exceptions become tool errors; the session stays usable

================================================================================
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mcp_widget_server import __version__
from mcp_widget_server.app import WidgetServer
from mcp_widget_server.config import ConfigError, ServerConfig, load_config, parse_port
from mcp_widget_server.widgets.compiler import WidgetConfigError
from mcp_widget_server.widgets.pizzaz import pizzaz_widgets

logger = logging.getLogger("mcp_widget_server")


def main() -> int:
    """Run the widget server.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        description="MCP Widget Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to server config YAML file (defaults are used when omitted)",
    )
    parser.add_argument("--host", default=None, help="Interface to bind (overrides config)")
    parser.add_argument("--port", default=None, help="Port to listen on (overrides config)")
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"mcp-widget-server {__version__}",
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config) if args.config else ServerConfig.from_dict({})
        if args.host:
            config.host = args.host
        if args.port:
            config.port = parse_port(args.port)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        server = WidgetServer(config, pizzaz_widgets())
    except (WidgetConfigError, OSError) as e:
        print(f"Error loading server: {e}", file=sys.stderr)
        return 1

    logger.info("Listening on http://%s:%d%s", config.host, config.port, config.sse_path)

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130  # Standard exit code for SIGINT

    return 0


if __name__ == "__main__":
    sys.exit(main())
