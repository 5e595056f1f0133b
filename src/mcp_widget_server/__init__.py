"""MCP widget server: tools that render UI widgets, served over SSE."""

__version__ = "0.1.0"
