"""Validation and audit helpers."""

from mcp_widget_server.security.audit import AuditLogger, SessionEvent
from mcp_widget_server.security.validator import (
    ValidationError,
    contained_path,
    validate_arguments,
)

__all__ = [
    "AuditLogger",
    "SessionEvent",
    "ValidationError",
    "contained_path",
    "validate_arguments",
]
