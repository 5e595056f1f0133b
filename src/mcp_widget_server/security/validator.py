"""Argument validation and path containment.

Provides JSON Schema validation for tool arguments and the path
containment check used before serving files from disk.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable summary.
            errors: Per-field failures as ``{"field", "message"}`` dicts.
        """
        super().__init__(message)
        self.errors = errors or []


def _error_field(error: Any) -> str:
    """Build a dotted field name from a jsonschema error."""
    path = [str(p) for p in error.absolute_path]
    # Missing required properties report the parent path only
    if error.validator == "required" and isinstance(error.instance, dict):
        for name in error.validator_value:
            if name not in error.instance and f"'{name}'" in error.message:
                path.append(name)
                break
    return ".".join(path) if path else "root"


def validate_arguments(schema: dict[str, Any], arguments: Any) -> list[dict[str, str]]:
    """Validate arguments against a JSON Schema.

    Args:
        schema: JSON Schema (Draft 2020-12) describing the arguments.
        arguments: Value to validate.

    Returns:
        List of ``{"field", "message"}`` failures, empty when valid.

    Raises:
        ValidationError: If the schema itself is invalid.
    """
    try:
        Draft202012Validator.check_schema(schema)
        validator = Draft202012Validator(schema)
        errors = sorted(
            validator.iter_errors(arguments), key=lambda e: [str(p) for p in e.absolute_path]
        )
    except SchemaError as e:
        raise ValidationError(f"Invalid schema: {e.message}") from e

    return [{"field": _error_field(error), "message": error.message} for error in errors]


def contained_path(relative_path: str, base_dir: Path) -> Path | None:
    """Resolve a relative path inside a base directory.

    The containment check runs on the resolved path, so ``..`` segments
    and symlinks pointing outside the base directory are rejected.

    Args:
        relative_path: Path requested by the client.
        base_dir: Directory the path must stay inside.

    Returns:
        Resolved absolute path, or None if it escapes the base directory.
    """
    # Null bytes make the OS calls fail
    if "\x00" in relative_path:
        return None

    base_resolved = base_dir.resolve()
    try:
        resolved = (base_resolved / relative_path).resolve()
    except (OSError, ValueError):
        return None

    base_str = str(base_resolved)
    resolved_str = str(resolved)
    if resolved_str != base_str and not resolved_str.startswith(base_str.rstrip(os.sep) + os.sep):
        return None

    return resolved
