"""Input schemas for widget tools.

A schema is a closed tagged union of immutable nodes: a ``BaseField``
holding the value kind, wrapped by any number of ``OptionalField``,
``NullableField``, ``DefaultField`` and ``CoercedField`` layers. An
``ObjectSchema`` maps argument names to fields.

Two things are derived from a schema:

- the advertised JSON Schema (``to_json_schema``) sent in ``tools/list``
- the validated arguments (``ObjectSchema.parse``) handed to a widget handler

Example::

    schema = obj(
        {
            "zip_code": string().describe("Five digit ZIP code"),
            "usage_kwh": number().coerce().default(1000),
            "renewable_only": boolean().optional(),
        }
    )
"""

from __future__ import annotations

import copy
import dataclasses
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from mcp_widget_server.security.validator import validate_arguments

STRING = "string"
NUMBER = "number"
INTEGER = "integer"
BOOLEAN = "boolean"
ARRAY = "array"
OBJECT = "object"
ENUM = "enum"
ANY = "any"

# Coarse types advertised to clients; anything else is described as a string
_ADVERTISED_TYPES = {
    STRING: "string",
    NUMBER: "number",
    INTEGER: "number",
    BOOLEAN: "boolean",
    ARRAY: "array",
    OBJECT: "object",
}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}

_MISSING = object()


class ArgumentValidationError(Exception):
    """Raised when tool arguments do not satisfy the schema."""

    def __init__(self, message: str, errors: list[dict[str, str]]) -> None:
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        """Return the error payload sent back to clients."""
        return {"errors": self.errors}


class _Layer:
    """Fluent wrapping shared by every field node."""

    description: str | None

    def optional(self) -> OptionalField:
        return OptionalField(inner=self)

    def nullable(self) -> NullableField:
        return NullableField(inner=self)

    def default(self, value: Any) -> DefaultField:
        return DefaultField(inner=self, value=value)

    def coerce(self) -> CoercedField:
        return CoercedField(inner=self)

    def describe(self, description: str) -> Field:
        return dataclasses.replace(self, description=description)  # type: ignore[type-var]


@dataclass(frozen=True)
class BaseField(_Layer):
    """Innermost node holding the value kind."""

    kind: str
    description: str | None = None
    items: Field | None = None
    fields: Mapping[str, Field] | None = None
    choices: tuple[Any, ...] = ()


@dataclass(frozen=True)
class OptionalField(_Layer):
    """The argument may be omitted."""

    inner: Field | None
    description: str | None = None


@dataclass(frozen=True)
class NullableField(_Layer):
    """The argument may be null."""

    inner: Field | None
    description: str | None = None


@dataclass(frozen=True)
class DefaultField(_Layer):
    """A missing argument takes ``value``."""

    inner: Field | None
    value: Any = None
    description: str | None = None


@dataclass(frozen=True)
class CoercedField(_Layer):
    """The argument is converted towards the inner kind before validation."""

    inner: Field | None
    description: str | None = None


Field = Union[BaseField, OptionalField, NullableField, DefaultField, CoercedField]


@dataclass(frozen=True)
class ObjectSchema:
    """Object of named fields describing a tool's arguments."""

    fields: Mapping[str, Field] = field(default_factory=dict)
    description: str | None = None

    def parse(self, arguments: Any) -> dict[str, Any]:
        """Validate arguments and return the normalized copy.

        Unknown keys are dropped, defaults are filled in and coerced fields
        are converted before the result is checked.

        Args:
            arguments: Raw arguments from the request (``None`` means ``{}``).

        Returns:
            Validated arguments.

        Raises:
            ArgumentValidationError: If any field fails validation.
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ArgumentValidationError(
                "Arguments must be an object",
                [{"field": "root", "message": "Expected an object"}],
            )

        normalized = _normalize_object(self.fields, arguments)
        errors = validate_arguments(_validation_object(self.fields), normalized)
        errors.extend(_non_finite_numbers(normalized))
        if errors:
            fields = ", ".join(e["field"] for e in errors)
            raise ArgumentValidationError(f"Invalid arguments: {fields}", errors)
        return normalized


# -- builders ---------------------------------------------------------------


def string() -> BaseField:
    return BaseField(kind=STRING)


def number() -> BaseField:
    return BaseField(kind=NUMBER)


def integer() -> BaseField:
    return BaseField(kind=INTEGER)


def boolean() -> BaseField:
    return BaseField(kind=BOOLEAN)


def array(items: Field) -> BaseField:
    return BaseField(kind=ARRAY, items=items)


def enum(*choices: Any) -> BaseField:
    return BaseField(kind=ENUM, choices=tuple(choices))


def any_value() -> BaseField:
    return BaseField(kind=ANY)


def obj(fields: Mapping[str, Field] | None = None) -> ObjectSchema:
    return ObjectSchema(fields=dict(fields or {}))


def nested(fields: Mapping[str, Field]) -> BaseField:
    return BaseField(kind=OBJECT, fields=dict(fields))


# -- advertised JSON Schema -------------------------------------------------


@dataclass
class _Unwrapped:
    base: BaseField | None
    description: str | None
    is_optional: bool


def _unwrap(node: Field | None) -> _Unwrapped:
    """Peel wrapper layers until the base node is reached.

    The first non-empty description wins, searching from the outermost
    layer inwards.
    """
    description: str | None = None
    is_optional = False

    while isinstance(node, _Layer):
        if node.description and not description:
            description = node.description
        match node:
            case (
                OptionalField(inner=inner) | NullableField(inner=inner) | DefaultField(inner=inner)
            ):
                is_optional = True
                node = inner
            case CoercedField(inner=inner):
                node = inner
            case BaseField():
                return _Unwrapped(node, description, is_optional)
            case _:
                break

    return _Unwrapped(None, description, is_optional)


def to_json_schema(schema: Any) -> dict[str, Any]:
    """Describe a schema as a flat JSON Schema object for ``tools/list``.

    A property is required unless an optional, nullable or default layer
    wraps it. Anything other than an ``ObjectSchema`` yields a permissive
    object.

    Args:
        schema: Tool input schema.

    Returns:
        JSON Schema dictionary.
    """
    if not isinstance(schema, ObjectSchema):
        return {"type": "object", "properties": {}, "additionalProperties": True}

    properties: dict[str, Any] = {}
    required: list[str] = []

    for name, node in schema.fields.items():
        unwrapped = _unwrap(node)
        if unwrapped.base is None:
            continue

        prop: dict[str, Any] = {"type": _ADVERTISED_TYPES.get(unwrapped.base.kind, "string")}
        if unwrapped.description:
            prop["description"] = unwrapped.description
        properties[name] = prop

        if not unwrapped.is_optional:
            required.append(name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


# -- validation ---------------------------------------------------------------


def _validation_object(fields: Mapping[str, Field]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, node in fields.items():
        prop, is_required = _validation_field(node)
        if prop is None:
            continue
        properties[name] = prop
        if is_required:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


def _validation_field(node: Field | None) -> tuple[dict[str, Any] | None, bool]:
    """Strict JSON Schema for one field, plus whether it must be present."""
    nullable = False
    required = True

    while node is not None:
        match node:
            case OptionalField(inner=inner):
                required = False
                node = inner
            case NullableField(inner=inner):
                nullable = True
                node = inner
            case DefaultField(inner=inner):
                required = False
                node = inner
            case CoercedField(inner=inner):
                node = inner
            case BaseField():
                break
            case _:
                node = None

    if node is None:
        return None, False

    prop = _validation_base(node)
    if nullable:
        prop = {"anyOf": [prop, {"type": "null"}]}
    return prop, required


def _validation_base(base: BaseField) -> dict[str, Any]:
    if base.kind in (STRING, NUMBER, INTEGER, BOOLEAN):
        return {"type": base.kind}
    if base.kind == ENUM:
        return {"enum": list(base.choices)}
    if base.kind == ARRAY:
        if base.items is None:
            return {"type": "array"}
        items, _ = _validation_field(base.items)
        return {"type": "array", "items": items or {}}
    if base.kind == OBJECT:
        if base.fields is None:
            return {"type": "object"}
        return _validation_object(base.fields)
    return {}


def _normalize_object(fields: Mapping[str, Field], values: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for name, node in fields.items():
        value = _normalize_field(node, values.get(name, _MISSING))
        if value is not _MISSING:
            result[name] = value
    return result


def _normalize_field(node: Field | None, value: Any) -> Any:
    """Apply defaults and coercions layer by layer, outermost first."""
    while node is not None:
        match node:
            case OptionalField(inner=inner):
                if value is _MISSING:
                    return value
                node = inner
            case NullableField(inner=inner):
                if value is None:
                    return value
                node = inner
            case DefaultField(inner=inner, value=default):
                if value is _MISSING:
                    return copy.deepcopy(default)
                node = inner
            case CoercedField(inner=inner):
                base = _unwrap(inner).base
                if base is not None and value is not _MISSING:
                    value = _coerce(base.kind, value)
                node = inner
            case BaseField():
                return _normalize_base(node, value)
            case _:
                return value
    return value


def _normalize_base(base: BaseField, value: Any) -> Any:
    if base.kind == OBJECT and base.fields is not None and isinstance(value, dict):
        return _normalize_object(base.fields, value)
    if base.kind == ARRAY and base.items is not None and isinstance(value, list):
        return [_normalize_field(base.items, item) for item in value]
    return value


def _non_finite_numbers(value: Any, path: tuple[str, ...] = ()) -> list[dict[str, str]]:
    """Report NaN and infinities, which JSON cannot carry."""
    if isinstance(value, float) and not math.isfinite(value):
        return [{"field": ".".join(path) or "root", "message": f"{value} is not a finite number"}]
    if isinstance(value, dict):
        items = ((str(key), item) for key, item in value.items())
    elif isinstance(value, list):
        items = ((str(index), item) for index, item in enumerate(value))
    else:
        return []
    errors = []
    for key, item in items:
        errors.extend(_non_finite_numbers(item, (*path, key)))
    return errors


def _coerce(kind: str, value: Any) -> Any:
    """Convert a value towards ``kind``; unconvertible values pass through."""
    if kind == STRING:
        if value is None or isinstance(value, (dict, list)):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    if kind in (NUMBER, INTEGER):
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            try:
                number_value = float(text)
            except ValueError:
                return value
            if not math.isfinite(number_value):
                return value
            if number_value.is_integer() and "." not in text and "e" not in text.lower():
                return int(number_value)
            return number_value
        return value

    if kind == BOOLEAN:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value != 0
        return value

    return value
