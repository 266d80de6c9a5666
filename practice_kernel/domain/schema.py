"""
Declarative data schemas and structural validation.

Provides immutable schema definitions for JSON-shaped data (nested dicts,
lists, strings, numbers, booleans, ISO dates) and a pure validator that
reports every structural problem it finds.  This is part of the functional
core - no I/O, no ORM.

Checks performed:
    - required properties
    - value types (bool is never accepted as a number)
    - numeric minimum / maximum
    - string minimum length, array minimum item count
    - enumerations
    - ISO 8601 date format (zero-padded YYYY-MM-DD, a real calendar date)
    - nested objects and arrays of objects or primitives
    - unexpected extra properties (unless the object allows them)

All problems are reported with code ``SCHEMA_VALIDATION``; the field path
uses dots for properties and ``[i]`` for array items.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from practice_kernel.domain.dtos import ValidationError

SCHEMA_VALIDATION = "SCHEMA_VALIDATION"

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class FieldType(str, Enum):
    """Supported value types."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"  # ISO 8601 date (YYYY-MM-DD)
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class FieldSchema:
    """
    Schema definition for a single value.

    Immutable and hashable.  ``fields`` describes the properties of an
    OBJECT; ``items`` describes the elements of an ARRAY (its ``name`` is
    ignored).
    """

    name: str
    field_type: FieldType
    required: bool = False

    # OBJECT
    fields: tuple[FieldSchema, ...] = ()
    allow_extra: bool = False

    # ARRAY
    items: FieldSchema | None = None
    min_items: int | None = None

    # NUMBER / INTEGER
    minimum: Decimal | int | None = None
    maximum: Decimal | int | None = None

    # STRING
    min_length: int | None = None

    # Enum-like constraint
    allowed_values: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.field_type == FieldType.ARRAY and self.items is None:
            raise ValueError(f"Field '{self.name}' of type ARRAY must have items")


def obj(name: str, *fields: FieldSchema, required: bool = False) -> FieldSchema:
    """Shorthand for an OBJECT schema with no extra properties allowed."""
    return FieldSchema(name, FieldType.OBJECT, required=required, fields=fields)


def number(name: str, *, required: bool = False, minimum=None, maximum=None) -> FieldSchema:
    """Shorthand for a NUMBER schema."""
    return FieldSchema(
        name, FieldType.NUMBER, required=required, minimum=minimum, maximum=maximum
    )


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _check_type(value: Any, field_type: FieldType) -> str | None:
    """Return an error fragment when ``value`` is not of ``field_type``."""
    if field_type == FieldType.STRING:
        ok = isinstance(value, str)
    elif field_type == FieldType.NUMBER:
        ok = _is_number(value)
    elif field_type == FieldType.INTEGER:
        ok = _is_number(value) and Decimal(str(value)) == Decimal(str(value)).to_integral_value()
    elif field_type == FieldType.BOOLEAN:
        ok = isinstance(value, bool)
    elif field_type == FieldType.DATE:
        if isinstance(value, str):
            if not _ISO_DATE.fullmatch(value):
                return 'must match format "date"'
            try:
                date.fromisoformat(value)
            except ValueError:
                return 'must match format "date"'
            return None
        ok = isinstance(value, date) and not isinstance(value, datetime)
    elif field_type == FieldType.OBJECT:
        ok = isinstance(value, dict)
    elif field_type == FieldType.ARRAY:
        ok = isinstance(value, list)
    else:
        ok = False
    if ok:
        return None
    return f"must be {field_type.value} (got {_type_name(value)})"


def _validate_value(
    value: Any,
    schema: FieldSchema,
    path: str,
    errors: list[tuple[str, str]],
) -> None:
    type_problem = _check_type(value, schema.field_type)
    if type_problem:
        errors.append((path, type_problem))
        return

    if schema.field_type in (FieldType.NUMBER, FieldType.INTEGER):
        amount = Decimal(str(value))
        if schema.minimum is not None and amount < Decimal(str(schema.minimum)):
            errors.append((path, f"must be >= {schema.minimum}"))
        if schema.maximum is not None and amount > Decimal(str(schema.maximum)):
            errors.append((path, f"must be <= {schema.maximum}"))

    if schema.field_type == FieldType.STRING and schema.min_length is not None:
        if len(value) < schema.min_length:
            errors.append(
                (path, f"must NOT have fewer than {schema.min_length} characters")
            )

    if schema.allowed_values is not None and value not in schema.allowed_values:
        errors.append(
            (path, f"must be one of: {', '.join(schema.allowed_values)}")
        )

    if schema.field_type == FieldType.OBJECT:
        known = {f.name for f in schema.fields}
        for child in schema.fields:
            child_path = _join(path, child.name)
            if child.name not in value:
                if child.required:
                    errors.append(
                        (child_path, f"must have required property '{child.name}'")
                    )
                continue
            _validate_value(value[child.name], child, child_path, errors)
        if not schema.allow_extra:
            for key in value:
                if key not in known:
                    errors.append(
                        (_join(path, str(key)), "must NOT have additional properties")
                    )

    if schema.field_type == FieldType.ARRAY and schema.min_items is not None:
        if len(value) < schema.min_items:
            errors.append((path, f"must NOT have fewer than {schema.min_items} items"))

    if schema.field_type == FieldType.ARRAY and schema.items is not None:
        for i, item in enumerate(value):
            _validate_value(item, schema.items, f"{path}[{i}]", errors)


def validate_against_schema(
    data: Any,
    schema: FieldSchema,
    section: str | None = None,
) -> list[ValidationError]:
    """
    Validate ``data`` against ``schema`` and return every problem found.

    Never raises for invalid data.  Each error's ``field`` is the dotted path
    of the offending value, or ``section`` (falling back to the schema name)
    for problems with the root value itself.
    """
    problems: list[tuple[str, str]] = []
    _validate_value(data, schema, "", problems)

    root = section or schema.name
    errors: list[ValidationError] = []
    for path, problem in problems:
        field_path = path or root
        errors.append(
            ValidationError(
                field=field_path,
                message=f"{field_path} {problem}",
                code=SCHEMA_VALIDATION,
                section=section,
            )
        )
    return errors
