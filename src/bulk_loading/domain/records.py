"""Normalisation of caller records into PropertyValue form.

Records arrive as loosely typed mappings. Before anything is staged they are
converted into the closed PropertyValue representation so the staging layer
has a single shape to serialise.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from bulk_loading.domain.value_objects import (
    EDGE_ENDPOINT_KEYS,
    PropertyRecord,
    PropertyValue,
)
from bulk_loading.exceptions import ValidationError

_VALID_PROPERTY_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_MAX_PROPERTY_LENGTH = 63


def validate_property_name(name: Any, path: str = "") -> None:
    """Check that a top-level property name can be used as a Cypher key.

    Raises:
        ValidationError: If the name is not a short identifier
    """
    location = path or str(name)
    if not isinstance(name, str) or not name:
        raise ValidationError(
            f"{location}: property name must be a non-empty string",
            violations=[f"{location}: invalid property name"],
        )
    if len(name) > _MAX_PROPERTY_LENGTH or not _VALID_PROPERTY_PATTERN.match(name):
        raise ValidationError(
            f"{location}: invalid property name '{name}'",
            violations=[f"{location}: invalid property name '{name}'"],
        )


def coerce_property_value(value: Any, path: str = "$") -> PropertyValue:
    """Convert a Python value into a PropertyValue.

    Args:
        value: Value taken from a caller record
        path: JSON-path-like location used in error messages

    Returns:
        The value as str, int, float, bool, None, list or dict

    Raises:
        ValidationError: If the value has no PropertyValue representation
    """
    # bool before int: bool is an int subclass
    if value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, Enum):
        return coerce_property_value(value.value, path)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise _invalid(path, f"non-finite number {value!r}")
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise _invalid(path, f"non-finite number {value!r}")
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        result: dict[str, PropertyValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise _invalid(path, f"map key {key!r} is not a string")
            result[key] = coerce_property_value(item, f"{path}.{key}")
        return result
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=repr) if isinstance(value, (set, frozenset)) else value
        return [
            coerce_property_value(item, f"{path}[{index}]")
            for index, item in enumerate(items)
        ]
    raise _invalid(path, f"unsupported value of type {type(value).__name__}")


def normalize_record(record: Any, path: str = "$") -> PropertyRecord:
    """Normalise a vertex record.

    Raises:
        ValidationError: If the record is not a mapping, a property name is not
            an identifier, or a value cannot be represented
    """
    if not isinstance(record, Mapping):
        raise _invalid(path, f"record must be a mapping, got {type(record).__name__}")
    normalized: PropertyRecord = {}
    for name, value in record.items():
        validate_property_name(name, f"{path}.{name}")
        normalized[name] = coerce_property_value(value, f"{path}.{name}")
    return normalized


def normalize_edge_record(record: Any, path: str = "$") -> PropertyRecord:
    """Normalise an edge record, requiring scalar ``from``/``to`` endpoints."""
    normalized = normalize_record(record, path)
    for endpoint in sorted(EDGE_ENDPOINT_KEYS):
        identifier = normalized.get(endpoint)
        if identifier is None:
            raise _invalid(f"{path}.{endpoint}", "edge endpoint is missing")
        if isinstance(identifier, bool) or not isinstance(identifier, (str, int)):
            raise _invalid(
                f"{path}.{endpoint}", "edge endpoint must be a string or integer"
            )
    return normalized


def _invalid(path: str, message: str) -> ValidationError:
    return ValidationError(f"{path}: {message}", violations=[f"{path}: {message}"])
