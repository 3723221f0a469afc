"""Utility functions for AGE bulk loading operations.

These are pure functions with no dependencies on other bulk loading components.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from bulk_loading.exceptions import ValidationError

# Label name validation regex: only alphanumeric, underscore, must start with letter or underscore
# Max length 63 (PostgreSQL identifier limit)
_VALID_LABEL_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_MAX_LABEL_LENGTH = 63

# AGE appends a type annotation to vertex/edge/path values in text output
_AGTYPE_SUFFIX = re.compile(r"::(vertex|edge|path|numeric)$")


def validate_label_name(label: str, kind: str = "label") -> None:
    """Validate that a name is safe for use in SQL/Cypher statement text.

    Used for labels, graph names, schema and table names alike.

    Args:
        label: The name to validate
        kind: What the name is, for error messages

    Raises:
        ValidationError: If the name is empty, too long, or contains invalid characters
    """
    if not label:
        raise ValidationError(f"Invalid {kind} name: {kind} cannot be empty")

    if len(label) > _MAX_LABEL_LENGTH:
        raise ValidationError(
            f"Invalid {kind} name '{label}': exceeds maximum length of {_MAX_LABEL_LENGTH} characters"
        )

    if not _VALID_LABEL_PATTERN.match(label):
        raise ValidationError(
            f"Invalid {kind} name '{label}': must start with letter or underscore, "
            "and contain only alphanumeric characters and underscores"
        )


def compute_stable_hash(key: str) -> int:
    """Compute a stable hash for advisory lock keys.

    Uses SHA-256 to ensure consistent hashing across Python versions and processes.
    Returns a value that fits within PostgreSQL's signed 64-bit bigint range.

    Args:
        key: The string to hash (typically "graph_name:label")

    Returns:
        A stable integer hash suitable for pg_advisory_xact_lock
    """
    # First 16 hex characters are 64 bits; mask keeps the value non-negative
    hash_hex = hashlib.sha256(key.encode()).hexdigest()[:16]
    return int(hash_hex, 16) & 0x7FFFFFFFFFFFFFFF


def decode_agtype(value: Any) -> Any:
    """Decode an agtype column value returned through psycopg2.

    Without an agtype adapter registered, psycopg2 returns agtype as text.
    Scalars, lists and maps are JSON compatible once AGE's type annotation
    suffix is removed. Undecodable text is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    text = _AGTYPE_SUFFIX.sub("", value.strip())
    try:
        return json.loads(text)
    except ValueError:
        return value


def decode_count(rows: list[tuple[Any, ...]]) -> int:
    """Read the ``count(...)`` returned by a create statement."""
    if not rows:
        return 0
    decoded = decode_agtype(rows[0][0])
    try:
        return int(decoded)
    except (TypeError, ValueError):
        return 0
