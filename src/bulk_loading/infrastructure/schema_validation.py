"""Record validation against a declared GraphSchema."""

from __future__ import annotations

from typing import Any, Mapping

from bulk_loading.domain.value_objects import (
    EDGE_ENDPOINT_KEYS,
    GraphSchema,
    PropertyDefinition,
    PropertyType,
    Violation,
)


def _matches(value: Any, expected: PropertyType) -> bool:
    # bool is an int subclass, so it is excluded from the numeric types
    if expected is PropertyType.ANY:
        return True
    if expected is PropertyType.STRING:
        return isinstance(value, str)
    if expected is PropertyType.BOOLEAN:
        return isinstance(value, bool)
    if expected is PropertyType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected is PropertyType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected is PropertyType.ARRAY:
        return isinstance(value, (list, tuple))
    if expected is PropertyType.OBJECT:
        return isinstance(value, Mapping)
    return False


class GraphSchemaValidator:
    """Checks records for unknown types, missing required properties and
    values of the wrong declared type.

    Properties not declared by the schema are allowed.
    """

    def __init__(self, schema: GraphSchema):
        self._schema = schema

    def validate(self, type_name: str, record: Mapping[str, Any]) -> list[Violation]:
        if type_name in self._schema.vertices:
            definitions = self._schema.vertices[type_name].properties
            return self._check_properties(record, definitions)
        if type_name in self._schema.edges:
            violations = [
                Violation(path=endpoint, message="edge endpoint is required")
                for endpoint in sorted(EDGE_ENDPOINT_KEYS)
                if record.get(endpoint) is None
            ]
            definitions = self._schema.edges[type_name].properties
            return violations + self._check_properties(record, definitions)
        return [Violation(path="", message=f"Unknown type '{type_name}'")]

    @staticmethod
    def _check_properties(
        record: Mapping[str, Any],
        definitions: Mapping[str, PropertyDefinition],
    ) -> list[Violation]:
        violations: list[Violation] = []
        for name, definition in definitions.items():
            value = record.get(name)
            if value is None:
                if definition.required:
                    violations.append(
                        Violation(path=name, message="required property is missing")
                    )
                continue
            if not _matches(value, definition.type):
                violations.append(
                    Violation(
                        path=name,
                        message=(
                            f"expected {definition.type.value}, "
                            f"got {type(value).__name__}"
                        ),
                    )
                )
        return violations
