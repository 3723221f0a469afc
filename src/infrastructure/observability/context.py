"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures load-scoped metadata that should be included with all
    instrumentation events, so events from one load can be correlated.

    Attributes:
        load_id: Namespace of the load operation (also the staging key prefix).
        graph_name: Name of the graph being loaded into (if applicable).
        transaction_id: Identifier of the transaction (if applicable).
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(load_id="3f2a9c0d1e4b5a6c", graph_name="social")
        probe = DefaultBulkLoadProbe().with_context(context)
    """

    load_id: str | None = None
    graph_name: str | None = None
    transaction_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.load_id is not None:
            result["load_id"] = self.load_id
        if self.graph_name is not None:
            result["graph_name"] = self.graph_name
        if self.transaction_id is not None:
            result["transaction_id"] = self.transaction_id
        result.update(self.extra)
        return result

    def with_graph(self, graph_name: str) -> ObservationContext:
        """Create a new context with the graph name set."""
        return ObservationContext(
            load_id=self.load_id,
            graph_name=graph_name,
            transaction_id=self.transaction_id,
            extra=self.extra,
        )

    def with_transaction(self, transaction_id: str) -> ObservationContext:
        """Create a new context with the transaction id set."""
        return ObservationContext(
            load_id=self.load_id,
            graph_name=self.graph_name,
            transaction_id=transaction_id,
            extra=self.extra,
        )

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return ObservationContext(
            load_id=self.load_id,
            graph_name=self.graph_name,
            transaction_id=self.transaction_id,
            extra={**self.extra, **kwargs},
        )
