"""Observability protocols for the bulk loading bounded context.

Defines protocols for domain probes that can be implemented by infrastructure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class BulkLoadProbe(Protocol):
    """Domain probe for bulk load observability.

    This probe captures domain-significant events of a load operation:
    its start and end, batches applied or failed, records and types skipped,
    and staging housekeeping.
    """

    def load_started(
        self,
        vertex_types: int,
        edge_types: int,
        total_records: int,
    ) -> None:
        """Record that a load operation started.

        Args:
            vertex_types: Number of vertex types in the input
            edge_types: Number of edge types in the input
            total_records: Number of vertex and edge records in the input
        """
        ...

    def load_completed(
        self,
        success: bool,
        vertex_count: int,
        edge_count: int,
        error_count: int,
        warning_count: int,
        duration_ms: float,
    ) -> None:
        """Record that a load operation finished, successfully or not."""
        ...

    def batch_loaded(
        self,
        role: str,
        type_name: str,
        batch_number: int,
        record_count: int,
        created_count: int,
        duration_ms: float,
    ) -> None:
        """Record that a batch was staged and executed.

        Args:
            role: "vertex" or "edge"
            type_name: The vertex or edge type
            batch_number: 1-based batch number within the type
            record_count: Records in the batch
            created_count: Entities the create statement reported
            duration_ms: Time taken to stage and execute the batch
        """
        ...

    def batch_failed(
        self,
        role: str,
        type_name: str,
        batch_number: int,
        error: Exception,
    ) -> None:
        """Record that a batch failed to stage or execute."""
        ...

    def record_skipped(self, type_name: str, record_index: int, reason: str) -> None:
        """Record that an invalid record was skipped."""
        ...

    def type_skipped(self, type_name: str, reason: str) -> None:
        """Record that a whole type was skipped."""
        ...

    def load_cancelled(self, type_name: str | None, batch_number: int | None) -> None:
        """Record that the caller's abort signal stopped the load."""
        ...

    def staging_installed(self, qualified_table: str) -> None:
        """Record that the staging table and retrieval function are in place."""
        ...

    def staging_purged(self, namespace: str, deleted: int) -> None:
        """Record that a load's staging entries were removed."""
        ...

    def staging_purge_failed(self, namespace: str, error: Exception) -> None:
        """Record that removing a load's staging entries failed."""
        ...

    def progress_callback_failed(self, error: Exception) -> None:
        """Record that the caller's progress callback raised."""
        ...

    def state_changed(self, state: str) -> None:
        """Record that the load moved to a new state."""
        ...

    def file_load_failed(self, path: str, reason: str) -> None:
        """Record that a GraphData file could not be turned into a load."""
        ...

    def with_context(self, context: ObservationContext) -> BulkLoadProbe:
        """Create a new probe with observation context bound."""
        ...


class TransactionProbe(Protocol):
    """Domain probe for transaction lifecycle observability."""

    def transaction_started(
        self,
        transaction_id: str,
        isolation_level: str,
        read_only: bool,
    ) -> None:
        """Record that a transaction began."""
        ...

    def transaction_committed(self, transaction_id: str, duration_ms: float) -> None:
        """Record that a transaction committed."""
        ...

    def transaction_rolled_back(self, transaction_id: str, reason: str | None) -> None:
        """Record that a transaction was rolled back."""
        ...

    def commit_failed(self, transaction_id: str, error: Exception) -> None:
        """Record that a commit failed and a rollback will be attempted."""
        ...

    def rollback_failed(self, transaction_id: str, error: Exception) -> None:
        """Record that a rollback failed."""
        ...

    def transaction_timed_out(self, transaction_id: str, timeout_seconds: float) -> None:
        """Record that a transaction exceeded its deadline."""
        ...

    def with_context(self, context: ObservationContext) -> TransactionProbe:
        """Create a new probe with observation context bound."""
        ...
