"""Domain probes for bulk loading observability.

Default structlog implementations of the probes declared in
``bulk_loading.ports.observability``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class DefaultBulkLoadProbe:
    """Default implementation of BulkLoadProbe using structlog.

    Supports observation context for including load-scoped metadata
    with all log events.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultBulkLoadProbe:
        """Create a new probe with observation context bound."""
        return DefaultBulkLoadProbe(logger=self._logger, context=context)

    def load_started(
        self,
        vertex_types: int,
        edge_types: int,
        total_records: int,
    ) -> None:
        self._logger.info(
            "bulk_load_started",
            vertex_types=vertex_types,
            edge_types=edge_types,
            total_records=total_records,
            **self._get_context_kwargs(),
        )

    def load_completed(
        self,
        success: bool,
        vertex_count: int,
        edge_count: int,
        error_count: int,
        warning_count: int,
        duration_ms: float,
    ) -> None:
        log = self._logger.info if success else self._logger.error
        log(
            "bulk_load_completed",
            success=success,
            vertex_count=vertex_count,
            edge_count=edge_count,
            error_count=error_count,
            warning_count=warning_count,
            duration_ms=duration_ms,
            **self._get_context_kwargs(),
        )

    def batch_loaded(
        self,
        role: str,
        type_name: str,
        batch_number: int,
        record_count: int,
        created_count: int,
        duration_ms: float,
    ) -> None:
        self._logger.debug(
            "bulk_load_batch_loaded",
            role=role,
            type_name=type_name,
            batch_number=batch_number,
            record_count=record_count,
            created_count=created_count,
            duration_ms=duration_ms,
            **self._get_context_kwargs(),
        )

    def batch_failed(
        self,
        role: str,
        type_name: str,
        batch_number: int,
        error: Exception,
    ) -> None:
        self._logger.error(
            "bulk_load_batch_failed",
            role=role,
            type_name=type_name,
            batch_number=batch_number,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def record_skipped(self, type_name: str, record_index: int, reason: str) -> None:
        self._logger.warning(
            "bulk_load_record_skipped",
            type_name=type_name,
            record_index=record_index,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def type_skipped(self, type_name: str, reason: str) -> None:
        self._logger.warning(
            "bulk_load_type_skipped",
            type_name=type_name,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def file_load_failed(self, path: str, reason: str) -> None:
        self._logger.error(
            "bulk_load_file_failed",
            path=path,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def load_cancelled(self, type_name: str | None, batch_number: int | None) -> None:
        self._logger.warning(
            "bulk_load_cancelled",
            type_name=type_name,
            batch_number=batch_number,
            **self._get_context_kwargs(),
        )

    def staging_installed(self, qualified_table: str) -> None:
        self._logger.debug(
            "staging_table_installed",
            table=qualified_table,
            **self._get_context_kwargs(),
        )

    def staging_purged(self, namespace: str, deleted: int) -> None:
        self._logger.debug(
            "staging_entries_purged",
            namespace=namespace,
            deleted=deleted,
            **self._get_context_kwargs(),
        )

    def staging_purge_failed(self, namespace: str, error: Exception) -> None:
        self._logger.warning(
            "staging_purge_failed",
            namespace=namespace,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def progress_callback_failed(self, error: Exception) -> None:
        self._logger.warning(
            "progress_callback_failed",
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def state_changed(self, state: str) -> None:
        self._logger.debug(
            "bulk_load_state_changed",
            state=state,
            **self._get_context_kwargs(),
        )


class DefaultTransactionProbe:
    """Default implementation of TransactionProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTransactionProbe:
        """Create a new probe with observation context bound."""
        return DefaultTransactionProbe(logger=self._logger, context=context)

    def transaction_started(
        self,
        transaction_id: str,
        isolation_level: str,
        read_only: bool,
    ) -> None:
        self._logger.debug(
            "transaction_started",
            transaction_id=transaction_id,
            isolation_level=isolation_level,
            read_only=read_only,
            **self._get_context_kwargs(),
        )

    def transaction_committed(self, transaction_id: str, duration_ms: float) -> None:
        self._logger.debug(
            "transaction_committed",
            transaction_id=transaction_id,
            duration_ms=duration_ms,
            **self._get_context_kwargs(),
        )

    def transaction_rolled_back(self, transaction_id: str, reason: str | None) -> None:
        self._logger.info(
            "transaction_rolled_back",
            transaction_id=transaction_id,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def commit_failed(self, transaction_id: str, error: Exception) -> None:
        self._logger.error(
            "transaction_commit_failed",
            transaction_id=transaction_id,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def rollback_failed(self, transaction_id: str, error: Exception) -> None:
        self._logger.error(
            "transaction_rollback_failed",
            transaction_id=transaction_id,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def transaction_timed_out(self, transaction_id: str, timeout_seconds: float) -> None:
        self._logger.error(
            "transaction_timed_out",
            transaction_id=transaction_id,
            timeout_seconds=timeout_seconds,
            **self._get_context_kwargs(),
        )
