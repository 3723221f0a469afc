"""Exceptions for the bulk loading bounded context.

Every loader error carries the load context it happened in (phase, type,
batch, record) so it can be turned into a ``LoadErrorDetail`` for the
``LoadResult`` without losing where the failure occurred.
"""

from __future__ import annotations

from typing import ClassVar

from bulk_loading.domain.value_objects import ErrorKind, LoadErrorDetail, LoadPhase


class BulkLoadError(Exception):
    """Base exception for bulk loading operations."""

    kind: ClassVar[ErrorKind] = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        phase: LoadPhase | None = None,
        type_name: str | None = None,
        batch_number: int | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.type_name = type_name
        self.batch_number = batch_number
        self.record_index = record_index

    def to_detail(self) -> LoadErrorDetail:
        """Convert the error into an immutable result record."""
        return LoadErrorDetail(
            kind=self.kind,
            message=self.message,
            phase=self.phase,
            type_name=self.type_name,
            batch_number=self.batch_number,
            record_index=self.record_index,
        )


class ValidationError(BulkLoadError, ValueError):
    """Raised when input data or arguments are invalid.

    Record-level validation errors are recoverable when continue-on-error is
    enabled. Argument errors such as an invalid batch size are raised directly
    to the caller.
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        violations: list[str] | None = None,
        phase: LoadPhase | None = None,
        type_name: str | None = None,
        batch_number: int | None = None,
        record_index: int | None = None,
    ):
        super().__init__(
            message,
            phase=phase,
            type_name=type_name,
            batch_number=batch_number,
            record_index=record_index,
        )
        self.violations = violations or []


class StagingError(BulkLoadError):
    """Raised when writing to or reading from the staging table fails."""

    kind = ErrorKind.STAGING

    def __init__(self, message: str, *, key: str | None = None, **context):
        super().__init__(message, **context)
        self.key = key


class ExecutionError(BulkLoadError):
    """Raised when a generated statement fails to execute."""

    kind = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        statement: str | None = None,
        unresolved_endpoints: list[str] | None = None,
        **context,
    ):
        super().__init__(message, **context)
        self.statement = statement
        self.unresolved_endpoints = unresolved_endpoints or []


class TransactionError(BulkLoadError):
    """Raised on transaction misuse or driver-level transaction faults.

    Always fatal to the load.
    """

    kind = ErrorKind.TRANSACTION


class TransactionTimeoutError(TransactionError):
    """Raised when a transaction exceeds its allotted time."""

    kind = ErrorKind.TIMEOUT


class LoadCancelledError(BulkLoadError):
    """Raised when the caller's abort signal is observed between batches."""

    kind = ErrorKind.CANCELLED
