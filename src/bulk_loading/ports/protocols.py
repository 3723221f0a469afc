"""Protocol definitions for the bulk loading bounded context.

These protocols define the contracts between the loader and its
collaborators (connection pool, schema validator, staging store), allowing
infrastructure to be swapped or faked in tests.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from bulk_loading.domain.value_objects import (
    EntityRole,
    PropertyRecord,
    Statement,
    Violation,
)


@runtime_checkable
class ConnectionHandle(Protocol):
    """A connection capable of executing statements and ending transactions."""

    @property
    def closed(self) -> bool:
        """Whether the connection has been closed or broken."""
        ...

    def execute(
        self, statement: Any, params: Sequence[Any] | None = None
    ) -> list[tuple[Any, ...]]:
        """Execute a statement and return its result rows."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


class ConnectionPoolProtocol(Protocol):
    """Source of connection handles. Lifecycle is acquire/release."""

    def acquire(self) -> ConnectionHandle:
        """Acquire a handle. Raises DatabaseConnectionError on failure."""
        ...

    def release(self, handle: ConnectionHandle) -> None:
        """Return a handle to the pool."""
        ...


class StatementExecutor(Protocol):
    """Anything that can run a statement inside the current unit of work."""

    def execute(
        self,
        statement: Statement | str,
        params: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute a statement and return its result rows."""
        ...


class SchemaValidator(Protocol):
    """Validates vertex and edge records against a declared schema."""

    def validate(self, type_name: str, record: Mapping[str, Any]) -> list[Violation]:
        """Return the record's violations. An empty list means valid."""
        ...


class StagingStore(Protocol):
    """Durable key/value side table the Cypher statements read from."""

    def key_for(
        self, namespace: str, role: EntityRole, type_name: str, batch_index: int
    ) -> str:
        """Build the staging key for one batch of one type in a load."""
        ...

    def ensure_installed(self, executor: StatementExecutor) -> bool:
        """Create the table and retrieval function if needed; True when DDL ran."""
        ...

    def put(
        self,
        executor: StatementExecutor,
        key: str,
        value: Sequence[PropertyRecord],
    ) -> None:
        """Stage ``value`` under ``key``, replacing any previous value."""
        ...

    def get(self, executor: StatementExecutor, key: str) -> list[Any]:
        """Return the staged value, or an empty list when the key is absent."""
        ...

    def delete(self, executor: StatementExecutor, key: str) -> None:
        """Remove a staged entry. Missing keys are not an error."""
        ...

    def purge(self, executor: StatementExecutor, namespace: str) -> int:
        """Remove every entry staged by a load. Returns the number removed."""
        ...
