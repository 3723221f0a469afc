"""Staging table access for AGE bulk loading.

Batches are written to a durable key/value table before the Cypher statement
that consumes them runs. Keys are namespaced per load so concurrent loads
never see each other's entries, and a load's entries can be purged by
namespace after it finishes, whatever its outcome.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from bulk_loading.domain.value_objects import EntityRole, PropertyRecord
from bulk_loading.exceptions import StagingError
from bulk_loading.ports.protocols import StatementExecutor
from infrastructure.database.exceptions import DatabaseConnectionError, DatabaseError

from .statements import StatementGenerator
from .utils import validate_label_name


class PostgresStagingStore:
    """Staging store backed by ``<schema>.<table>(key text, value jsonb)``.

    All methods run through the executor they are given, so staging writes
    share the load's transaction and roll back with it.
    """

    def __init__(self, generator: StatementGenerator | None = None):
        self._generator = generator or StatementGenerator()
        self._installed = False

    @property
    def generator(self) -> StatementGenerator:
        return self._generator

    @property
    def qualified_table(self) -> str:
        return self._generator.layout.qualified_table

    def key_for(
        self, namespace: str, role: EntityRole, type_name: str, batch_index: int
    ) -> str:
        """Build ``{namespace}_{role}_{TypeName}_{batchIndex}``."""
        validate_label_name(type_name)
        if batch_index < 0:
            raise StagingError(f"Batch index must not be negative, got {batch_index}")
        return f"{namespace}_{EntityRole(role).value}_{type_name}_{batch_index}"

    def ensure_installed(self, executor: StatementExecutor) -> bool:
        """Create the staging schema, table and retrieval function once.

        Returns:
            True if the DDL ran, False if this store had already installed it

        Raises:
            StagingError: If the DDL fails
        """
        if self._installed:
            return False
        for statement in self._generator.install_statements():
            self._run(executor, statement, key=None, action="install staging table")
        self._installed = True
        return True

    def put(
        self,
        executor: StatementExecutor,
        key: str,
        value: Sequence[PropertyRecord],
    ) -> None:
        """Upsert the batch under ``key``.

        Raises:
            StagingError: If the value cannot be serialised or the write fails
        """
        try:
            statement = self._generator.staging_statement(key, value)
        except (TypeError, ValueError) as e:
            raise StagingError(f"Cannot serialise staged batch: {e}", key=key) from e
        self._run(executor, statement, key=key, action="stage batch")

    def get(self, executor: StatementExecutor, key: str) -> list[Any]:
        """Read back a staged batch; an absent key yields an empty list."""
        rows = self._run(
            executor, self._generator.fetch_statement(key), key=key, action="read batch"
        )
        if not rows:
            return []
        value = rows[0][0]
        if isinstance(value, (str, bytes)):
            try:
                value = json.loads(value)
            except ValueError as e:
                raise StagingError(f"Staged value is not valid JSON: {e}", key=key) from e
        return value if isinstance(value, list) else []

    def delete(self, executor: StatementExecutor, key: str) -> None:
        self._run(
            executor, self._generator.delete_statement(key), key=key, action="delete batch"
        )

    def purge(self, executor: StatementExecutor, namespace: str) -> int:
        """Delete every entry of a load namespace and return how many went."""
        rows = self._run(
            executor,
            self._generator.purge_statement(namespace),
            key=None,
            action=f"purge namespace {namespace}",
        )
        if not rows:
            return 0
        return int(rows[0][0])

    def _run(
        self,
        executor: StatementExecutor,
        statement: Any,
        *,
        key: str | None,
        action: str,
    ) -> list[tuple[Any, ...]]:
        try:
            return executor.execute(statement)
        except DatabaseConnectionError:
            raise
        except DatabaseError as e:
            raise StagingError(f"Failed to {action}: {e}", key=key) from e
