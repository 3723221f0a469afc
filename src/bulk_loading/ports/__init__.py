"""Bulk loading ports (interfaces) module.

Ports define the contracts between the loader and infrastructure.
They allow for dependency inversion, enabling the loader to remain
independent of specific implementations.
"""

from bulk_loading.ports.observability import BulkLoadProbe, TransactionProbe
from bulk_loading.ports.protocols import (
    ConnectionHandle,
    ConnectionPoolProtocol,
    SchemaValidator,
    StagingStore,
    StatementExecutor,
)

__all__ = [
    "BulkLoadProbe",
    "ConnectionHandle",
    "ConnectionPoolProtocol",
    "SchemaValidator",
    "StagingStore",
    "StatementExecutor",
    "TransactionProbe",
]
