"""Database infrastructure - shared connection primitives."""

from infrastructure.database.connection_pool import (
    ConnectionPool,
    PostgresConnectionHandle,
)
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    GraphQueryError,
    QueryCanceledError,
)

__all__ = [
    "ConnectionPool",
    "DatabaseConnectionError",
    "DatabaseError",
    "GraphQueryError",
    "PostgresConnectionHandle",
    "QueryCanceledError",
]
