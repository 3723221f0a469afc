"""Database-specific exceptions shared by the loader infrastructure."""

from __future__ import annotations


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a connection cannot be obtained or is lost mid-operation."""

    pass


class GraphQueryError(DatabaseError):
    """Raised when a SQL or Cypher statement fails."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message)
        self.query = query


class QueryCanceledError(GraphQueryError):
    """Raised when the server cancelled a statement (statement_timeout)."""

    pass
