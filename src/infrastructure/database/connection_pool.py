"""Connection pool for Apache AGE/PostgreSQL.

This module provides connection pooling using psycopg2.pool.ThreadedConnectionPool
and the connection handle the loader executes statements through.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extensions
from psycopg2 import pool as psycopg2_pool
from psycopg2 import sql

from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    GraphQueryError,
    QueryCanceledError,
)
from infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from psycopg2.extensions import connection as PsycopgConnection

    from infrastructure.settings import DatabaseSettings

# OperationalError subclasses raised by a single statement on a healthy connection
_STATEMENT_LEVEL_ERRORS = (
    psycopg2.extensions.TransactionRollbackError,
    psycopg2.errors.LockNotAvailable,
)


class PostgresConnectionHandle:
    """A pooled psycopg2 connection exposed through a narrow execute API.

    The handle never commits implicitly; transaction boundaries belong to
    whoever owns the handle. psycopg2 errors are translated at this boundary
    so callers only see infrastructure exceptions.
    """

    def __init__(
        self,
        connection: PsycopgConnection,
        probe: ConnectionProbe | None = None,
    ):
        self._connection = connection
        self._probe = probe or DefaultConnectionProbe()

    @property
    def raw_connection(self) -> PsycopgConnection:
        """Access the underlying psycopg2 connection."""
        return self._connection

    @property
    def closed(self) -> bool:
        """Whether the underlying connection has been closed or broken."""
        return bool(self._connection.closed)

    def execute(
        self,
        statement: Any,
        params: Sequence[Any] | dict[str, Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute a statement and return all result rows.

        Args:
            statement: SQL text or a psycopg2 ``sql.Composable``
            params: Optional bound parameters

        Returns:
            List of row tuples (empty for statements without a result set)

        Raises:
            QueryCanceledError: If the server cancelled the statement
            DatabaseConnectionError: If the connection failed
            GraphQueryError: For any other statement failure
        """
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(statement, params)
                if cursor.description is None:
                    return []
                return list(cursor.fetchall())
        except psycopg2.errors.QueryCanceled as e:
            query = self._query_text(statement)
            self._probe.statement_failed(statement=query, error=e)
            raise QueryCanceledError(f"Statement cancelled: {e}", query=query) from e
        except _STATEMENT_LEVEL_ERRORS as e:
            query = self._query_text(statement)
            self._probe.statement_failed(statement=query, error=e)
            raise GraphQueryError(f"Statement execution failed: {e}", query=query) from e
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            self._probe.statement_failed(statement=self._query_text(statement), error=e)
            raise DatabaseConnectionError(f"Connection failed: {e}") from e
        except psycopg2.Error as e:
            query = self._query_text(statement)
            self._probe.statement_failed(statement=query, error=e)
            raise GraphQueryError(f"Statement execution failed: {e}", query=query) from e

    def commit(self) -> None:
        """Commit the connection's current transaction."""
        try:
            self._connection.commit()
        except _STATEMENT_LEVEL_ERRORS as e:
            raise GraphQueryError(f"Commit failed: {e}", query="COMMIT") from e
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise DatabaseConnectionError(f"Commit failed: {e}") from e
        except psycopg2.Error as e:
            raise GraphQueryError(f"Commit failed: {e}", query="COMMIT") from e

    def rollback(self) -> None:
        """Roll back the connection's current transaction."""
        try:
            self._connection.rollback()
        except _STATEMENT_LEVEL_ERRORS as e:
            raise GraphQueryError(f"Rollback failed: {e}", query="ROLLBACK") from e
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise DatabaseConnectionError(f"Rollback failed: {e}") from e
        except psycopg2.Error as e:
            raise GraphQueryError(f"Rollback failed: {e}", query="ROLLBACK") from e

    def _query_text(self, statement: Any) -> str:
        if isinstance(statement, sql.Composable):
            try:
                return statement.as_string(self._connection)
            except (psycopg2.Error, TypeError):
                return repr(statement)
        return str(statement)


class ConnectionPool:
    """Thread-safe connection pool for PostgreSQL/AGE.

    Wraps psycopg2.pool.ThreadedConnectionPool and ensures all connections
    have the AGE extension properly configured.

    Attributes:
        _settings: Database configuration settings
        _pool: The underlying ThreadedConnectionPool instance
        _probe: Observability probe for monitoring
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: ConnectionProbe | None = None,
    ):
        """Initialize the connection pool.

        Args:
            settings: Database connection settings
            probe: Optional observability probe
        """
        self._settings = settings
        self._probe = probe or DefaultConnectionProbe()
        self._pool: psycopg2_pool.ThreadedConnectionPool | None = None

        if settings.pool_enabled:
            self._initialize_pool()

    def _initialize_pool(self) -> None:
        """Initialize the ThreadedConnectionPool."""
        try:
            self._pool = psycopg2_pool.ThreadedConnectionPool(
                minconn=self._settings.pool_min_connections,
                maxconn=self._settings.pool_max_connections,
                host=self._settings.host,
                port=self._settings.port,
                dbname=self._settings.database,
                user=self._settings.username,
                password=self._settings.password.get_secret_value(),
            )
            self._probe.pool_initialized(
                min_conn=self._settings.pool_min_connections,
                max_conn=self._settings.pool_max_connections,
            )
        except psycopg2.Error as e:
            self._probe.pool_initialization_failed(error=e)
            raise DatabaseConnectionError(
                f"Failed to initialize connection pool: {e}"
            ) from e

    def acquire(self) -> PostgresConnectionHandle:
        """Acquire a connection handle from the pool.

        The connection will have AGE extension configured.

        Returns:
            A handle wrapping a configured psycopg2 connection.

        Raises:
            DatabaseConnectionError: If pool is not initialized or connection fails.
        """
        if self._pool is None:
            raise DatabaseConnectionError("Connection pool not initialized")

        try:
            conn = self._pool.getconn()
        except psycopg2_pool.PoolError as e:
            self._probe.pool_exhausted()
            raise DatabaseConnectionError(
                f"Pool exhausted, cannot get connection: {e}"
            ) from e

        try:
            self._ensure_age_setup(conn)
        except psycopg2.Error as e:
            self._pool.putconn(conn, close=True)
            raise DatabaseConnectionError(f"Failed to set up AGE: {e}") from e

        self._probe.connection_acquired_from_pool()
        return PostgresConnectionHandle(conn, probe=self._probe)

    def release(self, handle: PostgresConnectionHandle) -> None:
        """Return a connection handle to the pool.

        Broken connections are closed instead of being reused.

        Args:
            handle: The handle to return.
        """
        if self._pool is None:
            return

        try:
            self._pool.putconn(handle.raw_connection, close=handle.closed)
            self._probe.connection_returned_to_pool()
        except Exception as e:
            self._probe.connection_return_failed(error=e)
            # Don't raise - connection will be discarded

    def close_all(self) -> None:
        """Close all connections in the pool."""
        if self._pool is not None:
            self._pool.closeall()
            self._probe.pool_closed()
            self._pool = None

    def _ensure_age_setup(self, conn: PsycopgConnection) -> None:
        """Ensure AGE extension is configured on the connection.

        Uses a connection-level flag to avoid redundant setup.
        """
        if getattr(conn, "_age_loader_setup", False):
            return

        self._setup_age(conn)
        conn._age_loader_setup = True  # type: ignore

    def _setup_age(self, conn: PsycopgConnection) -> None:
        """Set up AGE extension on the connection.

        Args:
            conn: The connection to configure
        """
        with conn.cursor() as cursor:
            cursor.execute("LOAD 'age';")
            cursor.execute('SET search_path = ag_catalog, "$user", public;')
        conn.commit()
