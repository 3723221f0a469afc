"""Transaction coordination for bulk loads.

A Transaction exclusively owns one pooled connection handle from begin until
it reaches a terminal state, at which point the handle is released back to
the pool exactly once.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Sequence, TypeVar

from bulk_loading.domain.value_objects import (
    Statement,
    TransactionOptions,
    TransactionState,
)
from bulk_loading.exceptions import TransactionError, TransactionTimeoutError
from bulk_loading.ports.observability import TransactionProbe
from bulk_loading.ports.protocols import ConnectionHandle, ConnectionPoolProtocol
from infrastructure.database.exceptions import DatabaseError, QueryCanceledError

from .observability import DefaultTransactionProbe
from .utils import validate_label_name

T = TypeVar("T")


class Transaction:
    """A unit of work on a single connection handle.

    States move ``CREATED -> ACTIVE -> (COMMITTED | ROLLED_BACK)``. Committing
    or rolling back a transaction that is not ACTIVE raises TransactionError.

    Usage:
        tx = coordinator.begin()
        tx.execute(statement)
        tx.commit()
    """

    def __init__(
        self,
        handle: ConnectionHandle,
        options: TransactionOptions | None = None,
        probe: TransactionProbe | None = None,
        release: Callable[[ConnectionHandle], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = uuid.uuid4().hex[:12]
        self._handle = handle
        self._options = options or TransactionOptions()
        self._probe = probe or DefaultTransactionProbe()
        self._release_handle = release
        self._clock = clock
        self._state = TransactionState.CREATED
        self._savepoints: list[str] = []
        self._started_at: float | None = None
        self._deadline: float | None = None
        self._released = False

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def options(self) -> TransactionOptions:
        return self._options

    @property
    def savepoints(self) -> tuple[str, ...]:
        return tuple(self._savepoints)

    def begin(self) -> None:
        """Start the unit of work.

        Raises:
            TransactionError: If the transaction was already started
        """
        if self._state is not TransactionState.CREATED:
            raise TransactionError(
                f"Cannot begin transaction in state {self._state.value}"
            )

        mode = f"ISOLATION LEVEL {self._options.isolation_level.value}"
        if self._options.read_only:
            mode += " READ ONLY"
        try:
            self._handle.execute(f"SET TRANSACTION {mode}")
            if self._options.timeout is not None:
                timeout_ms = max(int(self._options.timeout * 1000), 1)
                self._handle.execute(f"SET LOCAL statement_timeout = {timeout_ms}")
        except DatabaseError as e:
            try:
                self._handle.rollback()
            except DatabaseError as rollback_error:
                self._probe.rollback_failed(transaction_id=self.id, error=rollback_error)
            raise TransactionError(f"Failed to begin transaction: {e}") from e

        self._state = TransactionState.ACTIVE
        self._started_at = self._clock()
        if self._options.timeout is not None:
            self._deadline = self._started_at + self._options.timeout
        self._probe.transaction_started(
            transaction_id=self.id,
            isolation_level=self._options.isolation_level.value,
            read_only=self._options.read_only,
        )

    def execute(
        self,
        statement: Statement | str,
        params: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute a statement inside the transaction.

        Raises:
            TransactionError: If the transaction is not active
            TransactionTimeoutError: If the deadline passed or the server
                cancelled the statement; the transaction is rolled back
            DatabaseConnectionError: If the connection failed
            GraphQueryError: For any other statement failure
        """
        self._require_active("execute")
        self.check_deadline()
        if isinstance(statement, Statement):
            text = statement.text
            params = statement.params if params is None else params
        else:
            text = statement
        try:
            return self._handle.execute(text, params)
        except QueryCanceledError as e:
            self._time_out()
            raise TransactionTimeoutError(
                f"Statement cancelled by the server after transaction timeout: {e}"
            ) from e

    def commit(self) -> None:
        """Commit the transaction and release its connection.

        Raises:
            TransactionError: If the transaction is not active, or the commit
                failed (the transaction is then rolled back)
            TransactionTimeoutError: If the deadline passed before commit
        """
        self._require_active("commit")
        self.check_deadline()
        try:
            self._handle.commit()
        except DatabaseError as e:
            self._probe.commit_failed(transaction_id=self.id, error=e)
            self._rollback_best_effort(reason="commit failed")
            raise TransactionError(f"Commit failed: {e}") from e

        self._state = TransactionState.COMMITTED
        self._savepoints.clear()
        self._probe.transaction_committed(
            transaction_id=self.id, duration_ms=self._elapsed_ms()
        )
        self._release()

    def rollback(self) -> None:
        """Roll back the transaction and release its connection.

        Raises:
            TransactionError: If the transaction is not active or the
                rollback failed
        """
        self._require_active("roll back")
        try:
            self._handle.rollback()
        except DatabaseError as e:
            self._probe.rollback_failed(transaction_id=self.id, error=e)
            self._state = TransactionState.ROLLED_BACK
            self._release()
            raise TransactionError(f"Rollback failed: {e}") from e

        self._state = TransactionState.ROLLED_BACK
        self._savepoints.clear()
        self._probe.transaction_rolled_back(transaction_id=self.id, reason=None)
        self._release()

    def abort(self, reason: str | None = None) -> None:
        """Roll back if still active, never raising. Always releases the handle."""
        if self.is_active:
            self._rollback_best_effort(reason=reason)
        self._release()

    def close(self) -> None:
        """Release the handle, rolling back first if the transaction is active."""
        self.abort(reason="closed while active")

    def savepoint(self, name: str) -> None:
        validate_label_name(name, kind="savepoint")
        self.execute(f"SAVEPOINT {name}")
        self._savepoints.append(name)

    def rollback_to_savepoint(self, name: str) -> None:
        """Undo everything since ``name``. The savepoint stays usable."""
        self._require_savepoint(name)
        self.execute(f"ROLLBACK TO SAVEPOINT {name}")
        del self._savepoints[self._savepoints.index(name) + 1 :]

    def release_savepoint(self, name: str) -> None:
        """Release ``name`` and every savepoint created after it."""
        self._require_savepoint(name)
        self.execute(f"RELEASE SAVEPOINT {name}")
        del self._savepoints[self._savepoints.index(name) :]

    def check_deadline(self) -> None:
        """Raise TransactionTimeoutError once the deadline has passed.

        The transaction is rolled back before the error is raised.
        """
        if self._deadline is None or not self.is_active:
            return
        if self._clock() >= self._deadline:
            self._time_out()
            raise TransactionTimeoutError(
                f"Transaction exceeded its timeout of {self._options.timeout}s"
            )

    def _time_out(self) -> None:
        self._probe.transaction_timed_out(
            transaction_id=self.id, timeout_seconds=self._options.timeout or 0.0
        )
        if self.is_active:
            self._rollback_best_effort(reason="timeout")

    def _rollback_best_effort(self, reason: str | None) -> None:
        try:
            self._handle.rollback()
        except DatabaseError as e:
            self._probe.rollback_failed(transaction_id=self.id, error=e)
        self._state = TransactionState.ROLLED_BACK
        self._savepoints.clear()
        self._probe.transaction_rolled_back(transaction_id=self.id, reason=reason)
        self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._release_handle is not None:
            self._release_handle(self._handle)

    def _require_active(self, action: str) -> None:
        if not self.is_active:
            raise TransactionError(
                f"Cannot {action}: transaction is {self._state.value}"
            )

    def _require_savepoint(self, name: str) -> None:
        if name not in self._savepoints:
            raise TransactionError(f"Unknown savepoint '{name}'")

    def _elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return (self._clock() - self._started_at) * 1000


class TransactionCoordinator:
    """Begins transactions on pooled connections and guarantees their release."""

    def __init__(
        self,
        pool: ConnectionPoolProtocol,
        probe: TransactionProbe | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._pool = pool
        self._probe = probe or DefaultTransactionProbe()
        self._clock = clock

    def begin(self, options: TransactionOptions | None = None) -> Transaction:
        """Acquire a connection and start a transaction on it.

        Raises:
            DatabaseConnectionError: If no connection could be acquired
            TransactionError: If the transaction could not be started
        """
        handle = self._pool.acquire()
        tx = Transaction(
            handle,
            options=options,
            probe=self._probe,
            release=self._pool.release,
            clock=self._clock,
        )
        try:
            tx.begin()
        except BaseException:
            tx.abort(reason="begin failed")
            raise
        return tx

    def run_in_transaction(
        self,
        fn: Callable[[Transaction], T],
        options: TransactionOptions | None = None,
    ) -> T:
        """Run ``fn`` in a new transaction.

        Commits when ``fn`` returns normally and rolls back when it raises.
        The connection is released exactly once either way.
        """
        with self.transaction(options) as tx:
            return fn(tx)

    @contextmanager
    def transaction(
        self, options: TransactionOptions | None = None
    ) -> Iterator[Transaction]:
        """Create a transaction context for atomic operations.

        Usage:
            with coordinator.transaction() as tx:
                tx.execute(statement)
                # Auto-commits on success, rolls back on exception
        """
        tx = self.begin(options)
        try:
            yield tx
            if tx.is_active:
                tx.commit()
        except BaseException:
            tx.abort(reason="exception in transaction body")
            raise
        finally:
            tx.close()
