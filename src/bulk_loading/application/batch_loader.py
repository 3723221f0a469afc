"""Batch loader: orchestrates staged, transactional graph loads.

A load moves through
``IDLE -> VALIDATING -> LOADING_VERTICES -> LOADING_EDGES -> COMMITTING ->
(SUCCEEDED | FAILED) -> CLEANUP -> DONE``.

Records are normalised and validated first. Vertex types are then loaded in
input order, followed by edge types, one batch at a time: each batch is
staged under a load-namespaced key and consumed by a generated Cypher
statement. All batches share one transaction, so a failed load leaves
nothing behind unless continue-on-error was requested.
"""

from __future__ import annotations

import json
import os
import time
import uuid
from collections.abc import Hashable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

import pydantic

from bulk_loading.application.progress import ProgressReporter
from bulk_loading.domain.batching import Batch, BatchPlanner
from bulk_loading.domain.records import normalize_edge_record, normalize_record
from bulk_loading.domain.value_objects import (
    EntityRole,
    ErrorKind,
    GraphData,
    GraphSchema,
    LoaderState,
    LoadErrorDetail,
    LoadOptions,
    LoadPhase,
    LoadResult,
    PropertyRecord,
    TransactionOptions,
    ValidationReport,
)
from bulk_loading.exceptions import (
    BulkLoadError,
    ExecutionError,
    LoadCancelledError,
    StagingError,
    TransactionError,
    ValidationError,
)
from bulk_loading.infrastructure.observability import DefaultBulkLoadProbe
from bulk_loading.infrastructure.statements import StagingTableLayout, StatementGenerator
from bulk_loading.infrastructure.transaction import Transaction, TransactionCoordinator
from bulk_loading.infrastructure.utils import decode_agtype, decode_count, validate_label_name
from bulk_loading.ports.observability import BulkLoadProbe
from bulk_loading.ports.protocols import SchemaValidator, StagingStore
from infrastructure.database.exceptions import DatabaseError, GraphQueryError
from infrastructure.observability.context import ObservationContext
from infrastructure.settings import LoaderSettings, get_database_settings, get_loader_settings

T = TypeVar("T")

_MAX_LISTED_ENDPOINTS = 10

_TRANSITIONS: dict[LoaderState, frozenset[LoaderState]] = {
    LoaderState.IDLE: frozenset({LoaderState.VALIDATING}),
    LoaderState.VALIDATING: frozenset({LoaderState.LOADING_VERTICES, LoaderState.FAILED}),
    LoaderState.LOADING_VERTICES: frozenset({LoaderState.LOADING_EDGES, LoaderState.FAILED}),
    LoaderState.LOADING_EDGES: frozenset({LoaderState.COMMITTING, LoaderState.FAILED}),
    LoaderState.COMMITTING: frozenset({LoaderState.SUCCEEDED, LoaderState.FAILED}),
    LoaderState.SUCCEEDED: frozenset({LoaderState.CLEANUP}),
    LoaderState.FAILED: frozenset({LoaderState.CLEANUP}),
    LoaderState.CLEANUP: frozenset({LoaderState.DONE}),
    LoaderState.DONE: frozenset(),
}


@dataclass
class _PreparedType:
    """Normalised, valid records of one type in input order."""

    type_name: str
    records: list[PropertyRecord] = field(default_factory=list)


@dataclass
class _LoadRun:
    """Mutable bookkeeping for a single load call."""

    namespace: str
    graph_name: str
    options: LoadOptions
    probe: BulkLoadProbe
    reporter: ProgressReporter
    state: LoaderState = LoaderState.IDLE
    vertex_count: int = 0
    edge_count: int = 0
    vertex_types: list[str] = field(default_factory=list)
    edge_types: list[str] = field(default_factory=list)
    errors: list[LoadErrorDetail] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    transaction_opened: bool = False
    succeeded: bool = False

    def transition(self, state: LoaderState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid loader transition {self.state.value} -> {state.value}"
            )
        self.state = state
        if state is LoaderState.SUCCEEDED:
            self.succeeded = True
        self.probe.state_changed(state=state.value)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def fail(self, error: BulkLoadError | LoadErrorDetail) -> None:
        detail = error.to_detail() if isinstance(error, BulkLoadError) else error
        self.errors.append(detail)


class _SkippedVertices:
    """Identifiers of vertices dropped during validation, per vertex type."""

    def __init__(self) -> None:
        self._by_type: dict[str, set[Any]] = {}
        self._all: set[Any] = set()

    def add(self, type_name: str, identifier: Any) -> None:
        if identifier is None or not isinstance(identifier, Hashable):
            return
        self._by_type.setdefault(type_name, set()).add(identifier)
        self._all.add(identifier)

    def contains(self, type_name: str | None, identifier: Any) -> bool:
        if not isinstance(identifier, Hashable):
            return False
        if type_name is None:
            return identifier in self._all
        return identifier in self._by_type.get(type_name, set())


class BatchLoader:
    """Loads GraphData into an AGE graph in staged, transactional batches.

    Args:
        coordinator: Transaction coordinator owning connection lifecycles
        store: Staging store the create statements read batches from
        generator: Statement generator; defaults to the store's generator
        validator: Optional schema collaborator run before loading
        settings: Loader defaults for options the caller leaves unset
        probe: Observability probe
        graph_name: Default target graph when options do not name one
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        store: StagingStore,
        generator: StatementGenerator | None = None,
        validator: SchemaValidator | None = None,
        settings: LoaderSettings | None = None,
        probe: BulkLoadProbe | None = None,
        graph_name: str | None = None,
        planner: BatchPlanner | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_loader_settings()
        self._coordinator = coordinator
        self._store = store
        self._generator = (
            generator
            or getattr(store, "generator", None)
            or StatementGenerator(
                StagingTableLayout(
                    schema=self._settings.staging_schema,
                    table=self._settings.staging_table,
                )
            )
        )
        self._validator = validator
        self._probe = probe or DefaultBulkLoadProbe()
        self._graph_name = graph_name or get_database_settings().graph_name
        self._planner = planner or BatchPlanner()
        self._clock = clock

    @property
    def schema(self) -> GraphSchema | None:
        return self._generator.schema

    # =========================================================================
    # Public API
    # =========================================================================

    def load_graph_data(
        self,
        data: GraphData | Mapping[str, Any],
        options: LoadOptions | None = None,
        transaction: Transaction | None = None,
    ) -> LoadResult:
        """Load vertices then edges and return a summary of the load.

        Failures are reported through ``LoadResult.errors`` rather than
        raised. Programmer errors (malformed GraphData, an unusable caller
        transaction) raise immediately.

        Args:
            data: Vertices and edges grouped by type name
            options: Per-call options; unset fields fall back to settings
            transaction: Run inside this active transaction instead of a new
                one. The loader then works within a savepoint and never
                commits or rolls back the caller's transaction.

        Raises:
            ValidationError: If ``data`` is not valid GraphData
            TransactionError: If ``transaction`` is not active
        """
        graph_data = self._coerce_graph_data(data)
        if transaction is not None and not transaction.is_active:
            raise TransactionError(
                f"Cannot load into a transaction that is {transaction.state.value}"
            )

        opts = self._resolve_options(options)
        namespace = uuid.uuid4().hex[:16]
        context = ObservationContext(load_id=namespace, graph_name=opts.graph_name)
        probe = self._probe.with_context(context)
        run = _LoadRun(
            namespace=namespace,
            graph_name=opts.graph_name or self._graph_name,
            options=opts,
            probe=probe,
            reporter=ProgressReporter(opts.on_progress, probe, self._clock),
        )
        started_at = self._clock()
        probe.load_started(
            vertex_types=len(graph_data.vertices),
            edge_types=len(graph_data.edges),
            total_records=graph_data.vertex_total + graph_data.edge_total,
        )

        run.transition(LoaderState.VALIDATING)
        try:
            vertex_plan, edge_plan = self._prepare_for_load(graph_data, run)
            validate_label_name(run.graph_name, kind="graph")
        except ValidationError as e:
            if e.phase is None:
                e.phase = LoadPhase.VALIDATION
            run.fail(e)
            run.reporter.emit(
                LoadPhase.VALIDATION,
                "schema",
                0,
                graph_data.vertex_total + graph_data.edge_total,
                error=e.message,
            )
            run.transition(LoaderState.FAILED)
        else:
            try:
                if transaction is None:
                    self._load_in_new_transaction(run, vertex_plan, edge_plan)
                else:
                    self._load_in_caller_transaction(
                        transaction, run, vertex_plan, edge_plan
                    )
            except BulkLoadError as e:
                run.fail(e)
                run.transition(LoaderState.FAILED)
            except DatabaseError as e:
                run.fail(
                    LoadErrorDetail(kind=ErrorKind.TRANSACTION, message=str(e))
                )
                run.transition(LoaderState.FAILED)

        run.transition(LoaderState.CLEANUP)
        if run.transaction_opened and opts.cleanup_staging:
            self._purge_staging(run, transaction)
        run.transition(LoaderState.DONE)

        return self._build_result(run, started_at)

    def load_vertices(
        self,
        vertices: Mapping[str, list[Mapping[str, Any]]],
        options: LoadOptions | None = None,
        transaction: Transaction | None = None,
    ) -> LoadResult:
        """Load vertex records grouped by vertex type."""
        return self.load_graph_data({"vertices": dict(vertices)}, options, transaction)

    def load_edges(
        self,
        edges: Mapping[str, list[Mapping[str, Any]]],
        options: LoadOptions | None = None,
        transaction: Transaction | None = None,
    ) -> LoadResult:
        """Load edge records between vertices that already exist."""
        return self.load_graph_data({"edges": dict(edges)}, options, transaction)

    def load_from_file(
        self,
        path: str | os.PathLike[str],
        options: LoadOptions | None = None,
        transaction: Transaction | None = None,
    ) -> LoadResult:
        """Load GraphData from a JSON file.

        The document must be an object with optional ``vertices`` and
        ``edges`` members. A missing or unreadable file, invalid JSON or a
        document of the wrong shape yields a failed LoadResult.
        """
        started_at = self._clock()
        resolved = Path(path).resolve()

        if not resolved.exists():
            return self._file_failure(resolved, f"File not found: {resolved}", started_at)
        try:
            content = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return self._file_failure(resolved, f"Failed to read file: {e}", started_at)
        try:
            document = json.loads(content)
        except ValueError as e:
            return self._file_failure(
                resolved, f"Failed to parse JSON file: {e}", started_at
            )
        if not isinstance(document, dict):
            return self._file_failure(
                resolved, "Invalid file format: expected an object", started_at
            )
        try:
            graph_data = GraphData(
                vertices=document.get("vertices") or {},
                edges=document.get("edges") or {},
            )
        except pydantic.ValidationError as e:
            return self._file_failure(
                resolved, f"Invalid file format: {e}", started_at
            )

        return self.load_graph_data(graph_data, options, transaction)

    def with_transaction(
        self,
        fn: Callable[[Transaction], T],
        options: TransactionOptions | None = None,
    ) -> T:
        """Run ``fn`` in one transaction, committing on return.

        Pass the transaction to the load methods to combine several loads
        into a single atomic unit:

            loader.with_transaction(
                lambda tx: (
                    loader.load_vertices(people, transaction=tx),
                    loader.load_edges(friendships, transaction=tx),
                )
            )
        """
        return self._coordinator.run_in_transaction(fn, options)

    def validate_graph_data(self, data: GraphData | Mapping[str, Any]) -> ValidationReport:
        """Check every record without loading anything.

        All problems are collected instead of stopping at the first one.
        """
        graph_data = self._coerce_graph_data(data)
        errors: list[str] = []
        warnings: list[str] = []

        def collect(error: ValidationError, _warning: str) -> None:
            errors.append(error.message)

        self._prepare(graph_data, on_invalid=collect, warn=warnings.append, probe=None)
        return ValidationReport(
            is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings)
        )

    # =========================================================================
    # Preparation
    # =========================================================================

    def _prepare_for_load(
        self, data: GraphData, run: _LoadRun
    ) -> tuple[list[_PreparedType], list[_PreparedType]]:
        total = data.vertex_total + data.edge_total
        run.reporter.emit(LoadPhase.VALIDATION, "schema", 0, total)

        def on_invalid(error: ValidationError, warning: str) -> None:
            if not run.options.continue_on_error:
                raise error
            run.warn(warning)
            run.probe.record_skipped(
                type_name=error.type_name or "",
                record_index=error.record_index if error.record_index is not None else -1,
                reason=error.message,
            )

        plans = self._prepare(
            data,
            on_invalid=on_invalid,
            warn=run.warn,
            probe=run.probe,
            validate=bool(run.options.validate_before_load),
        )
        run.reporter.emit(
            LoadPhase.VALIDATION, "schema", total, total, warnings=tuple(run.warnings)
        )
        return plans

    def _prepare(
        self,
        data: GraphData,
        *,
        on_invalid: Callable[[ValidationError, str], None],
        warn: Callable[[str], None],
        probe: BulkLoadProbe | None,
        validate: bool = True,
    ) -> tuple[list[_PreparedType], list[_PreparedType]]:
        """Normalise and validate records, grouping the valid ones by type.

        ``on_invalid`` decides what an invalid record means: it raises to
        abort, or returns to skip the record.
        """
        schema = self.schema
        validator = self._validator if validate else None
        skipped = _SkippedVertices()

        vertex_plan: list[_PreparedType] = []
        for type_name, records in data.vertices.items():
            id_property = schema.id_property_for(type_name) if schema else "id"
            if not (
                self._type_is_known(type_name, EntityRole.VERTEX, len(records), warn, probe)
                and self._type_name_is_valid(type_name, EntityRole.VERTEX, on_invalid)
            ):
                # Edges to these vertices are skipped rather than left unresolved
                for raw in records:
                    if isinstance(raw, Mapping):
                        skipped.add(type_name, raw.get(id_property))
                continue
            prepared = _PreparedType(type_name)
            for index, raw in enumerate(records):
                path = f"vertices.{type_name}[{index}]"
                try:
                    record = normalize_record(raw, path)
                    if validator is not None:
                        self._run_validator(validator, type_name, record, path)
                except ValidationError as e:
                    self._annotate(e, type_name, index)
                    if isinstance(raw, Mapping):
                        skipped.add(type_name, raw.get(id_property))
                    on_invalid(e, f"Skipped {type_name} record {index}: {e.message}")
                    continue
                prepared.records.append(record)
            vertex_plan.append(prepared)

        edge_plan: list[_PreparedType] = []
        for type_name, records in data.edges.items():
            if not self._type_is_known(type_name, EntityRole.EDGE, len(records), warn, probe):
                continue
            if not self._type_name_is_valid(type_name, EntityRole.EDGE, on_invalid):
                continue
            from_type, to_type = self._endpoint_types(type_name)
            prepared = _PreparedType(type_name)
            for index, raw in enumerate(records):
                path = f"edges.{type_name}[{index}]"
                try:
                    record = normalize_edge_record(raw, path)
                    if validator is not None:
                        self._run_validator(validator, type_name, record, path)
                except ValidationError as e:
                    self._annotate(e, type_name, index)
                    on_invalid(e, f"Skipped {type_name} record {index}: {e.message}")
                    continue
                dangling = [
                    f"{endpoint} endpoint {record[endpoint]!r}"
                    for endpoint, vertex_type in (("from", from_type), ("to", to_type))
                    if skipped.contains(vertex_type, record[endpoint])
                ]
                if dangling:
                    message = (
                        f"Skipped {type_name} edge {index}: "
                        f"{', '.join(dangling)} refers to a skipped vertex"
                    )
                    warn(message)
                    if probe is not None:
                        probe.record_skipped(
                            type_name=type_name, record_index=index, reason=message
                        )
                    continue
                prepared.records.append(record)
            edge_plan.append(prepared)

        return vertex_plan, edge_plan

    def _type_is_known(
        self,
        type_name: str,
        role: EntityRole,
        record_count: int,
        warn: Callable[[str], None],
        probe: BulkLoadProbe | None,
    ) -> bool:
        schema = self.schema
        if schema is None:
            return True
        declared = schema.vertices if role is EntityRole.VERTEX else schema.edges
        if type_name in declared:
            return True
        reason = f"{role.value.capitalize()} type '{type_name}' is not defined in the schema"
        warn(f"{reason}; skipped {record_count} record(s)")
        if probe is not None:
            probe.type_skipped(type_name=type_name, reason=reason)
        return False

    @staticmethod
    def _type_name_is_valid(
        type_name: str,
        role: EntityRole,
        on_invalid: Callable[[ValidationError, str], None],
    ) -> bool:
        try:
            validate_label_name(type_name, kind=f"{role.value} type")
        except ValidationError as e:
            e.type_name = type_name
            e.phase = LoadPhase.VALIDATION
            on_invalid(e, f"Skipped {role.value} type '{type_name}': {e.message}")
            return False
        return True

    @staticmethod
    def _run_validator(
        validator: SchemaValidator,
        type_name: str,
        record: PropertyRecord,
        path: str,
    ) -> None:
        violations = validator.validate(type_name, record)
        if violations:
            details = [
                f"{path}.{v.path}: {v.message}" if v.path else f"{path}: {v.message}"
                for v in violations
            ]
            raise ValidationError("; ".join(details), violations=details)

    def _endpoint_types(self, type_name: str) -> tuple[str | None, str | None]:
        schema = self.schema
        if schema is None or type_name not in schema.edges:
            return None, None
        edge_type = schema.edges[type_name]
        return edge_type.from_type, edge_type.to_type

    @staticmethod
    def _annotate(error: BulkLoadError, type_name: str, record_index: int) -> None:
        error.phase = LoadPhase.VALIDATION
        error.type_name = type_name
        error.record_index = record_index

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_in_new_transaction(
        self,
        run: _LoadRun,
        vertex_plan: list[_PreparedType],
        edge_plan: list[_PreparedType],
    ) -> None:
        # Installed in its own transaction so the DDL survives a failed load
        self._coordinator.run_in_transaction(self._install_staging(run))

        tx_options = TransactionOptions(timeout=run.options.transaction_timeout)
        with self._coordinator.transaction(tx_options) as tx:
            run.transaction_opened = True
            self._load_all(tx, run, vertex_plan, edge_plan)
            run.transition(LoaderState.COMMITTING)
            tx.commit()
        run.transition(LoaderState.SUCCEEDED)

    def _load_in_caller_transaction(
        self,
        tx: Transaction,
        run: _LoadRun,
        vertex_plan: list[_PreparedType],
        edge_plan: list[_PreparedType],
    ) -> None:
        self._coordinator.run_in_transaction(self._install_staging(run))

        savepoint = f"age_loader_{run.namespace}"
        tx.savepoint(savepoint)
        run.transaction_opened = True
        try:
            self._load_all(tx, run, vertex_plan, edge_plan)
            run.transition(LoaderState.COMMITTING)
            tx.release_savepoint(savepoint)
        except BaseException:
            if tx.is_active:
                tx.rollback_to_savepoint(savepoint)
                tx.release_savepoint(savepoint)
            raise
        run.transition(LoaderState.SUCCEEDED)

    def _install_staging(self, run: _LoadRun) -> Callable[[Transaction], None]:
        def install(tx: Transaction) -> None:
            if self._store.ensure_installed(tx):
                run.probe.staging_installed(
                    qualified_table=self._generator.layout.qualified_table
                )

        return install

    def _load_all(
        self,
        tx: Transaction,
        run: _LoadRun,
        vertex_plan: list[_PreparedType],
        edge_plan: list[_PreparedType],
    ) -> None:
        run.transition(LoaderState.LOADING_VERTICES)
        for prepared in vertex_plan:
            self._load_type(tx, run, EntityRole.VERTEX, prepared)
        run.transition(LoaderState.LOADING_EDGES)
        for prepared in edge_plan:
            self._load_type(tx, run, EntityRole.EDGE, prepared)

    def _load_type(
        self,
        tx: Transaction,
        run: _LoadRun,
        role: EntityRole,
        prepared: _PreparedType,
    ) -> None:
        type_name = prepared.type_name
        phase = LoadPhase.VERTICES if role is EntityRole.VERTEX else LoadPhase.EDGES
        loaded_types = run.vertex_types if role is EntityRole.VERTEX else run.edge_types
        if type_name not in loaded_types:
            loaded_types.append(type_name)

        batches = self._planner.plan(prepared.records, run.options.batch_size)
        total = len(prepared.records)
        run.reporter.emit(phase, type_name, 0, total, total_batches=len(batches))
        if not batches:
            return

        self._check_abort(run, phase, type_name, batch_number=None)
        lock = self._generator.advisory_lock_statement(run.graph_name, type_name)
        try:
            tx.execute(lock)
        except GraphQueryError as e:
            raise ExecutionError(
                f"Failed to lock label {type_name}: {e}",
                statement=lock.text,
                phase=phase,
                type_name=type_name,
            ) from e
        property_names = self._generator.property_names(type_name, role, prepared.records)

        processed = 0
        for batch in batches:
            self._check_abort(run, phase, type_name, batch.number)
            tx.check_deadline()
            error = self._load_batch_guarded(
                tx, run, role, phase, type_name, batch, property_names
            )
            processed += batch.size
            run.reporter.emit(
                phase,
                type_name,
                processed,
                total,
                batch_number=batch.number,
                total_batches=len(batches),
                error=error,
            )

    def _load_batch_guarded(
        self,
        tx: Transaction,
        run: _LoadRun,
        role: EntityRole,
        phase: LoadPhase,
        type_name: str,
        batch: Batch[PropertyRecord],
        property_names: list[str],
    ) -> str | None:
        """Load one batch, isolating its failure when continuing on error.

        Returns the error message of a skipped batch, or None.
        """
        savepoint = f"age_loader_batch_{batch.index}" if run.options.continue_on_error else None
        try:
            if savepoint:
                tx.savepoint(savepoint)
            self._load_batch(tx, run, role, type_name, batch, property_names)
            if savepoint:
                tx.release_savepoint(savepoint)
        except (StagingError, ExecutionError) as e:
            e.phase = e.phase or phase
            e.type_name = e.type_name or type_name
            e.batch_number = e.batch_number or batch.number
            run.probe.batch_failed(
                role=role.value, type_name=type_name, batch_number=batch.number, error=e
            )
            if savepoint is None:
                raise
            tx.rollback_to_savepoint(savepoint)
            tx.release_savepoint(savepoint)
            run.fail(e)
            return e.message
        return None

    def _load_batch(
        self,
        tx: Transaction,
        run: _LoadRun,
        role: EntityRole,
        type_name: str,
        batch: Batch[PropertyRecord],
        property_names: list[str],
    ) -> None:
        started_at = self._clock()
        key = self._store.key_for(run.namespace, role, type_name, batch.index)
        self._store.put(tx, key, list(batch.records))

        if role is EntityRole.VERTEX:
            statement = self._generator.create_vertices_statement(
                run.graph_name, type_name, key, property_names
            )
        else:
            self._check_endpoints(tx, run, type_name, key, batch)
            statement = self._generator.create_edges_statement(
                run.graph_name, type_name, key, property_names
            )

        try:
            rows = tx.execute(statement)
        except GraphQueryError as e:
            raise ExecutionError(
                f"Failed to create {role.value}s of type {type_name}: {e}",
                statement=statement.text,
                type_name=type_name,
                batch_number=batch.number,
            ) from e

        created = decode_count(rows)
        if role is EntityRole.VERTEX:
            run.vertex_count += created
        else:
            run.edge_count += created
        if created < batch.size:
            run.warn(
                f"{type_name} batch {batch.number}: created {created} of "
                f"{batch.size} {role.value}s"
            )
        run.probe.batch_loaded(
            role=role.value,
            type_name=type_name,
            batch_number=batch.number,
            record_count=batch.size,
            created_count=created,
            duration_ms=(self._clock() - started_at) * 1000,
        )

    def _check_endpoints(
        self,
        tx: Transaction,
        run: _LoadRun,
        type_name: str,
        key: str,
        batch: Batch[PropertyRecord],
    ) -> None:
        statement = self._generator.unresolved_endpoints_statement(
            run.graph_name, type_name, key
        )
        try:
            rows = tx.execute(statement)
        except GraphQueryError as e:
            raise ExecutionError(
                f"Failed to resolve endpoints of {type_name} edges: {e}",
                statement=statement.text,
                type_name=type_name,
                batch_number=batch.number,
            ) from e

        unresolved: list[str] = []
        for row in rows:
            entry = decode_agtype(row[0])
            if not isinstance(entry, dict):
                continue
            if not entry.get("source_found"):
                unresolved.append(f"from={entry.get('source')!r}")
            if not entry.get("target_found"):
                unresolved.append(f"to={entry.get('target')!r}")
        unresolved = list(dict.fromkeys(unresolved))
        if not unresolved:
            return

        listed = ", ".join(unresolved[:_MAX_LISTED_ENDPOINTS])
        if len(unresolved) > _MAX_LISTED_ENDPOINTS:
            listed += f" (and {len(unresolved) - _MAX_LISTED_ENDPOINTS} more)"
        raise ExecutionError(
            f"Unresolved endpoints for {type_name} edges: {listed}",
            unresolved_endpoints=unresolved,
            type_name=type_name,
            batch_number=batch.number,
        )

    @staticmethod
    def _check_abort(
        run: _LoadRun,
        phase: LoadPhase,
        type_name: str,
        batch_number: int | None,
    ) -> None:
        signal = run.options.abort_signal
        if signal is None or not signal.is_set():
            return
        run.probe.load_cancelled(type_name=type_name, batch_number=batch_number)
        raise LoadCancelledError(
            "Load cancelled by caller",
            phase=phase,
            type_name=type_name,
            batch_number=batch_number,
        )

    # =========================================================================
    # Cleanup and results
    # =========================================================================

    def _purge_staging(self, run: _LoadRun, transaction: Transaction | None) -> None:
        """Remove the load's staging entries. Failures only produce a warning."""
        deleted = 0
        try:
            if transaction is None:
                deleted = self._coordinator.run_in_transaction(
                    lambda tx: self._store.purge(tx, run.namespace)
                )
            elif transaction.is_active:
                savepoint = f"age_loader_cleanup_{run.namespace}"
                transaction.savepoint(savepoint)
                try:
                    deleted = self._store.purge(transaction, run.namespace)
                except BaseException:
                    transaction.rollback_to_savepoint(savepoint)
                    raise
                finally:
                    transaction.release_savepoint(savepoint)
        except (BulkLoadError, DatabaseError) as e:
            run.warn(f"Failed to clean up staging entries for load {run.namespace}: {e}")
            run.probe.staging_purge_failed(namespace=run.namespace, error=e)
            return
        run.probe.staging_purged(namespace=run.namespace, deleted=deleted)
        run.reporter.emit(LoadPhase.CLEANUP, "staging", deleted, deleted)

    def _build_result(self, run: _LoadRun, started_at: float) -> LoadResult:
        duration = max(self._clock() - started_at, 0.0)
        result = LoadResult(
            success=run.succeeded,
            vertex_count=run.vertex_count,
            edge_count=run.edge_count,
            vertex_types=tuple(run.vertex_types),
            edge_types=tuple(run.edge_types),
            duration=duration,
            errors=tuple(run.errors),
            warnings=tuple(run.warnings),
        )
        run.probe.load_completed(
            success=result.success,
            vertex_count=result.vertex_count,
            edge_count=result.edge_count,
            error_count=len(result.errors),
            warning_count=len(result.warnings),
            duration_ms=duration * 1000,
        )
        return result

    def _file_failure(self, path: Path, message: str, started_at: float) -> LoadResult:
        self._probe.file_load_failed(path=str(path), reason=message)
        return LoadResult(
            success=False,
            duration=max(self._clock() - started_at, 0.0),
            errors=(LoadErrorDetail(kind=ErrorKind.INPUT, message=message),),
        )

    # =========================================================================
    # Options
    # =========================================================================

    def _resolve_options(self, options: LoadOptions | None) -> LoadOptions:
        options = options or LoadOptions()
        settings = self._settings
        return options.model_copy(
            update={
                "graph_name": options.graph_name or self._graph_name,
                "batch_size": options.batch_size or settings.default_batch_size,
                "validate_before_load": (
                    settings.validate_before_load
                    if options.validate_before_load is None
                    else options.validate_before_load
                ),
                "continue_on_error": (
                    settings.continue_on_error
                    if options.continue_on_error is None
                    else options.continue_on_error
                ),
                "transaction_timeout": (
                    options.transaction_timeout
                    or settings.transaction_timeout_seconds
                ),
                "cleanup_staging": (
                    settings.cleanup_staging
                    if options.cleanup_staging is None
                    else options.cleanup_staging
                ),
            }
        )

    @staticmethod
    def _coerce_graph_data(data: GraphData | Mapping[str, Any]) -> GraphData:
        if isinstance(data, GraphData):
            return data
        try:
            return GraphData.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid graph data: {e}") from e
