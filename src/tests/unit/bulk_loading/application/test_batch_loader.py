"""Unit tests for BatchLoader.

Loads run against an in-memory AGE stand-in, so the tests can read back
what a load left behind after commit or rollback.
"""

import json
import threading
from unittest.mock import MagicMock

import psycopg2.errors
import pytest

from bulk_loading.application.batch_loader import BatchLoader
from bulk_loading.domain.value_objects import (
    EdgeTypeDefinition,
    ErrorKind,
    GraphData,
    GraphSchema,
    LoadOptions,
    LoadPhase,
    PropertyDefinition,
    VertexTypeDefinition,
    Violation,
)
from bulk_loading.exceptions import TransactionError, ValidationError
from bulk_loading.infrastructure.schema_validation import GraphSchemaValidator
from bulk_loading.infrastructure.staging import PostgresStagingStore
from bulk_loading.infrastructure.statements import StatementGenerator
from bulk_loading.infrastructure.transaction import TransactionCoordinator
from infrastructure.database.connection_pool import PostgresConnectionHandle
from infrastructure.database.exceptions import DatabaseError
from tests.unit.bulk_loading.fakes import FakeClock, FakePool

PEOPLE = {
    "Person": [
        {"id": "p1", "name": "Alice"},
        {"id": "p2", "name": "Bob"},
    ]
}


def translated_driver_error(error):
    """Return ``error`` as a pooled connection handle would surface it."""
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value.execute.side_effect = error
    try:
        PostgresConnectionHandle(conn, probe=MagicMock()).execute("SELECT 1")
    except DatabaseError as e:
        return e
    raise AssertionError("connection handle did not raise")


class RejectingValidator:
    """Schema collaborator rejecting records by id."""

    def __init__(self, *rejected_ids):
        self._rejected = set(rejected_ids)

    def validate(self, type_name, record):
        if record.get("id") in self._rejected:
            return [Violation(path="id", message="rejected by schema")]
        return []


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def probe():
    """Probe whose with_context returns itself so calls can be asserted."""
    mock = MagicMock()
    mock.with_context.return_value = mock
    return mock


@pytest.fixture
def make_loader(pool, probe, loader_settings):
    def factory(schema=None, validator=None, settings=None, clock=None):
        clock_kwargs = {"clock": clock} if clock is not None else {}
        generator = StatementGenerator(schema=schema)
        return BatchLoader(
            coordinator=TransactionCoordinator(pool, probe=MagicMock(), **clock_kwargs),
            store=PostgresStagingStore(generator),
            validator=validator,
            settings=settings or loader_settings,
            probe=probe,
            graph_name="test_graph",
            **clock_kwargs,
        )

    return factory


class TestLoadVertices:
    """Tests for the basic staged load path."""

    def test_two_people_with_batch_size_one(self, make_loader, pool):
        """Each batch is one staging write plus one create statement."""
        loader = make_loader()

        result = loader.load_graph_data(
            GraphData(vertices=PEOPLE), LoadOptions(batch_size=1)
        )

        assert result.success is True
        assert result.vertex_count == 2
        assert result.edge_count == 0
        assert result.vertex_types == ("Person",)
        assert len(pool.db.statements_containing("INSERT INTO")) == 2
        assert len(pool.db.statements_containing("CREATE (v:`Person`)")) == 2
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]

    def test_record_values_never_appear_in_statement_text(self, make_loader, pool):
        loader = make_loader()

        loader.load_vertices({"Person": [{"id": "p1", "name": "Robert'); DROP"}]})

        assert not any("DROP" in text for text, _ in pool.db.statements)

    def test_batch_size_falls_back_to_settings(self, make_loader, pool, loader_settings):
        loader = make_loader(
            settings=loader_settings.model_copy(update={"default_batch_size": 1})
        )

        loader.load_vertices(PEOPLE)

        assert len(pool.db.statements_containing("INSERT INTO")) == 2

    def test_empty_type_is_a_noop(self, make_loader, pool):
        loader = make_loader()

        result = loader.load_vertices({"Person": []})

        assert result.success is True
        assert result.vertex_count == 0
        assert pool.db.statements_containing("cypher(") == []

    def test_empty_graph_data_succeeds(self, make_loader):
        result = make_loader().load_graph_data(GraphData())

        assert result.success is True
        assert result.vertex_count == result.edge_count == 0

    def test_accepts_plain_mapping(self, make_loader):
        result = make_loader().load_graph_data({"vertices": PEOPLE})

        assert result.vertex_count == 2

    def test_rejects_malformed_graph_data(self, make_loader):
        with pytest.raises(ValidationError, match="Invalid graph data"):
            make_loader().load_graph_data({"vertices": ["not", "a", "map"]})

    def test_staging_is_purged_after_load(self, make_loader, pool):
        make_loader().load_vertices(PEOPLE)

        assert pool.db.staging == {}
        assert pool.db.installed is True

    def test_staging_kept_when_cleanup_disabled(self, make_loader, pool):
        make_loader().load_vertices(PEOPLE, LoadOptions(cleanup_staging=False))

        assert len(pool.db.staging) == 1

    def test_cleanup_failure_is_only_a_warning(self, make_loader, pool, probe):
        pool.db.fail_on("WITH purged")

        result = make_loader().load_vertices(PEOPLE)

        assert result.success is True
        assert any("Failed to clean up staging" in w for w in result.warnings)
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]
        probe.staging_purge_failed.assert_called_once()

    def test_connections_are_all_released(self, make_loader, pool):
        make_loader().load_vertices(PEOPLE)

        assert pool.acquired > 0
        assert pool.outstanding == 0

    def test_staging_installed_is_reported_once(self, make_loader, probe):
        """Later loads reuse the installed staging table without new DDL."""
        loader = make_loader()

        loader.load_vertices(PEOPLE)
        loader.load_vertices({"City": [{"id": "c1"}]})

        probe.staging_installed.assert_called_once_with(
            qualified_table="age_loader.staged_params"
        )


class TestLoadEdges:
    """Tests for loading edges after vertices."""

    def test_vertices_then_edges(self, make_loader, pool):
        loader = make_loader()

        result = loader.load_graph_data(
            GraphData(
                vertices=PEOPLE,
                edges={"KNOWS": [{"from": "p1", "to": "p2", "since": 2010}]},
            )
        )

        assert result.success is True
        assert result.vertex_count == 2
        assert result.edge_count == 1
        assert result.edge_types == ("KNOWS",)
        assert pool.db.edges == [
            {"label": "KNOWS", "from": "p1", "to": "p2", "properties": {"since": 2010}}
        ]

    def test_vertex_statements_run_before_edge_statements(self, make_loader, pool):
        make_loader().load_graph_data(
            GraphData(
                edges={"KNOWS": [{"from": "p1", "to": "p2"}]},
                vertices=PEOPLE,
            )
        )

        texts = [text for text, _ in pool.db.statements_containing("cypher(")]
        last_vertex = max(i for i, t in enumerate(texts) if "CREATE (v:" in t)
        first_edge = min(i for i, t in enumerate(texts) if "OPTIONAL MATCH" in t)
        assert last_vertex < first_edge

    def test_unresolved_endpoint_fails_the_load(self, make_loader, pool):
        """An edge whose endpoint is missing aborts and rolls everything back."""
        result = make_loader().load_graph_data(
            GraphData(
                vertices=PEOPLE,
                edges={"KNOWS": [{"from": "p9", "to": "p2"}]},
            )
        )

        assert result.success is False
        assert result.vertex_count == 2
        assert result.edge_count == 0
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.kind is ErrorKind.EXECUTION
        assert error.type_name == "KNOWS"
        assert "p9" in error.message
        assert pool.db.vertices == []
        assert pool.db.edges == []

    def test_declared_endpoint_types_and_id_property(self, make_loader, pool):
        schema = GraphSchema(
            vertices={
                "Person": VertexTypeDefinition(
                    properties={"name": PropertyDefinition()}
                ),
                "Company": VertexTypeDefinition(id_property="company_id"),
            },
            edges={
                "WORKS_AT": EdgeTypeDefinition(from_type="Person", to_type="Company"),
            },
        )

        result = make_loader(schema=schema).load_graph_data(
            GraphData(
                vertices={**PEOPLE, "Company": [{"company_id": "c1"}]},
                edges={"WORKS_AT": [{"from": "p1", "to": "c1"}]},
            )
        )

        assert result.success is True
        assert result.edge_count == 1
        assert pool.db.vertex_ids("Company", "company_id") == ["c1"]


class TestFailureRollsBack:
    """Without continue-on-error a failure leaves nothing behind."""

    def test_execution_error_midway_leaves_nothing(self, make_loader, pool):
        pool.db.fail_on("CREATE (v:`City`)")

        result = make_loader().load_graph_data(
            GraphData(
                vertices={**PEOPLE, "City": [{"id": "c1"}]},
                edges={"KNOWS": [{"from": "p1", "to": "p2"}]},
            )
        )

        assert result.success is False
        assert [e.kind for e in result.errors] == [ErrorKind.EXECUTION]
        assert result.errors[0].type_name == "City"
        assert result.errors[0].phase is LoadPhase.VERTICES
        assert pool.db.vertices == []
        assert pool.db.edges == []
        assert pool.outstanding == 0

    def test_staging_write_failure(self, make_loader, pool):
        pool.db.fail_on("INSERT INTO")

        result = make_loader().load_vertices(PEOPLE)

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.STAGING
        assert pool.db.vertices == []

    def test_validation_failure_aborts_before_loading(self, make_loader, pool):
        loader = make_loader(validator=RejectingValidator("p2"))

        result = loader.load_vertices(PEOPLE)

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.VALIDATION
        assert result.errors[0].record_index == 1
        assert pool.acquired == 0

    def test_validation_can_be_disabled_per_call(self, make_loader):
        loader = make_loader(validator=RejectingValidator("p2"))

        result = loader.load_vertices(PEOPLE, LoadOptions(validate_before_load=False))

        assert result.success is True
        assert result.vertex_count == 2

    def test_pool_failure_is_a_transaction_error(self, make_loader, pool):
        pool.fail_acquire = True

        result = make_loader().load_vertices(PEOPLE)

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.TRANSACTION


class TestNonMappingRecords:
    """A record that is not a mapping is bad data, not a malformed GraphData."""

    RECORDS = {"Person": [{"id": "p1"}, None, {"id": "p2"}]}

    def test_aborts_load_by_default(self, make_loader, pool):
        result = make_loader().load_vertices(self.RECORDS)

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.VALIDATION
        assert result.errors[0].record_index == 1
        assert "must be a mapping" in result.errors[0].message
        assert pool.db.vertex_ids("Person") == []

    def test_is_skipped_when_continuing_on_error(self, make_loader, pool):
        result = make_loader().load_vertices(
            self.RECORDS, LoadOptions(continue_on_error=True)
        )

        assert result.success is True
        assert result.vertex_count == 2
        assert len(result.warnings) == 1
        assert "Person record 1" in result.warnings[0]
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]

    def test_edge_record_that_is_a_string(self, make_loader, pool):
        result = make_loader().load_graph_data(
            {
                "vertices": PEOPLE,
                "edges": {"KNOWS": ["p1->p2", {"from": "p1", "to": "p2"}]},
            },
            LoadOptions(continue_on_error=True),
        )

        assert result.success is True
        assert result.edge_count == 1
        assert any("KNOWS record 0" in w for w in result.warnings)

    def test_reported_by_validate_graph_data(self, make_loader):
        report = make_loader().validate_graph_data({"vertices": self.RECORDS})

        assert report.is_valid is False
        assert len(report.errors) == 1


class TestContinueOnError:
    """Tests for partial-success loads."""

    def test_one_malformed_record_among_valid_ones(self, make_loader, pool):
        """Valid records load; the malformed one is reported exactly once."""
        loader = make_loader(validator=RejectingValidator("p2"))
        records = {"Person": [*PEOPLE["Person"], {"id": "p3", "name": "Carol"}]}

        result = loader.load_vertices(records, LoadOptions(continue_on_error=True))

        assert result.success is True
        assert result.vertex_count == 2
        assert result.errors == ()
        assert len(result.warnings) == 1
        assert "Person record 1" in result.warnings[0]
        assert pool.db.vertex_ids("Person") == ["p1", "p3"]

    def test_unrepresentable_value_is_skipped(self, make_loader, pool):
        records = {"Person": [{"id": "p1"}, {"id": "p2", "blob": object()}]}

        result = make_loader().load_vertices(records, LoadOptions(continue_on_error=True))

        assert result.success is True
        assert result.vertex_count == 1
        assert len(result.warnings) == 1

    def test_edges_to_skipped_vertices_are_skipped(self, make_loader, pool):
        loader = make_loader(validator=RejectingValidator("p2"))

        result = loader.load_graph_data(
            GraphData(
                vertices=PEOPLE,
                edges={"KNOWS": [{"from": "p1", "to": "p2"}]},
            ),
            LoadOptions(continue_on_error=True),
        )

        assert result.success is True
        assert result.edge_count == 0
        assert any("refers to a skipped vertex" in w for w in result.warnings)
        assert pool.db.edges == []

    def test_failed_batch_is_rolled_back_alone(self, make_loader, pool):
        pool.db.fail_on("CREATE (v:`Person`)", times=1)
        records = {"Person": [{"id": "p1"}, {"id": "p2"}, {"id": "p3"}]}

        result = make_loader().load_vertices(
            records, LoadOptions(batch_size=1, continue_on_error=True)
        )

        assert result.success is True
        assert result.vertex_count == 2
        assert len(result.errors) == 1
        assert result.errors[0].batch_number == 1
        assert pool.db.vertex_ids("Person") == ["p2", "p3"]

    def test_unresolved_edge_batch_is_skipped(self, make_loader, pool):
        result = make_loader().load_graph_data(
            GraphData(
                vertices=PEOPLE,
                edges={
                    "KNOWS": [
                        {"from": "p1", "to": "p9"},
                        {"from": "p1", "to": "p2"},
                    ]
                },
            ),
            LoadOptions(batch_size=1, continue_on_error=True),
        )

        assert result.success is True
        assert result.edge_count == 1
        assert "p9" in result.errors[0].message
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]

    def test_unknown_schema_type_is_skipped_with_warning(self, make_loader, pool):
        schema = GraphSchema(vertices={"Person": VertexTypeDefinition()})

        result = make_loader(schema=schema).load_graph_data(
            GraphData(vertices={**PEOPLE, "Robot": [{"id": "r1"}]})
        )

        assert result.success is True
        assert result.vertex_types == ("Person",)
        assert any("Robot" in w for w in result.warnings)
        assert pool.db.vertex_ids("Robot") == []

    @pytest.mark.parametrize("continue_on_error", [True, False])
    def test_edges_to_vertices_of_skipped_type_are_skipped(
        self, make_loader, pool, continue_on_error
    ):
        """An edge into a type the schema dropped is skipped, not left unresolved."""
        schema = GraphSchema(
            vertices={"Person": VertexTypeDefinition()},
            edges={"KNOWS": EdgeTypeDefinition()},
        )

        result = make_loader(schema=schema).load_graph_data(
            GraphData(
                vertices={"Person": [{"id": "p1"}], "Robot": [{"id": "r1"}]},
                edges={"KNOWS": [{"from": "p1", "to": "r1"}]},
            ),
            LoadOptions(continue_on_error=continue_on_error),
        )

        assert result.success is True
        assert result.errors == ()
        assert result.edge_count == 0
        assert any("not defined in the schema" in w for w in result.warnings)
        assert any(
            "to endpoint 'r1' refers to a skipped vertex" in w for w in result.warnings
        )
        assert pool.db.vertex_ids("Person") == ["p1"]
        assert pool.db.edges == []

    def test_edges_to_vertices_of_invalid_type_name_are_skipped(self, make_loader, pool):
        result = make_loader().load_graph_data(
            {
                "vertices": {"Person": [{"id": "p1"}], "Bad Label": [{"id": "b1"}]},
                "edges": {"KNOWS": [{"from": "b1", "to": "p1"}]},
            },
            LoadOptions(continue_on_error=True),
        )

        assert result.success is True
        assert result.edge_count == 0
        assert any("refers to a skipped vertex" in w for w in result.warnings)

    @pytest.mark.parametrize(
        "driver_error",
        [
            psycopg2.errors.LockNotAvailable("could not obtain lock on relation"),
            psycopg2.errors.DeadlockDetected("deadlock detected"),
        ],
    )
    def test_lock_failure_in_one_batch_is_isolated(self, make_loader, pool, driver_error):
        """Lock failures are statement errors, so only their batch is dropped."""
        pool.db.fail_on(
            "CREATE (v:`Person`)",
            error=translated_driver_error(driver_error),
            times=1,
        )
        records = {"Person": [{"id": "p1"}, {"id": "p2"}, {"id": "p3"}]}

        result = make_loader().load_vertices(
            records, LoadOptions(batch_size=1, continue_on_error=True)
        )

        assert result.success is True
        assert result.vertex_count == 2
        assert len(result.errors) == 1
        assert result.errors[0].kind is ErrorKind.EXECUTION
        assert pool.db.vertex_ids("Person") == ["p2", "p3"]


class TestProgress:
    """Tests for progress reporting during a load."""

    def test_processed_is_monotonic_within_a_type(self, make_loader):
        events = []
        records = {"Person": [{"id": f"p{i}"} for i in range(5)]}

        make_loader().load_vertices(
            records, LoadOptions(batch_size=2, on_progress=events.append)
        )

        person_events = [
            e for e in events if e.phase is LoadPhase.VERTICES and e.current_type == "Person"
        ]
        processed = [e.processed for e in person_events]
        assert processed == sorted(processed)
        assert processed[-1] == 5
        assert [e.batch_number for e in person_events[1:]] == [1, 2, 3]
        assert all(0 <= e.percentage <= 100 for e in events)

    def test_phases_are_reported_in_order(self, make_loader):
        events = []

        make_loader().load_graph_data(
            GraphData(vertices=PEOPLE, edges={"KNOWS": [{"from": "p1", "to": "p2"}]}),
            LoadOptions(on_progress=events.append),
        )

        phases = list(dict.fromkeys(e.phase for e in events))
        assert phases == [
            LoadPhase.VALIDATION,
            LoadPhase.VERTICES,
            LoadPhase.EDGES,
            LoadPhase.CLEANUP,
        ]

    def test_failing_callback_does_not_fail_the_load(self, make_loader):
        def broken(progress):
            raise RuntimeError("callback broke")

        result = make_loader().load_vertices(PEOPLE, LoadOptions(on_progress=broken))

        assert result.success is True


class TestCancellationAndTimeout:
    """Tests for cooperative cancellation and transaction deadlines."""

    def test_abort_signal_between_batches(self, make_loader, pool, probe):
        abort = threading.Event()

        def stop_after_first_batch(progress):
            if progress.phase is LoadPhase.VERTICES and progress.batch_number == 1:
                abort.set()

        result = make_loader().load_vertices(
            PEOPLE,
            LoadOptions(
                batch_size=1, on_progress=stop_after_first_batch, abort_signal=abort
            ),
        )

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.CANCELLED
        assert result.errors[0].batch_number == 2
        assert pool.db.vertices == []
        probe.load_cancelled.assert_called_once_with(type_name="Person", batch_number=2)

    def test_transaction_timeout_rolls_back(self, make_loader, pool):
        clock = FakeClock()
        pool.db.on_statement("CREATE (v:`Person`)", lambda: clock.advance(10))

        result = make_loader(clock=clock).load_vertices(
            PEOPLE, LoadOptions(batch_size=1, transaction_timeout=5)
        )

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.TIMEOUT
        assert pool.db.vertices == []
        assert pool.outstanding == 0


class TestCallerTransaction:
    """Tests for loads inside a caller-supplied transaction."""

    def test_with_transaction_commits_all_loads_together(self, make_loader, pool):
        loader = make_loader()

        vertex_result, edge_result = loader.with_transaction(
            lambda tx: (
                loader.load_vertices(PEOPLE, transaction=tx),
                loader.load_edges({"KNOWS": [{"from": "p1", "to": "p2"}]}, transaction=tx),
            )
        )

        assert vertex_result.success and edge_result.success
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]
        assert len(pool.db.edges) == 1
        assert pool.db.staging == {}
        assert pool.outstanding == 0

    def test_failed_load_only_undoes_its_own_work(self, make_loader, pool):
        """The caller's transaction survives and keeps earlier loads."""
        loader = make_loader()

        vertex_result, edge_result = loader.with_transaction(
            lambda tx: (
                loader.load_vertices(PEOPLE, transaction=tx),
                loader.load_edges({"KNOWS": [{"from": "p1", "to": "p9"}]}, transaction=tx),
            )
        )

        assert vertex_result.success is True
        assert edge_result.success is False
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]
        assert pool.db.edges == []

    def test_caller_rollback_discards_loads(self, make_loader, pool):
        loader = make_loader()

        def work(tx):
            loader.load_vertices(PEOPLE, transaction=tx)
            raise RuntimeError("caller changed their mind")

        with pytest.raises(RuntimeError):
            loader.with_transaction(work)

        assert pool.db.vertices == []

    def test_inactive_transaction_is_rejected(self, make_loader):
        loader = make_loader()
        tx = loader._coordinator.begin()
        tx.commit()

        with pytest.raises(TransactionError, match="committed"):
            loader.load_vertices(PEOPLE, transaction=tx)


class TestValidateGraphData:
    """Tests for validation without loading."""

    def test_collects_every_error(self, make_loader, pool):
        schema = GraphSchema(
            vertices={
                "Person": VertexTypeDefinition(
                    properties={"name": PropertyDefinition(required=True)}
                )
            }
        )
        loader = make_loader(schema=schema, validator=GraphSchemaValidator(schema))

        report = loader.validate_graph_data(
            GraphData(vertices={"Person": [{"id": "p1"}, {"id": "p2"}, {"id": "p3", "name": "C"}]})
        )

        assert report.is_valid is False
        assert len(report.errors) == 2
        assert pool.acquired == 0

    def test_valid_data(self, make_loader):
        report = make_loader().validate_graph_data(GraphData(vertices=PEOPLE))

        assert report.is_valid is True
        assert report.errors == ()


class TestObservability:
    """Tests for probe events emitted by a load."""

    def test_state_machine_path_of_successful_load(self, make_loader, probe):
        make_loader().load_vertices(PEOPLE)

        states = [c.kwargs["state"] for c in probe.state_changed.call_args_list]
        assert states == [
            "validating",
            "loading_vertices",
            "loading_edges",
            "committing",
            "succeeded",
            "cleanup",
            "done",
        ]

    def test_state_machine_path_of_failed_load(self, make_loader, pool, probe):
        pool.db.fail_on("CREATE (v:`Person`)")

        make_loader().load_vertices(PEOPLE)

        states = [c.kwargs["state"] for c in probe.state_changed.call_args_list]
        assert states[-3:] == ["failed", "cleanup", "done"]

    def test_load_started_and_completed_once(self, make_loader, probe):
        make_loader().load_vertices(PEOPLE)

        probe.load_started.assert_called_once_with(
            vertex_types=1, edge_types=0, total_records=2
        )
        probe.load_completed.assert_called_once()
        assert probe.load_completed.call_args.kwargs["success"] is True


class TestLoadFromFile:
    """Tests for loading GraphData from a JSON document on disk."""

    def test_loads_vertices_and_edges(self, make_loader, pool, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(
            json.dumps(
                {
                    "vertices": PEOPLE,
                    "edges": {"KNOWS": [{"from": "p1", "to": "p2"}]},
                }
            )
        )

        result = make_loader().load_from_file(path)

        assert result.success is True
        assert result.vertex_count == 2
        assert result.edge_count == 1
        assert pool.db.vertex_ids("Person") == ["p1", "p2"]

    def test_accepts_string_path_and_options(self, make_loader, pool, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({"vertices": PEOPLE}))

        result = make_loader().load_from_file(str(path), LoadOptions(batch_size=1))

        assert result.success is True
        assert len(pool.db.statements_containing("CREATE (v:`Person`)")) == 2

    def test_document_without_members_is_empty(self, make_loader, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("{}")

        result = make_loader().load_from_file(path)

        assert result.success is True
        assert result.vertex_count == 0
        assert result.edge_count == 0

    def test_missing_file(self, make_loader, pool, probe, tmp_path):
        result = make_loader().load_from_file(tmp_path / "missing.json")

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.INPUT
        assert result.errors[0].message.startswith("File not found:")
        assert pool.acquired == 0
        probe.file_load_failed.assert_called_once()

    def test_unreadable_path(self, make_loader, pool, tmp_path):
        result = make_loader().load_from_file(tmp_path)

        assert result.success is False
        assert result.errors[0].message.startswith("Failed to read file:")
        assert pool.acquired == 0

    def test_invalid_json(self, make_loader, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"vertices": ')

        result = make_loader().load_from_file(path)

        assert result.success is False
        assert result.errors[0].kind is ErrorKind.INPUT
        assert result.errors[0].message.startswith("Failed to parse JSON file:")

    def test_document_must_be_an_object(self, make_loader, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        result = make_loader().load_from_file(path)

        assert result.success is False
        assert result.errors[0].message == "Invalid file format: expected an object"

    def test_members_of_the_wrong_shape(self, make_loader, pool, tmp_path):
        path = tmp_path / "shape.json"
        path.write_text(json.dumps({"vertices": [1]}))

        result = make_loader().load_from_file(path)

        assert result.success is False
        assert result.errors[0].message.startswith("Invalid file format:")
        assert pool.acquired == 0
