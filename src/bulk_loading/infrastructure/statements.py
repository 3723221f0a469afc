"""Statement generation for staged AGE bulk loading.

This class encapsulates all SQL and Cypher generation for the loader,
providing a single place to audit the statements sent to PostgreSQL/AGE.

AGE's ``cypher()`` function cannot take structured parameters, so record
values never appear in statement text. A batch is written to the staging
table as a bound JSON parameter, and the Cypher statement reads it back via
``UNWIND <schema>.get_staged_batch('<key>') AS item``.

SQL statements are composed with ``psycopg2.sql`` so identifiers are always
quoted. Cypher bodies are plain text holding only validated identifiers and
staging keys.
"""

from __future__ import annotations

import json
import re
import secrets
import string
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from psycopg2 import sql

from bulk_loading.domain.value_objects import (
    EDGE_ENDPOINT_KEYS,
    EntityRole,
    GraphSchema,
    PropertyRecord,
    Statement,
)
from bulk_loading.exceptions import ValidationError

from .utils import compute_stable_hash, validate_label_name

RETRIEVAL_FUNCTION = "get_staged_batch"

# Cypher calls the retrieval function unquoted, so staging names must already
# be in PostgreSQL's folded (lowercase) form to match the quoted SQL names.
_STAGING_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

_RETRIEVAL_FUNCTION_BODY = """
    CREATE OR REPLACE FUNCTION {function}(staging_key ag_catalog.agtype)
    RETURNS ag_catalog.agtype
    LANGUAGE plpgsql
    STABLE
    AS $fn$
    DECLARE
        staged JSONB;
    BEGIN
        IF staging_key IS NULL THEN
            RETURN '[]'::ag_catalog.agtype;
        END IF;
        SELECT value INTO staged
        FROM {table}
        WHERE key = trim(both '"' from staging_key::text);
        IF staged IS NULL OR jsonb_typeof(staged) <> 'array' THEN
            RETURN '[]'::ag_catalog.agtype;
        END IF;
        RETURN staged::text::ag_catalog.agtype;
    END;
    $fn$
"""


class InsecureCypherQueryError(ValidationError):
    """Raised when a Cypher body contains the dollar-quote tag meant to wrap it."""


@dataclass(frozen=True)
class StagingTableLayout:
    """Names of the staging schema, table and retrieval function.

    Names must be lowercase identifiers: SQL statements quote them, while
    the Cypher call to the retrieval function cannot.
    """

    schema: str = "age_loader"
    table: str = "staged_params"

    def __post_init__(self) -> None:
        for name, kind in ((self.schema, "schema"), (self.table, "table")):
            validate_label_name(name, kind=kind)
            if not _STAGING_NAME_PATTERN.match(name):
                raise ValidationError(
                    f"Invalid {kind} name '{name}': staging names must be lowercase"
                )

    @property
    def qualified_table(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def retrieval_function(self) -> str:
        return f"{self.schema}.{RETRIEVAL_FUNCTION}"

    @property
    def schema_identifier(self) -> sql.Identifier:
        return sql.Identifier(self.schema)

    @property
    def table_identifier(self) -> sql.Identifier:
        return sql.Identifier(self.schema, self.table)

    @property
    def function_identifier(self) -> sql.Identifier:
        return sql.Identifier(self.schema, RETRIEVAL_FUNCTION)


def _generate_nonce() -> str:
    return "".join(secrets.choice(string.ascii_letters) for _ in range(64))


def _property(name: str) -> str:
    return f"`{name}`"


class StatementGenerator:
    """Builds the staging, retrieval and bulk-create statements.

    Args:
        layout: Staging table layout
        schema: Optional graph schema supplying declared properties,
            identifying properties and edge endpoint types
        nonce_generator: Produces the body of each Cypher dollar-quote tag
    """

    def __init__(
        self,
        layout: StagingTableLayout | None = None,
        schema: GraphSchema | None = None,
        nonce_generator: Callable[[], str] | None = None,
    ):
        self._layout = layout or StagingTableLayout()
        self._schema = schema
        self._nonce_generator = nonce_generator or _generate_nonce

    @property
    def layout(self) -> StagingTableLayout:
        return self._layout

    @property
    def schema(self) -> GraphSchema | None:
        return self._schema

    # =========================================================================
    # Staging table
    # =========================================================================

    def install_statements(self) -> list[Statement]:
        """DDL that creates the staging schema, table and retrieval function.

        Every statement is idempotent. The advisory lock serialises concurrent
        installers, since ``CREATE ... IF NOT EXISTS`` is not race free.
        """
        layout = self._layout
        lock_key = compute_stable_hash(f"age_loader:install:{layout.qualified_table}")
        return [
            Statement("SELECT pg_advisory_xact_lock(%s)", (lock_key,)),
            Statement(
                sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(layout.schema_identifier)
            ),
            Statement(
                sql.SQL(
                    "CREATE TABLE IF NOT EXISTS {} ("
                    "key TEXT PRIMARY KEY, "
                    "value JSONB NOT NULL)"
                ).format(layout.table_identifier)
            ),
            Statement(
                sql.SQL(_RETRIEVAL_FUNCTION_BODY).format(
                    function=layout.function_identifier,
                    table=layout.table_identifier,
                )
            ),
        ]

    def staging_statement(self, key: str, records: Sequence[PropertyRecord]) -> Statement:
        """Upsert a batch under ``key``. Records travel as a bound JSON parameter."""
        self._validate_key(key)
        payload = json.dumps(list(records), allow_nan=False)
        return Statement(
            sql.SQL(
                "INSERT INTO {} (key, value) "
                "VALUES (%s, %s::jsonb) "
                "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value"
            ).format(self._layout.table_identifier),
            (key, payload),
        )

    def fetch_statement(self, key: str) -> Statement:
        return Statement(
            sql.SQL("SELECT value FROM {} WHERE key = %s").format(
                self._layout.table_identifier
            ),
            (key,),
        )

    def delete_statement(self, key: str) -> Statement:
        return Statement(
            sql.SQL("DELETE FROM {} WHERE key = %s").format(self._layout.table_identifier),
            (key,),
        )

    def purge_statement(self, namespace: str) -> Statement:
        """Delete every staged entry of a load namespace, returning the count."""
        return Statement(
            sql.SQL(
                "WITH purged AS ("
                "DELETE FROM {} "
                "WHERE starts_with(key, %s) RETURNING 1) "
                "SELECT count(*) FROM purged"
            ).format(self._layout.table_identifier),
            (f"{namespace}_",),
        )

    # =========================================================================
    # Graph statements
    # =========================================================================

    def advisory_lock_statement(self, graph_name: str, label: str) -> Statement:
        """Transaction-scoped lock serialising loads into the same label.

        AGE creates a label's backing table on first use; two transactions
        doing so concurrently fail, so loads take this lock first.
        """
        validate_label_name(graph_name, kind="graph")
        validate_label_name(label)
        lock_key = compute_stable_hash(f"{graph_name}:{label}")
        return Statement("SELECT pg_advisory_xact_lock(%s)", (lock_key,))

    def create_vertices_statement(
        self,
        graph_name: str,
        type_name: str,
        key: str,
        property_names: Iterable[str],
    ) -> Statement:
        """Create one vertex per staged record and return how many were created."""
        validate_label_name(type_name)
        assignments = self._assignments("v", property_names)
        query = (
            f"{self._unwind(key)} "
            f"CREATE (v:{_property(type_name)}){assignments} "
            "RETURN count(v)"
        )
        return Statement(self.wrap_cypher(graph_name, query))

    def create_edges_statement(
        self,
        graph_name: str,
        type_name: str,
        key: str,
        property_names: Iterable[str],
    ) -> Statement:
        """Create one relationship per staged record between existing vertices.

        Endpoints are matched on the identifying property of the declared
        endpoint types. Records whose endpoints do not resolve create nothing;
        run :meth:`unresolved_endpoints_statement` first to detect them.
        """
        validate_label_name(type_name)
        from_pattern, from_property = self._endpoint(type_name, "from")
        to_pattern, to_property = self._endpoint(type_name, "to")
        names = [name for name in property_names if name not in EDGE_ENDPOINT_KEYS]
        assignments = self._assignments("e", names)
        query = (
            f"{self._unwind(key)} "
            f"MATCH (a{from_pattern}), (b{to_pattern}) "
            f"WHERE a.{_property(from_property)} = item.`from` "
            f"AND b.{_property(to_property)} = item.`to` "
            f"CREATE (a)-[e:{_property(type_name)}]->(b){assignments} "
            "RETURN count(e)"
        )
        return Statement(self.wrap_cypher(graph_name, query))

    def unresolved_endpoints_statement(
        self, graph_name: str, type_name: str, key: str
    ) -> Statement:
        """Return one map per staged edge whose ``from`` or ``to`` does not resolve."""
        validate_label_name(type_name)
        from_pattern, from_property = self._endpoint(type_name, "from")
        to_pattern, to_property = self._endpoint(type_name, "to")
        query = (
            f"{self._unwind(key)} "
            f"OPTIONAL MATCH (a{from_pattern}) "
            f"WHERE a.{_property(from_property)} = item.`from` "
            f"OPTIONAL MATCH (b{to_pattern}) "
            f"WHERE b.{_property(to_property)} = item.`to` "
            "WITH item, a, b WHERE a IS NULL OR b IS NULL "
            "RETURN {source: item.`from`, target: item.`to`, "
            "source_found: a IS NOT NULL, target_found: b IS NOT NULL}"
        )
        return Statement(self.wrap_cypher(graph_name, query))

    def wrap_cypher(self, graph_name: str, query: str) -> str:
        """Build the SQL statement for executing a Cypher query via AGE.

        The result is of the form:
        SELECT * FROM cypher('graph_name', $<nonce>$ CYPHER_QUERY $<nonce>$) AS (result agtype)

        A unique dollar-quote tag is generated for each query instead of $$,
        so the Cypher body cannot terminate the quoting early. If the tag
        occurs in the query an InsecureCypherQueryError is raised.

        Note that the return type is fixed to a single agtype column, so the
        query must return exactly one value per row.
        """
        validate_label_name(graph_name, kind="graph")
        nonce = self._nonce_generator()
        if nonce in query:
            raise InsecureCypherQueryError("Unique nonce detected in cypher query.")
        tag = f"${nonce}$"
        return (
            f"SELECT * FROM cypher('{graph_name}', {tag} {query} {tag}) "
            "AS (result agtype)"
        )

    # =========================================================================
    # Schema metadata
    # =========================================================================

    def property_names(
        self,
        type_name: str,
        role: EntityRole,
        records: Sequence[PropertyRecord],
    ) -> list[str]:
        """Property names the create statement assigns.

        Declared properties are used when the schema knows the type, otherwise
        the ordered union of the records' keys. Edge endpoints are excluded.
        """
        names: list[str] = []
        declared = self._declared_properties(type_name, role)
        if declared is not None:
            names.extend(declared)
        else:
            for record in records:
                for name in record:
                    if name not in names:
                        names.append(name)
        if role is EntityRole.EDGE:
            names = [name for name in names if name not in EDGE_ENDPOINT_KEYS]
        for name in names:
            validate_label_name(name, kind="property")
        return names

    def _declared_properties(self, type_name: str, role: EntityRole) -> list[str] | None:
        if self._schema is None:
            return None
        if role is EntityRole.VERTEX:
            vertex_type = self._schema.vertices.get(type_name)
            if vertex_type is None:
                return None
            names = list(vertex_type.properties)
            if vertex_type.id_property not in names:
                names.insert(0, vertex_type.id_property)
            return names
        edge_type = self._schema.edges.get(type_name)
        if edge_type is None:
            return None
        return list(edge_type.properties)

    def _endpoint(self, type_name: str, endpoint: str) -> tuple[str, str]:
        """Label pattern and identifying property for one side of an edge type."""
        vertex_type = None
        if self._schema is not None and type_name in self._schema.edges:
            edge_type = self._schema.edges[type_name]
            vertex_type = edge_type.from_type if endpoint == "from" else edge_type.to_type
        id_property = (
            self._schema.id_property_for(vertex_type)
            if self._schema is not None
            else "id"
        )
        validate_label_name(id_property, kind="property")
        if vertex_type is None:
            return "", id_property
        validate_label_name(vertex_type)
        return f":{_property(vertex_type)}", id_property

    def _unwind(self, key: str) -> str:
        self._validate_key(key)
        return f"UNWIND {self._layout.retrieval_function}('{key}') AS item"

    @staticmethod
    def _assignments(variable: str, property_names: Iterable[str]) -> str:
        names = list(property_names)
        for name in names:
            validate_label_name(name, kind="property")
        if not names:
            return ""
        return " SET " + ", ".join(
            f"{variable}.{_property(name)} = item.{_property(name)}" for name in names
        )

    @staticmethod
    def _validate_key(key: str) -> None:
        # Keys are interpolated into Cypher string literals
        if not key or not all(ch.isalnum() or ch == "_" for ch in key) or not key.isascii():
            raise ValidationError(f"Invalid staging key '{key}'")
