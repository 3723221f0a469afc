"""Domain value objects for the bulk loading bounded context.

These are immutable data structures that represent domain concepts
within the loader. They have no identity - equality is based on their
attribute values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Closed representation of a property value. Every record is normalised into
# this shape before it is serialised into the staging table.
PropertyValue: TypeAlias = Union[
    str,
    int,
    float,
    bool,
    None,
    list["PropertyValue"],
    dict[str, "PropertyValue"],
]
PropertyRecord: TypeAlias = dict[str, PropertyValue]

# Record keys that carry edge endpoints rather than edge properties.
EDGE_ENDPOINT_KEYS: frozenset[str] = frozenset({"from", "to"})

DEFAULT_ID_PROPERTY = "id"


class EntityRole(str, Enum):
    """Whether a type describes vertices or edges."""

    VERTEX = "vertex"
    EDGE = "edge"


class LoadPhase(str, Enum):
    """Phase of a load operation reported in progress events."""

    VALIDATION = "validation"
    VERTICES = "vertices"
    EDGES = "edges"
    CLEANUP = "cleanup"


class LoaderState(str, Enum):
    """States of a single load operation."""

    IDLE = "idle"
    VALIDATING = "validating"
    LOADING_VERTICES = "loading_vertices"
    LOADING_EDGES = "loading_edges"
    COMMITTING = "committing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CLEANUP = "cleanup"
    DONE = "done"


class TransactionState(str, Enum):
    """Lifecycle states of a transaction."""

    CREATED = "created"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class IsolationLevel(str, Enum):
    """PostgreSQL transaction isolation levels."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class ErrorKind(str, Enum):
    """Taxonomy of errors reported in a LoadResult."""

    VALIDATION = "validation"
    STAGING = "staging"
    EXECUTION = "execution"
    TRANSACTION = "transaction"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INPUT = "input"


class PropertyType(str, Enum):
    """Declared type of a schema property."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class AbortSignal(Protocol):
    """Cooperative cancellation signal, e.g. ``threading.Event``."""

    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class Statement:
    """An executable statement: text plus bound parameters.

    Values only ever travel in ``params``; ``text`` holds identifiers and
    staging keys but never record data. ``text`` is either a plain string or
    a composed SQL object the database driver renders (``psycopg2.sql``).
    """

    text: Any
    params: tuple[Any, ...] | None = None


class PropertyDefinition(BaseModel):
    """Declared property of a vertex or edge type."""

    model_config = ConfigDict(frozen=True)

    type: PropertyType = Field(default=PropertyType.ANY)
    required: bool = Field(default=False)


class VertexTypeDefinition(BaseModel):
    """Schema metadata for one vertex type."""

    model_config = ConfigDict(frozen=True)

    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)
    id_property: str = Field(default=DEFAULT_ID_PROPERTY)


class EdgeTypeDefinition(BaseModel):
    """Schema metadata for one edge type.

    ``from_type``/``to_type`` name the vertex types the endpoints resolve
    against. When omitted, endpoints are matched on any label.
    """

    model_config = ConfigDict(frozen=True)

    from_type: str | None = Field(default=None)
    to_type: str | None = Field(default=None)
    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)


class GraphSchema(BaseModel):
    """Declared vertex and edge types of a graph."""

    model_config = ConfigDict(frozen=True)

    vertices: dict[str, VertexTypeDefinition] = Field(default_factory=dict)
    edges: dict[str, EdgeTypeDefinition] = Field(default_factory=dict)

    def id_property_for(self, vertex_type: str | None) -> str:
        """Identifying property of a vertex type (``id`` when undeclared)."""
        if vertex_type is None or vertex_type not in self.vertices:
            return DEFAULT_ID_PROPERTY
        return self.vertices[vertex_type].id_property


class Violation(BaseModel):
    """A single schema violation reported by a validator."""

    model_config = ConfigDict(frozen=True)

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class ValidationReport(BaseModel):
    """Outcome of validating a whole GraphData without loading it."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class GraphData(BaseModel):
    """Vertices and edges to load, grouped by type name.

    Map insertion order is the processing order. Callers must list vertex
    types before the edge types that reference them. Individual records are
    checked at load time, so one malformed record does not reject the whole
    document.

    Example:
        GraphData(
            vertices={"Person": [{"id": "p1", "name": "Alice"}]},
            edges={"KNOWS": [{"from": "p1", "to": "p2", "since": 2010}]},
        )
    """

    model_config = ConfigDict(frozen=True)

    vertices: dict[str, list[Any]] = Field(default_factory=dict)
    edges: dict[str, list[Any]] = Field(default_factory=dict)

    @property
    def vertex_total(self) -> int:
        return sum(len(records) for records in self.vertices.values())

    @property
    def edge_total(self) -> int:
        return sum(len(records) for records in self.edges.values())


class LoadProgress(BaseModel):
    """A progress event emitted by the loader.

    One instance is built per meaningful step and never changed afterwards.
    """

    model_config = ConfigDict(frozen=True)

    phase: LoadPhase
    current_type: str
    processed: int = Field(ge=0)
    total: int = Field(ge=0)
    batch_number: int | None = None
    total_batches: int | None = None
    elapsed_time: float = Field(default=0.0, ge=0)
    estimated_time_remaining: float | None = None
    warnings: tuple[str, ...] = ()
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        """Completion within the current type, clamped to [0, 100]."""
        if self.total == 0:
            return 100.0
        return max(0.0, min(100.0, self.processed / self.total * 100))

    @classmethod
    def create(
        cls,
        phase: LoadPhase,
        current_type: str,
        processed: int,
        total: int,
        elapsed_time: float,
        **kwargs: Any,
    ) -> LoadProgress:
        """Build a progress event, estimating the remaining time.

        The estimate is ``elapsed * (total - processed) / processed`` and is
        omitted until at least one item has been processed.
        """
        estimate = None
        if processed > 0:
            estimate = elapsed_time * max(total - processed, 0) / processed
        return cls(
            phase=phase,
            current_type=current_type,
            processed=processed,
            total=total,
            elapsed_time=elapsed_time,
            estimated_time_remaining=estimate,
            **kwargs,
        )


ProgressCallback: TypeAlias = Callable[[LoadProgress], None]


class LoadOptions(BaseModel):
    """Per-call load options.

    Fields left as None fall back to ``LoaderSettings`` (and the database
    settings for the graph name) when the loader resolves them.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    graph_name: str | None = Field(
        default=None, pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$", max_length=63
    )
    batch_size: int | None = Field(default=None, gt=0)
    validate_before_load: bool | None = None
    continue_on_error: bool | None = None
    transaction_timeout: float | None = Field(default=None, gt=0)
    cleanup_staging: bool | None = None
    on_progress: ProgressCallback | None = None
    abort_signal: Any | None = None


class TransactionOptions(BaseModel):
    """Options applied when a transaction begins."""

    model_config = ConfigDict(frozen=True)

    isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED
    read_only: bool = False
    timeout: float | None = Field(default=None, gt=0)


class LoadErrorDetail(BaseModel):
    """An error recorded in a LoadResult."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    phase: LoadPhase | None = None
    type_name: str | None = None
    batch_number: int | None = None
    record_index: int | None = None


class LoadResult(BaseModel):
    """Summary of one load call. Produced exactly once per call."""

    model_config = ConfigDict(frozen=True)

    success: bool
    vertex_count: int = 0
    edge_count: int = 0
    vertex_types: tuple[str, ...] = ()
    edge_types: tuple[str, ...] = ()
    duration: float = 0.0
    errors: tuple[LoadErrorDetail, ...] = ()
    warnings: tuple[str, ...] = ()
