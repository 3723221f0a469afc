"""Bulk loading domain module.

Contains value objects, record normalisation and batch planning for the
bulk loading bounded context.
"""

from bulk_loading.domain.batching import Batch, BatchPlanner, estimate_total_batches
from bulk_loading.domain.value_objects import (
    EdgeTypeDefinition,
    EntityRole,
    ErrorKind,
    GraphData,
    GraphSchema,
    IsolationLevel,
    LoaderState,
    LoadErrorDetail,
    LoadOptions,
    LoadPhase,
    LoadProgress,
    LoadResult,
    PropertyDefinition,
    PropertyType,
    Statement,
    TransactionOptions,
    TransactionState,
    ValidationReport,
    VertexTypeDefinition,
    Violation,
)

__all__ = [
    "Batch",
    "BatchPlanner",
    "EdgeTypeDefinition",
    "EntityRole",
    "ErrorKind",
    "GraphData",
    "GraphSchema",
    "IsolationLevel",
    "LoadErrorDetail",
    "LoadOptions",
    "LoadPhase",
    "LoadProgress",
    "LoadResult",
    "LoaderState",
    "PropertyDefinition",
    "PropertyType",
    "Statement",
    "TransactionOptions",
    "TransactionState",
    "ValidationReport",
    "VertexTypeDefinition",
    "Violation",
    "estimate_total_batches",
]
