"""Composition of the bulk loader from settings.

Builds the connection pool, transaction coordinator, staging store and
batch loader, the way an application wires them at startup.
"""

from __future__ import annotations

from bulk_loading.application.batch_loader import BatchLoader
from bulk_loading.domain.value_objects import GraphSchema
from bulk_loading.infrastructure.schema_validation import GraphSchemaValidator
from bulk_loading.infrastructure.staging import PostgresStagingStore
from bulk_loading.infrastructure.statements import StagingTableLayout, StatementGenerator
from bulk_loading.infrastructure.transaction import TransactionCoordinator
from bulk_loading.ports.protocols import ConnectionPoolProtocol, SchemaValidator
from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.logging import configure_logging
from infrastructure.settings import Settings, get_settings


def build_batch_loader(
    settings: Settings | None = None,
    schema: GraphSchema | None = None,
    validator: SchemaValidator | None = None,
    pool: ConnectionPoolProtocol | None = None,
    log_level: int | None = None,
) -> BatchLoader:
    """Wire a BatchLoader from settings.

    Args:
        settings: Application settings (defaults to cached environment settings)
        schema: Optional graph schema. Supplies declared properties and edge
            endpoint types, and a GraphSchemaValidator when no validator is given
        validator: Schema collaborator run before loading
        pool: Connection pool to use instead of creating one
        log_level: When given, configure structlog at this level first.
            Applications that configure logging themselves leave it unset.

    Returns:
        A ready BatchLoader. The caller owns the pool it was built with.
    """
    if log_level is not None:
        configure_logging(log_level)

    settings = settings or get_settings()
    database_settings = settings.database
    loader_settings = settings.loader

    if pool is None:
        pool = ConnectionPool(database_settings)
    if validator is None and schema is not None:
        validator = GraphSchemaValidator(schema)

    generator = StatementGenerator(
        StagingTableLayout(
            schema=loader_settings.staging_schema,
            table=loader_settings.staging_table,
        ),
        schema=schema,
    )
    return BatchLoader(
        coordinator=TransactionCoordinator(pool),
        store=PostgresStagingStore(generator),
        generator=generator,
        validator=validator,
        settings=loader_settings,
        graph_name=database_settings.graph_name,
    )
