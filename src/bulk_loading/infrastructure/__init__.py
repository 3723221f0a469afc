"""PostgreSQL/AGE infrastructure for bulk loading.

Provides statement generation, the staging store, transaction coordination,
schema validation and default observability probes.
"""

from bulk_loading.infrastructure.observability import (
    DefaultBulkLoadProbe,
    DefaultTransactionProbe,
)
from bulk_loading.infrastructure.schema_validation import GraphSchemaValidator
from bulk_loading.infrastructure.staging import PostgresStagingStore
from bulk_loading.infrastructure.statements import (
    InsecureCypherQueryError,
    StagingTableLayout,
    StatementGenerator,
)
from bulk_loading.infrastructure.transaction import (
    Transaction,
    TransactionCoordinator,
)

__all__ = [
    "DefaultBulkLoadProbe",
    "DefaultTransactionProbe",
    "GraphSchemaValidator",
    "InsecureCypherQueryError",
    "PostgresStagingStore",
    "StagingTableLayout",
    "StatementGenerator",
    "Transaction",
    "TransactionCoordinator",
]
