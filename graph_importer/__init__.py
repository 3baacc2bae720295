"""
Graph Bulk Importer.

Loads pipe-delimited LDBC SNB shards into a property-graph store.

Layers:
- Schema: workload declarations, type coercion, schema reconciliation
- Graph: store contracts, in-memory and SurrealDB backends
- Loading: partitioning, worker pools, batch loader tasks, stats
"""

from .errors import (
    CommitFailure,
    ConnectionFailure,
    ImporterError,
    PoolFailure,
    RowParseFailure,
    SchemaViolation,
    UnsupportedType,
)
from .loading import BulkImporter, ImportReport

__all__ = [
    "BulkImporter",
    "ImportReport",
    "CommitFailure",
    "ConnectionFailure",
    "ImporterError",
    "PoolFailure",
    "RowParseFailure",
    "SchemaViolation",
    "UnsupportedType",
]
