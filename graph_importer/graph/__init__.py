"""
Graph Layer - store contracts and backends.

The importer writes through GraphStore; InMemoryGraphStore backs dry runs
and tests, SurrealGraphStore writes to SurrealDB.
"""

from .factory import create_store
from .memory import InMemoryGraphStore
from .store import ElementKind, GraphManagement, GraphStore, GraphTransaction, Multiplicity

__all__ = [
    "create_store",
    "ElementKind",
    "GraphManagement",
    "GraphStore",
    "GraphTransaction",
    "InMemoryGraphStore",
    "Multiplicity",
]
