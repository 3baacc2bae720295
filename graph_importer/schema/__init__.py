"""
Schema Layer - workload declarations and the type coercion registry.

The reconciler lives in ``graph_importer.schema.reconciler``; it depends on
the graph store contracts, which in turn depend on this package's types.
"""

from .types import Cardinality, PropertyType, TypeRegistry
from .workload import WorkloadSchema, load_workload

__all__ = [
    "Cardinality",
    "PropertyType",
    "TypeRegistry",
    "WorkloadSchema",
    "load_workload",
]
