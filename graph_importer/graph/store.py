"""
Graph store contracts.

The importer only talks to a store through these three interfaces:

- GraphStore:       opens management and data transactions
- GraphManagement:  schema inspection and creation (labels, keys, indexes)
- GraphTransaction: vertex lookup and mutation, committed atomically

Concrete stores: memory.InMemoryGraphStore, surreal.SurrealGraphStore.
"""

from enum import Enum
from typing import Any, Dict, Optional

from ..schema.types import Cardinality


class Multiplicity(str, Enum):
    SIMPLE = "simple"  # at most one edge of the label per ordered vertex pair
    MULTI = "multi"


class ElementKind(str, Enum):
    VERTEX = "vertex"
    EDGE = "edge"


class GraphManagement:
    """One management (schema) transaction."""

    def contains_vertex_label(self, name: str) -> bool:
        raise NotImplementedError

    def contains_edge_label(self, name: str) -> bool:
        raise NotImplementedError

    def contains_property_key(self, name: str) -> bool:
        raise NotImplementedError

    def contains_index(self, name: str) -> bool:
        raise NotImplementedError

    def make_vertex_label(self, name: str) -> None:
        raise NotImplementedError

    def make_edge_label(self, name: str, multiplicity: Multiplicity) -> None:
        raise NotImplementedError

    def make_property_key(self, name: str, datatype: str, cardinality: Cardinality) -> None:
        raise NotImplementedError

    def build_composite_index(self, name: str, element_kind: ElementKind, key: str) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class GraphTransaction:
    """One data transaction. Never shared between threads."""

    def find_vertex(self, key: str, value: Any) -> Optional[Any]:
        """Return a vertex reference whose property ``key`` equals ``value``."""
        raise NotImplementedError

    def add_vertex(self, label: str, properties: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def add_edge(
        self,
        label: str,
        out_vertex: Any,
        in_vertex: Any,
        properties: Dict[str, Any],
    ) -> None:
        raise NotImplementedError

    def set_vertex_property(self, vertex: Any, key: str, value: Any) -> None:
        """Set a single-valued key, or append to a list-cardinality key."""
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class GraphStore:
    """A shared store handle; safe to use from many threads."""

    def open_management(self) -> GraphManagement:
        raise NotImplementedError

    def new_transaction(self) -> GraphTransaction:
        raise NotImplementedError

    def commit(self) -> None:
        """Close the top-level (schema) transaction."""
        pass

    def close(self) -> None:
        pass
