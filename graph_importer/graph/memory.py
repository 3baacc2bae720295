"""
In-memory graph store.

Thread-safe reference implementation of the store contracts. Used for dry
runs (``store.backend: memory``) and by the test suite, which inspects the
recorded schema mutations and committed transaction sizes.
"""

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..schema.types import Cardinality
from .store import ElementKind, GraphManagement, GraphStore, GraphTransaction, Multiplicity


@dataclass
class MemoryVertex:
    id: int
    label: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MemoryEdge:
    label: str
    out_id: int
    in_id: int
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PropertyKeyDef:
    name: str
    datatype: str
    cardinality: Cardinality


class InMemoryGraphStore(GraphStore):
    """Dictionary-backed graph with atomic, lock-protected commits."""

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)

        self.vertex_labels: Dict[str, None] = {}
        self.edge_labels: Dict[str, Multiplicity] = {}
        self.property_keys: Dict[str, PropertyKeyDef] = {}
        self.indexes: Dict[str, Tuple[ElementKind, str]] = {}

        self.vertices: Dict[int, MemoryVertex] = {}
        self.edges: List[MemoryEdge] = []
        self._by_property: Dict[Tuple[str, Any], List[int]] = {}
        self._edge_pairs: set = set()

        # Observability for callers and tests
        self.schema_mutations: List[Tuple[str, str]] = []
        self.committed_batches: List[int] = []
        self.top_level_commits = 0
        self.closed = False
        self.logger = logger.bind(component="InMemoryGraphStore")

    def open_management(self) -> "MemoryManagement":
        return MemoryManagement(self)

    def new_transaction(self) -> "MemoryTransaction":
        return MemoryTransaction(self)

    def commit(self) -> None:
        with self._lock:
            self.top_level_commits += 1

    def close(self) -> None:
        self.closed = True
        self.logger.debug(
            f"Closed in-memory store: {len(self.vertices)} vertices, {len(self.edges)} edges"
        )

    # ──────────────────────────────────────────────────────────────────────
    # Read helpers
    # ──────────────────────────────────────────────────────────────────────

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def lookup(self, key: str, value: Any) -> Optional[int]:
        with self._lock:
            ids = self._by_property.get((key, value))
            return ids[0] if ids else None

    def vertices_with_label(self, label: str) -> List[MemoryVertex]:
        with self._lock:
            return [v for v in self.vertices.values() if v.label == label]

    def edges_with_label(self, label: str) -> List[MemoryEdge]:
        with self._lock:
            return [e for e in self.edges if e.label == label]

    def cardinality_of(self, key: str) -> Cardinality:
        definition = self.property_keys.get(key)
        return definition.cardinality if definition else Cardinality.SINGLE

    # ──────────────────────────────────────────────────────────────────────
    # Write helpers (caller holds the lock)
    # ──────────────────────────────────────────────────────────────────────

    def _index_value(self, vertex_id: int, key: str, value: Any) -> None:
        values = value if isinstance(value, list) else [value]
        for v in values:
            self._by_property.setdefault((key, v), []).append(vertex_id)

    def _insert_vertex(self, vertex: MemoryVertex) -> None:
        self.vertices[vertex.id] = vertex
        for key, value in vertex.properties.items():
            self._index_value(vertex.id, key, value)

    def _check_edges(self, edges: List[MemoryEdge], pending_ids: set) -> None:
        known = set(self.vertices) | pending_ids
        pairs = set()
        for edge in edges:
            if edge.out_id not in known or edge.in_id not in known:
                raise KeyError(f"Edge {edge.label} references an unknown vertex")
            pair = (edge.label, edge.out_id, edge.in_id)
            if self.edge_labels.get(edge.label) == Multiplicity.SIMPLE and (
                pair in self._edge_pairs or pair in pairs
            ):
                raise ValueError(
                    f"Multiplicity SIMPLE violated for {edge.label}: "
                    f"{edge.out_id} -> {edge.in_id} already exists"
                )
            pairs.add(pair)

    def _insert_edge(self, edge: MemoryEdge) -> None:
        self._edge_pairs.add((edge.label, edge.out_id, edge.in_id))
        self.edges.append(edge)

    def _set_property(self, vertex_id: int, key: str, value: Any) -> None:
        vertex = self.vertices.get(vertex_id)
        if vertex is None:
            raise KeyError(f"Unknown vertex {vertex_id}")
        if self.cardinality_of(key) == Cardinality.LIST:
            vertex.properties.setdefault(key, []).append(value)
        else:
            previous = vertex.properties.get(key)
            if previous is not None and not isinstance(previous, list):
                ids = self._by_property.get((key, previous), [])
                if vertex_id in ids:
                    ids.remove(vertex_id)
            vertex.properties[key] = value
        self._index_value(vertex_id, key, value)


class MemoryManagement(GraphManagement):
    """Buffers schema changes until commit."""

    def __init__(self, store: InMemoryGraphStore):
        self.store = store
        self._pending: List[Tuple[str, str, tuple]] = []

    def _pending_names(self, kind: str) -> set:
        return {name for k, name, _ in self._pending if k == kind}

    def contains_vertex_label(self, name: str) -> bool:
        return name in self.store.vertex_labels or name in self._pending_names("vertex_label")

    def contains_edge_label(self, name: str) -> bool:
        return name in self.store.edge_labels or name in self._pending_names("edge_label")

    def contains_property_key(self, name: str) -> bool:
        return name in self.store.property_keys or name in self._pending_names("property_key")

    def contains_index(self, name: str) -> bool:
        return name in self.store.indexes or name in self._pending_names("index")

    def make_vertex_label(self, name: str) -> None:
        self._pending.append(("vertex_label", name, ()))

    def make_edge_label(self, name: str, multiplicity: Multiplicity) -> None:
        self._pending.append(("edge_label", name, (multiplicity,)))

    def make_property_key(self, name: str, datatype: str, cardinality: Cardinality) -> None:
        self._pending.append(("property_key", name, (datatype, cardinality)))

    def build_composite_index(self, name: str, element_kind: ElementKind, key: str) -> None:
        self._pending.append(("index", name, (element_kind, key)))

    def commit(self) -> None:
        store = self.store
        with store._lock:
            for kind, name, args in self._pending:
                if kind == "vertex_label":
                    store.vertex_labels[name] = None
                elif kind == "edge_label":
                    store.edge_labels[name] = args[0]
                elif kind == "property_key":
                    store.property_keys[name] = PropertyKeyDef(name, *args)
                elif kind == "index":
                    if args[1] not in store.property_keys:
                        raise KeyError(f"Index {name} on unknown property key {args[1]}")
                    store.indexes[name] = args
                store.schema_mutations.append((kind, name))
        self._pending = []

    def rollback(self) -> None:
        self._pending = []


class MemoryTransaction(GraphTransaction):
    """Buffers data mutations; commit applies them atomically."""

    def __init__(self, store: InMemoryGraphStore):
        self.store = store
        self._vertices: List[MemoryVertex] = []
        self._edges: List[MemoryEdge] = []
        self._properties: List[Tuple[int, str, Any]] = []
        self._operations = 0

    def find_vertex(self, key: str, value: Any) -> Optional[int]:
        for vertex in self._vertices:
            if vertex.properties.get(key) == value:
                return vertex.id
        return self.store.lookup(key, value)

    def add_vertex(self, label: str, properties: Dict[str, Any]) -> int:
        vertex = MemoryVertex(self.store.next_id(), label, dict(properties))
        self._vertices.append(vertex)
        self._operations += 1
        return vertex.id

    def add_edge(self, label: str, out_vertex: int, in_vertex: int, properties: Dict[str, Any]) -> None:
        self._edges.append(MemoryEdge(label, out_vertex, in_vertex, dict(properties)))
        self._operations += 1

    def set_vertex_property(self, vertex: int, key: str, value: Any) -> None:
        self._properties.append((vertex, key, value))
        self._operations += 1

    def commit(self) -> None:
        store = self.store
        with store._lock:
            store._check_edges(self._edges, {v.id for v in self._vertices})
            for vertex_id, _, _ in self._properties:
                if vertex_id not in store.vertices:
                    raise KeyError(f"Unknown vertex {vertex_id}")
            for vertex in self._vertices:
                store._insert_vertex(vertex)
            for edge in self._edges:
                store._insert_edge(edge)
            for vertex_id, key, value in self._properties:
                store._set_property(vertex_id, key, value)
            store.committed_batches.append(self._operations)
        self.rollback()

    def rollback(self) -> None:
        self._vertices = []
        self._edges = []
        self._properties = []
        self._operations = 0
