"""
Schema Reconciler.

Brings the store's schema in line with a workload declaration by creating
only what is missing:

1. Vertex labels
2. Edge labels (SIMPLE multiplicity)
3. Property keys ``<label>.<property>`` for vertex and edge properties,
   plus a vertex-scoped composite index ``by<label>.<property>`` for the
   ``id`` and ``creationDate`` keys

Each create step runs in its own management transaction. Running it again on
a reconciled store performs no mutations.

Usage:
    report = SchemaReconciler(store).reconcile(schema)
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from loguru import logger

from ..errors import UnsupportedType
from ..graph.store import ElementKind, GraphManagement, GraphStore, Multiplicity
from .types import Cardinality, PropertyType, TypeRegistry
from .workload import TUPLE_SPLIT, WorkloadSchema


INDEXED_PROPERTIES = ("id", "creationDate")


@dataclass(frozen=True)
class PropertyKeyDescriptor:
    """A property key derived from the workload declaration."""
    label: str
    name: str
    value_type: PropertyType
    cardinality: Cardinality
    indexed: bool = False

    @property
    def key(self) -> str:
        return f"{self.label}{TUPLE_SPLIT}{self.name}"

    @property
    def index_name(self) -> str:
        return f"by{self.key}"


@dataclass
class ReconcileReport:
    """What a reconciliation run created and skipped."""
    vertex_labels: List[str] = field(default_factory=list)
    edge_labels: List[str] = field(default_factory=list)
    property_keys: List[str] = field(default_factory=list)
    indexes: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    completed: bool = False

    @property
    def mutations(self) -> int:
        return (
            len(self.vertex_labels)
            + len(self.edge_labels)
            + len(self.property_keys)
            + len(self.indexes)
        )


def describe_properties(schema: WorkloadSchema) -> List[PropertyKeyDescriptor]:
    """Property keys for every vertex and edge property, in declaration order."""
    descriptors = []
    for label in schema.vertex_labels:
        for name, ptype in schema.vertex_property_types(label).items():
            descriptors.append(PropertyKeyDescriptor(
                label, name, ptype, ptype.cardinality, indexed=name in INDEXED_PROPERTIES,
            ))
    for edge in schema.edges:
        for name, ptype in schema.edge_property_types(edge).items():
            descriptors.append(PropertyKeyDescriptor(
                edge, name, ptype, ptype.cardinality, indexed=name in INDEXED_PROPERTIES,
            ))
    return descriptors


class SchemaReconciler:
    """Creates the workload's missing labels, property keys and indexes."""

    def __init__(self, store: GraphStore, registry: Optional[TypeRegistry] = None):
        self.store = store
        self.registry = registry or TypeRegistry()
        self.logger = logger.bind(component="SchemaReconciler")

    def reconcile(self, schema: WorkloadSchema) -> ReconcileReport:
        report = ReconcileReport()
        self.logger.info(f"Reconciling schema for workload '{schema.name}'")

        for label in schema.vertex_labels:
            if self._step(
                lambda m: m.contains_vertex_label(label),
                lambda m: m.make_vertex_label(label),
            ):
                report.vertex_labels.append(label)
                self.logger.debug(f"Created vertex label {label}")

        for edge in schema.edges:
            if self._step(
                lambda m: m.contains_edge_label(edge),
                lambda m: m.make_edge_label(edge, Multiplicity.SIMPLE),
            ):
                report.edge_labels.append(edge)
                self.logger.debug(f"Created edge label {edge}")

        for descriptor in describe_properties(schema):
            self._reconcile_property(descriptor, report)

        self.store.commit()
        report.completed = True
        self.logger.info(
            f"Schema reconciled: {len(report.vertex_labels)} vertex labels, "
            f"{len(report.edge_labels)} edge labels, {len(report.property_keys)} property keys, "
            f"{len(report.indexes)} indexes created; {len(report.skipped)} skipped"
        )
        return report

    def _reconcile_property(self, descriptor: PropertyKeyDescriptor, report: ReconcileReport) -> None:
        key = descriptor.key
        try:
            self.registry.parser_for(descriptor.value_type)
        except UnsupportedType as e:
            self.logger.warning(f"Skipping property {key}: {e}")
            report.skipped.append(key)
            return

        def make_key(m: GraphManagement) -> None:
            m.make_property_key(
                key, descriptor.value_type.store_datatype, descriptor.cardinality,
            )
            if descriptor.indexed and not m.contains_index(descriptor.index_name):
                m.build_composite_index(descriptor.index_name, ElementKind.VERTEX, key)
                report.indexes.append(descriptor.index_name)

        if self._step(lambda m: m.contains_property_key(key), make_key):
            report.property_keys.append(key)
            self.logger.debug(
                f"Created property key {key} ({descriptor.value_type.store_datatype}, "
                f"{descriptor.cardinality.value})"
            )
            return

        # Key already present; its index may still be missing
        if descriptor.indexed and self._step(
            lambda m: m.contains_index(descriptor.index_name),
            lambda m: m.build_composite_index(descriptor.index_name, ElementKind.VERTEX, key),
        ):
            report.indexes.append(descriptor.index_name)
            self.logger.debug(f"Created index {descriptor.index_name}")

    def _step(
        self,
        exists: Callable[[GraphManagement], bool],
        create: Callable[[GraphManagement], None],
    ) -> bool:
        """Run one management transaction; returns True if it created something."""
        management = self.store.open_management()
        try:
            if exists(management):
                management.rollback()
                return False
            create(management)
            management.commit()
            return True
        except Exception:
            management.rollback()
            raise
