"""
Workload Schema Definition.

A workload declares the vertex labels, edge labels and typed properties a
dataset uses, plus the file-name prefixes its CSV shards are written under.
Workloads are YAML files; the LDBC SNB interactive workload ships with the
package under ``workloads/``.

Schema tokens use ``.`` as a sub-delimiter:
- vertex-property keys: ``Person.email``
- edge triples:         ``Person.knows.Person``
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .types import PropertyType, parse_types


TUPLE_SPLIT = "."

WORKLOADS_DIR = Path(__file__).parent / "workloads"


class WorkloadSchema(BaseModel):
    """Immutable workload declaration, read-only for the whole run."""
    name: str = "workload"
    vertices: Dict[str, Dict[str, str]]
    edges: List[str] = Field(default_factory=list)
    edge_properties: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    vertex_files: Dict[str, str] = Field(default_factory=dict)
    vertex_property_files: Dict[str, str] = Field(default_factory=dict)
    edge_files: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("vertices", "edge_properties", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        """Labels declared without properties come back from YAML as None."""
        if v is None:
            return {}
        return {label: (props or {}) for label, props in v.items()}

    @field_validator("vertices", "edge_properties")
    @classmethod
    def types_parse(cls, v):
        for label, props in v.items():
            try:
                parse_types(props)
            except ValueError as e:
                raise ValueError(f"{label}: {e}") from None
        return v

    @model_validator(mode="after")
    def tokens_well_formed(self):
        for key in self.vertex_property_files:
            if len(key.split(TUPLE_SPLIT)) != 2:
                raise ValueError(f"Vertex property key must be <Label>.<property>: {key}")
        for triple in self.edge_files:
            if len(triple.split(TUPLE_SPLIT)) != 3:
                raise ValueError(f"Edge file key must be <Source>.<edge>.<Target>: {triple}")
        return self

    # ──────────────────────────────────────────────────────────────────────
    # Lookups
    # ──────────────────────────────────────────────────────────────────────

    @property
    def vertex_labels(self) -> List[str]:
        return list(self.vertices)

    def vertex_property_types(self, label: str) -> Dict[str, PropertyType]:
        return parse_types(self.vertices.get(label, {}))

    def edge_property_types(self, edge: str) -> Dict[str, PropertyType]:
        return parse_types(self.edge_properties.get(edge, {}))

    def vertex_property_type(self, label: str, prop: str) -> Optional[PropertyType]:
        declared = self.vertices.get(label, {}).get(prop)
        return PropertyType.parse(declared) if declared is not None else None

    def vertex_file_prefixes(self) -> Dict[str, str]:
        """Vertex label → file prefix (the lowercased label unless overridden)."""
        return {
            label: self.vertex_files.get(label, label.lower())
            for label in self.vertices
        }

    @staticmethod
    def split_property_key(key: str) -> Tuple[str, str]:
        label, prop = key.split(TUPLE_SPLIT)
        return label, prop

    @staticmethod
    def split_triple(triple: str) -> Tuple[str, str, str]:
        parts = triple.split(TUPLE_SPLIT)
        if len(parts) != 3:
            raise ValueError(
                f"Expected <Source>.<edge>.<Target> with two '.' delimiters, found {triple}"
            )
        return parts[0], parts[1], parts[2]


def load_workload(source: Union[str, Path]) -> WorkloadSchema:
    """
    Load a workload by bundled name (``interactive``) or by YAML path.

    Raises:
        FileNotFoundError: if neither a bundled workload nor a file matches.
    """
    path = Path(source)
    if not path.exists():
        bundled = WORKLOADS_DIR / f"{source}.yaml"
        if not bundled.exists():
            available = sorted(p.stem for p in WORKLOADS_DIR.glob("*.yaml"))
            raise FileNotFoundError(
                f"Workload not found: {source}. Bundled workloads: {available}"
            )
        path = bundled

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    raw.setdefault("name", path.stem)
    return WorkloadSchema(**raw)
