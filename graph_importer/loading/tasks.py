"""
Batch Loader Tasks.

One task per CSV shard. A FileLoader streams the shard, validates its header
against the workload, coerces each row and groups rows into batches; each
batch is applied on the writer pool in its own store transaction and the
loader waits for that commit before reading on.

Task kinds differ only in their row handler:

- vertex:          ``<Label>.id|prop|prop...``       → one vertex per row
- vertex_property: ``<Label>.id|prop``               → set/append a property
- edge:            ``<Source>.id|<Target>.id|prop..`` → one edge per row

Task lifecycle:
    PENDING → OPENED → HEADER_VALIDATED → STREAMING → COMMITTED* → CLOSED
    (FAILED from any state)
"""

import csv
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Sequence, Tuple

from loguru import logger

from ..errors import CommitFailure, RowParseFailure, SchemaViolation, UnsupportedType
from ..graph.store import GraphStore, GraphTransaction
from ..schema.types import PropertyType, TypeRegistry
from ..schema.workload import TUPLE_SPLIT, WorkloadSchema
from .pool import WorkerPool
from .stats import LoadingStats


FIELD_DELIMITER = "|"

DEFAULT_ID_TYPE = PropertyType("long")


class TaskKind(str, Enum):
    VERTEX = "vertex"
    VERTEX_PROPERTY = "vertex_property"
    EDGE = "edge"


class TaskState(str, Enum):
    PENDING = "pending"
    OPENED = "opened"
    HEADER_VALIDATED = "header_validated"
    STREAMING = "streaming"
    COMMITTED = "committed"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadTask:
    """
    One shard to load.

    ``label`` is the vertex label, the ``<Label>.<property>`` key or the
    ``<Source>.<edge>.<Target>`` triple, depending on ``kind``.
    """
    kind: TaskKind
    path: Path
    label: str
    writer: WorkerPool = field(compare=False, repr=False)


@dataclass
class TaskResult:
    """Outcome of one loader task."""
    path: Path
    label: str
    kind: TaskKind
    state: TaskState = TaskState.PENDING
    rows_loaded: int = 0
    commits: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    failed_row: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.state == TaskState.CLOSED and self.error is None


@dataclass
class Batch:
    """Parsed rows awaiting one commit, each tagged with its file line."""
    rows: List[Tuple[int, Any]] = field(default_factory=list)

    def add(self, line_no: int, row: Any) -> None:
        self.rows.append((line_no, row))

    def __len__(self) -> int:
        return len(self.rows)


class VertexNotFound(LookupError):
    """A row references a vertex id that is not in the store."""


# ──────────────────────────────────────────────────────────────────────────────
# Row handlers
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Column:
    """A header column resolved to its store key and parser."""
    name: str
    key: str
    ptype: PropertyType
    parse: Any


class RowHandler:
    """Header validation, row parsing and row application for one task kind."""

    counter = "vertices"

    def __init__(self, label: str, schema: WorkloadSchema, registry: TypeRegistry, path: Path):
        self.label = label
        self.schema = schema
        self.registry = registry
        self.path = Path(path)
        self.columns: List[Column] = []
        self.logger = logger.bind(component=type(self).__name__)

    def validate_header(self, header: Sequence[str]) -> None:
        raise NotImplementedError

    def parse_row(self, fields: Sequence[str], line_no: int) -> Any:
        raise NotImplementedError

    def apply_row(self, tx: GraphTransaction, row: Any) -> None:
        raise NotImplementedError

    # ──────────────────────────────────────────────────────────────────────
    # Shared helpers
    # ──────────────────────────────────────────────────────────────────────

    def _violation(self, message: str) -> SchemaViolation:
        return SchemaViolation(f"{self.path.name}: {message}")

    def _id_type(self, label: str) -> PropertyType:
        return self.schema.vertex_property_type(label, "id") or DEFAULT_ID_TYPE

    def _column(self, name: str, key: str, ptype: PropertyType, element: bool = False) -> Optional[Column]:
        target = ptype.element() if element else ptype
        try:
            parse = self.registry.parser_for(target)
        except UnsupportedType as e:
            if name == "id" or name.endswith(f"{TUPLE_SPLIT}id"):
                raise
            self.logger.warning(f"{self.path.name}: ignoring column {name}: {e}")
            return None
        return Column(name, key, ptype, parse)

    def _check_width(self, fields: Sequence[str], width: int, line_no: int) -> None:
        if len(fields) != width:
            raise RowParseFailure(
                self.path, line_no, f"expected {width} fields, found {len(fields)}"
            )

    def _coerce(self, column: Column, raw: str, line_no: int) -> Any:
        try:
            return column.parse(raw)
        except (ValueError, ArithmeticError) as e:
            raise RowParseFailure(
                self.path, line_no, f"column {column.name}: cannot parse {raw!r} as {column.ptype}: {e}"
            ) from None

    def _coerce_id(self, column: Column, raw: str, line_no: int) -> Any:
        if raw == "":
            raise RowParseFailure(self.path, line_no, f"column {column.name}: empty id")
        return self._coerce(column, raw, line_no)

    def _properties(self, columns: Sequence[Optional[Column]], fields: Sequence[str], line_no: int) -> Dict[str, Any]:
        properties = {}
        for column, raw in zip(columns, fields):
            if column is None or raw == "":
                continue
            properties[column.key] = self._coerce(column, raw, line_no)
        return properties

    def _lookup(self, tx: GraphTransaction, key: str, value: Any) -> Any:
        vertex = tx.find_vertex(key, value)
        if vertex is None:
            raise VertexNotFound(f"no vertex with {key} = {value!r}")
        return vertex


class VertexRows(RowHandler):
    """Main vertex files: ``<Label>.id`` followed by declared properties."""

    counter = "vertices"

    def validate_header(self, header: Sequence[str]) -> None:
        label = self.label
        if label not in self.schema.vertices:
            raise self._violation(
                f"vertex label {label} not declared, found {self.schema.vertex_labels}"
            )
        id_column = f"{label}{TUPLE_SPLIT}id"
        if header[0] != id_column:
            raise self._violation(f"first column is not labeled {id_column}, but: {header[0]}")

        declared = self.schema.vertex_property_types(label)
        seen = set()
        columns = [self._column(id_column, id_column, self._id_type(label))]
        for name in header[1:]:
            if name == "id" or name not in declared:
                raise self._violation(
                    f"unknown property {name} for {label}, expected one of {sorted(declared)}"
                )
            if name in seen:
                raise self._violation(f"duplicate column {name}")
            seen.add(name)
            columns.append(self._column(name, f"{label}{TUPLE_SPLIT}{name}", declared[name]))
        self.columns = columns

    def parse_row(self, fields: Sequence[str], line_no: int) -> Dict[str, Any]:
        self._check_width(fields, len(self.columns), line_no)
        vertex_id = self._coerce_id(self.columns[0], fields[0], line_no)
        properties = {self.columns[0].key: vertex_id}
        properties.update(self._properties(self.columns[1:], fields[1:], line_no))
        return properties

    def apply_row(self, tx: GraphTransaction, row: Dict[str, Any]) -> None:
        tx.add_vertex(self.label, row)


class VertexPropertyRows(RowHandler):
    """Vertex property files: exactly ``<Label>.id|<property>``."""

    counter = "properties"

    def validate_header(self, header: Sequence[str]) -> None:
        label, prop = self.schema.split_property_key(self.label)
        ptype = self.schema.vertex_property_type(label, prop)
        if ptype is None:
            raise self._violation(f"property {self.label} not declared")
        id_column = f"{label}{TUPLE_SPLIT}id"
        if len(header) != 2 or header[0] != id_column or header[1] != prop:
            raise self._violation(
                f"header must be [{id_column}, {prop}], found {list(header)}"
            )
        value = self._column(prop, self.label, ptype, element=True)
        if value is None:
            raise self._violation(f"property {self.label} has an unsupported type {ptype}")
        self.id_key = id_column
        self.columns = [self._column(id_column, id_column, self._id_type(label)), value]

    def parse_row(self, fields: Sequence[str], line_no: int) -> Tuple[Any, Any]:
        self._check_width(fields, 2, line_no)
        vertex_id = self._coerce_id(self.columns[0], fields[0], line_no)
        return vertex_id, self._coerce(self.columns[1], fields[1], line_no)

    def apply_row(self, tx: GraphTransaction, row: Tuple[Any, Any]) -> None:
        vertex_id, value = row
        vertex = self._lookup(tx, self.id_key, vertex_id)
        tx.set_vertex_property(vertex, self.label, value)


class EdgeRows(RowHandler):
    """Edge files: ``<Source>.id|<Target>.id`` followed by edge properties."""

    counter = "edges"

    def validate_header(self, header: Sequence[str]) -> None:
        try:
            source, edge, target = self.schema.split_triple(self.label)
        except ValueError as e:
            raise self._violation(str(e)) from None

        labels = self.schema.vertex_labels
        if source not in labels or target not in labels:
            raise self._violation(f"vertex types not found for triple {self.label}, found {labels}")
        if edge not in self.schema.edges:
            raise self._violation(f"edge type not found for triple {self.label}, found {self.schema.edges}")

        source_id = f"{source}{TUPLE_SPLIT}id"
        target_id = f"{target}{TUPLE_SPLIT}id"
        if len(header) < 2:
            raise self._violation(f"expected at least {source_id} and {target_id}, found {list(header)}")
        if header[0] != source_id:
            raise self._violation(f"first column is not labeled {source_id}, but: {header[0]}")
        if header[1] != target_id:
            raise self._violation(f"second column is not labeled {target_id}, but: {header[1]}")

        declared = self.schema.edge_property_types(edge)
        columns = [
            self._column(source_id, source_id, self._id_type(source)),
            self._column(target_id, target_id, self._id_type(target)),
        ]
        seen = set()
        for name in header[2:]:
            if name not in declared:
                raise self._violation(
                    f"unknown property {name} for {edge}, expected one of {sorted(declared)}"
                )
            if name in seen:
                raise self._violation(f"duplicate column {name}")
            seen.add(name)
            columns.append(self._column(name, f"{edge}{TUPLE_SPLIT}{name}", declared[name]))
        self.edge = edge
        self.columns = columns

    def parse_row(self, fields: Sequence[str], line_no: int) -> Tuple[Any, Any, Dict[str, Any]]:
        self._check_width(fields, len(self.columns), line_no)
        source_id = self._coerce_id(self.columns[0], fields[0], line_no)
        target_id = self._coerce_id(self.columns[1], fields[1], line_no)
        return source_id, target_id, self._properties(self.columns[2:], fields[2:], line_no)

    def apply_row(self, tx: GraphTransaction, row: Tuple[Any, Any, Dict[str, Any]]) -> None:
        source_id, target_id, properties = row
        out_vertex = self._lookup(tx, self.columns[0].key, source_id)
        in_vertex = self._lookup(tx, self.columns[1].key, target_id)
        tx.add_edge(self.edge, out_vertex, in_vertex, properties)


HANDLERS = {
    TaskKind.VERTEX: VertexRows,
    TaskKind.VERTEX_PROPERTY: VertexPropertyRows,
    TaskKind.EDGE: EdgeRows,
}


def apply_batch(store: GraphStore, handler: RowHandler, batch: Batch, path: Path) -> int:
    """
    Apply a batch in one store transaction and commit it.

    Runs on the writer pool. Returns the number of rows applied.

    Raises:
        RowParseFailure: a row references a missing vertex.
        CommitFailure: the store rejected a mutation or the commit.
    """
    tx = store.new_transaction()
    try:
        for line_no, row in batch.rows:
            try:
                handler.apply_row(tx, row)
            except VertexNotFound as e:
                raise RowParseFailure(path, line_no, str(e)) from e
        tx.commit()
    except RowParseFailure:
        tx.rollback()
        raise
    except Exception as e:
        tx.rollback()
        raise CommitFailure(path, len(batch), str(e)) from e
    return len(batch)


# ──────────────────────────────────────────────────────────────────────────────
# Loader
# ──────────────────────────────────────────────────────────────────────────────

class FileLoader:
    """
    Runs one LoadTask on the reader pool.

    ``run`` re-raises the task's failure after recording it on ``result``,
    so the reader pool sees it too.
    """

    def __init__(
        self,
        task: LoadTask,
        store: GraphStore,
        schema: WorkloadSchema,
        registry: TypeRegistry,
        stats: LoadingStats,
        transaction_size: int,
        delimiter: str = FIELD_DELIMITER,
    ):
        if transaction_size < 1:
            raise ValueError(f"transaction_size must be positive, got {transaction_size}")
        self.task = task
        self.store = store
        self.schema = schema
        self.registry = registry
        self.stats = stats
        self.transaction_size = transaction_size
        self.delimiter = delimiter
        self.result = TaskResult(task.path, task.label, task.kind)
        self.logger = logger.bind(component="FileLoader")

    def run(self) -> TaskResult:
        task, result = self.task, self.result
        self.logger.debug(f"Loading {task.kind.value} file {task.path.name} ({task.label})")
        try:
            handler = HANDLERS[task.kind](task.label, self.schema, self.registry, task.path)
            with open(task.path, "rb") as f:
                result.state = TaskState.OPENED
                reader = csv.reader(self._lines(f), delimiter=self.delimiter, quoting=csv.QUOTE_NONE)

                header = next(reader, None)
                if not header:
                    raise SchemaViolation(f"{task.path.name}: empty file, expected a header")
                handler.validate_header(header)
                result.state = TaskState.HEADER_VALIDATED

                result.state = TaskState.STREAMING
                batch = Batch()
                for line_no, fields in enumerate(reader, start=2):
                    if not fields:
                        continue
                    batch.add(line_no, handler.parse_row(fields, line_no))
                    if len(batch) >= self.transaction_size:
                        self._commit(handler, batch)
                        batch = Batch()
                if batch:
                    self._commit(handler, batch)
        except Exception as e:
            result.state = TaskState.FAILED
            result.error = str(e)
            result.error_type = type(e).__name__
            result.failed_row = getattr(e, "row", None)
            self.logger.error(
                f"Failed {task.path.name} after {result.rows_loaded} rows: "
                f"{result.error_type}: {e}"
            )
            raise

        result.state = TaskState.CLOSED
        self.logger.info(
            f"Loaded {task.path.name}: {result.rows_loaded} {handler.counter} "
            f"in {result.commits} commits"
        )
        return result

    def _lines(self, f: BinaryIO) -> Iterator[str]:
        # Decoded per line so a bad byte is reported against its own line
        for line_no, raw in enumerate(f, start=1):
            try:
                yield raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise RowParseFailure(
                    self.task.path, line_no, f"invalid UTF-8 at byte {e.start}: {e.reason}",
                ) from e

    def _commit(self, handler: RowHandler, batch: Batch) -> None:
        future = self.task.writer.submit(apply_batch, self.store, handler, batch, self.task.path)
        applied = future.result()
        self.stats.add(**{handler.counter: applied})
        self.result.rows_loaded += applied
        self.result.commits += 1
        self.result.state = TaskState.COMMITTED
