"""
SurrealDB Graph Store.

Maps the store contracts onto SurrealDB:

- vertex label      → SCHEMALESS table
- edge label        → relation table; SIMPLE multiplicity is a UNIQUE index on (in, out)
- property key      → record in the ``_property_key`` table (datatype, cardinality)
- composite index   → DEFINE INDEX on the owning label's table
- data transaction  → one ``BEGIN TRANSACTION; ...; COMMIT TRANSACTION;`` query

Property keys are named ``<Label>.<property>``; they are stored as record fields
with the dot replaced (``Person.id`` → ``Person_id``) since SurrealDB reserves
``id`` and uses ``.`` for field paths.

The blocking client is not thread-safe, so each thread opens its own
connection on first use.
"""

import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

try:
    from surrealdb import Surreal
except ImportError:
    Surreal = None  # Graceful degradation if not installed

from ..errors import ConnectionFailure
from ..schema.types import Cardinality
from .store import ElementKind, GraphManagement, GraphStore, GraphTransaction, Multiplicity


PROPERTY_KEY_TABLE = "_property_key"

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def field_name(key: str) -> str:
    """Store field for a ``<Label>.<property>`` key."""
    return key.replace(".", "_")


def index_name(name: str) -> str:
    return re.sub(r"\W", "_", name)


def ident(name: str) -> str:
    """Validate a table/field identifier before it is spliced into SurrealQL."""
    if not _IDENT.match(name):
        raise ValueError(f"Invalid SurrealDB identifier: {name!r}")
    return name


def check_response(response: Any, query: str) -> None:
    """Raise if any statement in a raw multi-statement response failed."""
    results = response.get("result", []) if isinstance(response, dict) else response
    for res in results or []:
        if isinstance(res, dict) and res.get("status") == "ERR":
            raise RuntimeError(f"SurrealDB error: {res.get('result')} | Query: {query[:120]}")


class SurrealGraphStore(GraphStore):
    """Graph store backed by a SurrealDB namespace/database."""

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: SurrealDB connection config with keys:
                     url, namespace, database, username, password
        """
        if Surreal is None:
            raise ImportError(
                "surrealdb package not installed. "
                "Install with: pip install surrealdb>=1.0.4"
            )
        self.config = config
        self._local = threading.local()
        self._connections: List[Any] = []
        self._connections_lock = threading.Lock()
        self._property_keys: Dict[str, Dict[str, Any]] = {}
        self.logger = logger.bind(component="SurrealGraphStore")

    def connect(self) -> Any:
        """Return this thread's connection, opening it on first use."""
        db = getattr(self._local, "db", None)
        if db is not None:
            return db

        url = self.config.get("url", "ws://localhost:8000/rpc")
        ns = self.config.get("namespace", "ldbc")
        db_name = self.config.get("database", "snb")
        try:
            db = Surreal(url)
            db.signin({
                "username": self.config.get("username", "root"),
                "password": self.config.get("password", "root"),
            })
            db.use(ns, db_name)
        except Exception as e:
            raise ConnectionFailure(f"Could not connect to SurrealDB at {url}: {e}") from e

        self._local.db = db
        with self._connections_lock:
            self._connections.append(db)
        self.logger.info(f"Connected to SurrealDB: {url} ({ns}/{db_name}) [{threading.current_thread().name}]")
        return db

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.connect().query(sql, params or {})

    def query_checked(self, sql: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Run a multi-statement query and fail on the first errored statement."""
        response = self.connect().query_raw(sql, params or {})
        check_response(response, sql)

    def open_management(self) -> "SurrealManagement":
        return SurrealManagement(self)

    def new_transaction(self) -> "SurrealTransaction":
        return SurrealTransaction(self)

    def close(self) -> None:
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for db in connections:
            db.close()
        self._local = threading.local()
        self.logger.debug(f"SurrealDB connections closed ({len(connections)})")

    # ──────────────────────────────────────────────────────────────────────
    # Introspection
    # ──────────────────────────────────────────────────────────────────────

    def tables(self) -> Dict[str, str]:
        info = self.query("INFO FOR DB;") or {}
        if isinstance(info, list):
            info = info[0] if info else {}
        return info.get("tables") or info.get("tb") or {}

    def table_indexes(self, table: str) -> Dict[str, str]:
        if table not in self.tables():
            return {}
        info = self.query(f"INFO FOR TABLE {ident(table)};") or {}
        if isinstance(info, list):
            info = info[0] if info else {}
        return info.get("indexes") or info.get("ix") or {}

    def property_key(self, name: str) -> Optional[Dict[str, Any]]:
        cached = self._property_keys.get(name)
        if cached is not None:
            return cached
        if PROPERTY_KEY_TABLE not in self.tables():
            return None
        rows = self.query(
            f"SELECT * FROM {PROPERTY_KEY_TABLE} WHERE name = $name LIMIT 1;",
            {"name": name},
        )
        if not rows:
            return None
        # Keys are never altered once created
        self._property_keys[name] = rows[0]
        return rows[0]


class SurrealManagement(GraphManagement):
    """Collects DEFINE statements and runs them as one transaction on commit."""

    def __init__(self, store: SurrealGraphStore):
        self.store = store
        self._statements: List[str] = []
        self._params: Dict[str, Any] = {}
        self._names: Dict[str, set] = {}

    def _remember(self, kind: str, name: str) -> None:
        self._names.setdefault(kind, set()).add(name)

    def _pending(self, kind: str, name: str) -> bool:
        return name in self._names.get(kind, set())

    def contains_vertex_label(self, name: str) -> bool:
        return self._pending("vertex_label", name) or name in self.store.tables()

    def contains_edge_label(self, name: str) -> bool:
        return self._pending("edge_label", name) or name in self.store.tables()

    def contains_property_key(self, name: str) -> bool:
        return self._pending("property_key", name) or self.store.property_key(name) is not None

    def contains_index(self, name: str) -> bool:
        if self._pending("index", name):
            return True
        return any(
            index_name(name) in self.store.table_indexes(table)
            for table in self.store.tables()
        )

    def make_vertex_label(self, name: str) -> None:
        self._statements.append(f"DEFINE TABLE {ident(name)} SCHEMALESS;")
        self._remember("vertex_label", name)

    def make_edge_label(self, name: str, multiplicity: Multiplicity) -> None:
        table = ident(name)
        self._statements.append(f"DEFINE TABLE {table} TYPE RELATION SCHEMALESS;")
        if multiplicity == Multiplicity.SIMPLE:
            self._statements.append(
                f"DEFINE INDEX {table}_simple ON TABLE {table} FIELDS in, out UNIQUE;"
            )
        self._remember("edge_label", name)

    def make_property_key(self, name: str, datatype: str, cardinality: Cardinality) -> None:
        n = len(self._params)
        self._statements.append(f"CREATE {PROPERTY_KEY_TABLE} CONTENT $pk{n};")
        self._params[f"pk{n}"] = {
            "name": name,
            "datatype": datatype,
            "cardinality": Cardinality(cardinality).value,
        }
        self._remember("property_key", name)

    def build_composite_index(self, name: str, element_kind: ElementKind, key: str) -> None:
        # Property keys are global; the index lives on the table of the key's owner
        owner = key.split(".", 1)[0]
        self._statements.append(
            f"DEFINE INDEX {index_name(name)} ON TABLE {ident(owner)} "
            f"FIELDS {ident(field_name(key))};"
        )
        self._remember("index", name)

    def commit(self) -> None:
        if self._statements:
            sql = "BEGIN TRANSACTION;\n" + "\n".join(self._statements) + "\nCOMMIT TRANSACTION;"
            self.store.query_checked(sql, self._params)
        self.rollback()

    def rollback(self) -> None:
        self._statements = []
        self._params = {}
        self._names = {}


class SurrealTransaction(GraphTransaction):
    """
    Buffers mutations and sends them as a single transactional query.

    Vertex lookups run immediately against committed data; vertices are
    referenced by their SurrealDB record id.
    """

    def __init__(self, store: SurrealGraphStore):
        self.store = store
        self._statements: List[str] = []
        self._params: Dict[str, Any] = {}
        self._lookups: Dict[Tuple[str, Any], Any] = {}

    def _param(self, value: Any) -> str:
        name = f"p{len(self._params)}"
        self._params[name] = value
        return f"${name}"

    @staticmethod
    def _content(properties: Dict[str, Any]) -> Dict[str, Any]:
        return {field_name(k): v for k, v in properties.items() if v is not None}

    def find_vertex(self, key: str, value: Any) -> Optional[Any]:
        cache_key = (key, value)
        if cache_key in self._lookups:
            return self._lookups[cache_key]
        table = ident(key.split(".", 1)[0])
        rows = self.store.query(
            f"SELECT VALUE id FROM {table} WHERE {ident(field_name(key))} = $value LIMIT 1;",
            {"value": value},
        )
        record = rows[0] if rows else None
        if record is not None:
            self._lookups[cache_key] = record
        return record

    def add_vertex(self, label: str, properties: Dict[str, Any]) -> None:
        self._statements.append(
            f"CREATE {ident(label)} CONTENT {self._param(self._content(properties))};"
        )

    def add_edge(self, label: str, out_vertex: Any, in_vertex: Any, properties: Dict[str, Any]) -> None:
        statement = f"RELATE {self._param(out_vertex)}->{ident(label)}->{self._param(in_vertex)}"
        content = self._content(properties)
        if content:
            statement += f" CONTENT {self._param(content)}"
        self._statements.append(statement + ";")

    def set_vertex_property(self, vertex: Any, key: str, value: Any) -> None:
        definition = self.store.property_key(key) or {}
        field = ident(field_name(key))
        target = self._param(vertex)
        if definition.get("cardinality") == Cardinality.LIST.value:
            assignment = f"{field} = array::append({field} ?? [], {self._param(value)})"
        else:
            assignment = f"{field} = {self._param(value)}"
        self._statements.append(f"UPDATE {target} SET {assignment};")

    def commit(self) -> None:
        if self._statements:
            sql = "BEGIN TRANSACTION;\n" + "\n".join(self._statements) + "\nCOMMIT TRANSACTION;"
            self.store.query_checked(sql, self._params)
        self.rollback()

    def rollback(self) -> None:
        self._statements = []
        self._params = {}
