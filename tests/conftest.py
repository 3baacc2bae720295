"""
Shared test fixtures for the graph importer tests.
"""

from pathlib import Path
from typing import List, Sequence

import pytest

from graph_importer.errors import PoolFailure
from graph_importer.graph.memory import InMemoryGraphStore
from graph_importer.loading.pool import WorkerPool
from graph_importer.loading.stats import LoadingStats
from graph_importer.schema.reconciler import SchemaReconciler
from graph_importer.schema.types import TypeRegistry
from graph_importer.schema.workload import WorkloadSchema
from graph_importer.utils.config import LoadingConfig


@pytest.fixture
def small_workload_dict():
    """Minimal workload: two vertex labels, two edge labels, one property file."""
    return {
        "name": "small",
        "vertices": {
            "Person": {
                "id": "long",
                "firstName": "text",
                "birthday": "date",
                "creationDate": "date",
                "email": "array<text>",
            },
            "Comment": {
                "id": "long",
                "content": "text",
                "length": "integer",
                "creationDate": "date",
            },
        },
        "edges": ["knows", "hasCreator"],
        "edge_properties": {
            "knows": {"creationDate": "date"},
        },
        "vertex_property_files": {
            "Person.email": "person_email_emailaddress",
        },
        "edge_files": {
            "Person.knows.Person": "person_knows_person",
            "Comment.hasCreator.Person": "comment_hasCreator_person",
        },
    }


@pytest.fixture
def small_workload(small_workload_dict):
    return WorkloadSchema(**small_workload_dict)


@pytest.fixture
def registry():
    return TypeRegistry()


@pytest.fixture
def store():
    """Fresh in-memory graph store."""
    return InMemoryGraphStore()


@pytest.fixture
def reconciled_store(store, small_workload):
    """In-memory store with the small workload's schema applied."""
    SchemaReconciler(store).reconcile(small_workload)
    return store


@pytest.fixture
def stats():
    return LoadingStats()


@pytest.fixture
def writer():
    """Writer pool for loader tests; drained at teardown."""
    pool = WorkerPool("test-writer", workers=2, capacity=2)
    yield pool
    try:
        pool.stop(timeout=5)
    except PoolFailure:
        pass  # failures are asserted by the tests themselves


@pytest.fixture
def loading_config():
    return LoadingConfig(num_threads=2, transaction_size=2, stats_interval=0.05, drain_timeout=10)


@pytest.fixture
def write_csv():
    """Write a pipe-delimited shard: write_csv(dir, name, header, rows) -> Path."""

    def _write(directory: Path, name: str, header: Sequence[str], rows: List[Sequence[str]]) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        lines = ["|".join(header)] + ["|".join(str(v) for v in row) for row in rows]
        path = directory / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def social_network_dir(tmp_path, write_csv):
    """A small valid dataset for the small workload."""
    data = tmp_path / "social_network"
    write_csv(
        data, "person_0_2.csv",
        ["Person.id", "firstName", "birthday", "creationDate"],
        [
            ["1", "Alice", "1990-01-01", "2010-03-13T02:10:23.099+0000"],
            ["2", "Bob", "1985-06-15", "2010-04-01T10:00:00.000+0000"],
            ["3", "Carol", "", "2011-01-01T00:00:00.000+0000"],
        ],
    )
    write_csv(
        data, "person_1_2.csv",
        ["Person.id", "firstName", "birthday", "creationDate"],
        [
            ["4", "Dave", "1970-12-31", "2012-05-05T05:05:05.000+0000"],
            ["5", "Eve", "2000-02-29", "2012-06-06T06:06:06.000+0000"],
        ],
    )
    write_csv(
        data, "comment_0_1.csv",
        ["Comment.id", "content", "length", "creationDate"],
        [
            ["100", "hello", "5", "2012-01-01T00:00:00.000+0000"],
            ["101", "world", "5", "2012-01-02T00:00:00.000+0000"],
        ],
    )
    write_csv(
        data, "person_knows_person_0_1.csv",
        ["Person.id", "Person.id", "creationDate"],
        [
            ["1", "2", "2010-05-01T00:00:00.000+0000"],
            ["1", "3", "2010-05-02T00:00:00.000+0000"],
            ["4", "5", "2012-07-01T00:00:00.000+0000"],
        ],
    )
    write_csv(
        data, "comment_hasCreator_person_0_1.csv",
        ["Comment.id", "Person.id"],
        [["100", "1"], ["101", "2"]],
    )
    write_csv(
        data, "person_email_emailaddress_0_1.csv",
        ["Person.id", "email"],
        [
            ["1", "alice@example.com"],
            ["1", "alice@work.example.com"],
            ["2", "bob@example.com"],
        ],
    )
    return data
