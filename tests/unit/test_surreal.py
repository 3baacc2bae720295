"""
Unit tests for the SurrealDB store adapter.

Uses a fake blocking client in place of ``surrealdb.Surreal``; the live
round trip is covered in tests/integration/test_import_live.py.
"""

import threading

import pytest

from graph_importer.errors import ConnectionFailure
from graph_importer.graph import surreal
from graph_importer.graph.store import ElementKind, Multiplicity
from graph_importer.graph.surreal import (
    SurrealGraphStore,
    check_response,
    field_name,
    ident,
    index_name,
)
from graph_importer.schema.types import Cardinality


class FakeSurreal:
    """Records queries; answers INFO and SELECT from class-level state."""

    instances = []
    tables = {}
    select_rows = []
    fail_signin = False

    def __init__(self, url):
        self.url = url
        self.queries = []
        self.raw = []
        self.closed = False
        self.credentials = None
        self.namespace = None
        FakeSurreal.instances.append(self)

    def signin(self, credentials):
        if FakeSurreal.fail_signin:
            raise OSError("connection refused")
        self.credentials = credentials

    def use(self, namespace, database):
        self.namespace = (namespace, database)

    def query(self, sql, params=None):
        self.queries.append((sql, params))
        if sql.startswith("INFO FOR DB"):
            return {"tables": dict(FakeSurreal.tables)}
        if sql.startswith("INFO FOR TABLE"):
            return {"indexes": {}}
        return list(FakeSurreal.select_rows)

    def query_raw(self, sql, params=None):
        self.raw.append((sql, params))
        return {"result": [{"status": "OK", "result": []}]}

    def close(self):
        self.closed = True


@pytest.fixture
def fake_client(monkeypatch):
    FakeSurreal.instances = []
    FakeSurreal.tables = {}
    FakeSurreal.select_rows = []
    FakeSurreal.fail_signin = False
    monkeypatch.setattr(surreal, "Surreal", FakeSurreal)
    return FakeSurreal


@pytest.fixture
def surreal_store(fake_client):
    return SurrealGraphStore({
        "url": "ws://db:8000/rpc",
        "namespace": "ldbc",
        "database": "snb",
        "username": "root",
        "password": "secret",
    })


class TestHelpers:

    def test_field_name(self):
        assert field_name("Person.id") == "Person_id"

    def test_index_name(self):
        assert index_name("byPerson.creationDate") == "byPerson_creationDate"

    def test_ident_rejects_injection(self):
        assert ident("Person") == "Person"
        with pytest.raises(ValueError):
            ident("Person; REMOVE TABLE Person")

    def test_check_response_ok(self):
        check_response({"result": [{"status": "OK", "result": []}]}, "SELECT 1")

    def test_check_response_error(self):
        response = {"result": [{"status": "ERR", "result": "index violation"}]}
        with pytest.raises(RuntimeError, match="index violation"):
            check_response(response, "RELATE ...")


class TestConnection:

    def test_requires_sdk(self, monkeypatch):
        monkeypatch.setattr(surreal, "Surreal", None)
        with pytest.raises(ImportError):
            SurrealGraphStore({})

    def test_connects_and_selects_database(self, surreal_store):
        db = surreal_store.connect()
        assert db.url == "ws://db:8000/rpc"
        assert db.credentials == {"username": "root", "password": "secret"}
        assert db.namespace == ("ldbc", "snb")

    def test_one_connection_per_thread(self, surreal_store, fake_client):
        main = surreal_store.connect()
        assert surreal_store.connect() is main

        other = []
        thread = threading.Thread(target=lambda: other.append(surreal_store.connect()))
        thread.start()
        thread.join(5)

        assert other[0] is not main
        assert len(fake_client.instances) == 2

    def test_close_closes_all(self, surreal_store, fake_client):
        surreal_store.connect()
        surreal_store.close()
        assert all(db.closed for db in fake_client.instances)

    def test_unreachable(self, surreal_store, fake_client):
        fake_client.fail_signin = True
        with pytest.raises(ConnectionFailure, match="ws://db:8000/rpc"):
            surreal_store.connect()


class TestManagement:

    def test_contains_reads_info(self, surreal_store, fake_client):
        fake_client.tables = {"Person": "DEFINE TABLE Person SCHEMALESS"}
        management = surreal_store.open_management()
        assert management.contains_vertex_label("Person")
        assert not management.contains_vertex_label("Comment")
        assert not management.contains_property_key("Person.id")

    def test_commit_sends_one_transaction(self, surreal_store):
        management = surreal_store.open_management()
        management.make_vertex_label("Person")
        management.make_edge_label("knows", Multiplicity.SIMPLE)
        management.make_property_key("Person.id", "long", Cardinality.SINGLE)
        management.build_composite_index("byPerson.id", ElementKind.VERTEX, "Person.id")
        assert management.contains_vertex_label("Person")

        management.commit()

        ((sql, params),) = surreal_store.connect().raw
        assert sql.startswith("BEGIN TRANSACTION;")
        assert sql.endswith("COMMIT TRANSACTION;")
        assert "DEFINE TABLE Person SCHEMALESS;" in sql
        assert "DEFINE TABLE knows TYPE RELATION SCHEMALESS;" in sql
        assert "FIELDS in, out UNIQUE" in sql
        assert "DEFINE INDEX byPerson_id ON TABLE Person FIELDS Person_id;" in sql
        assert params["pk0"] == {"name": "Person.id", "datatype": "long", "cardinality": "single"}

    def test_multi_edge_has_no_unique_index(self, surreal_store):
        management = surreal_store.open_management()
        management.make_edge_label("likes", Multiplicity.MULTI)
        management.commit()
        ((sql, _),) = surreal_store.connect().raw
        assert "UNIQUE" not in sql

    def test_rollback_sends_nothing(self, surreal_store):
        management = surreal_store.open_management()
        management.make_vertex_label("Person")
        management.rollback()
        management.commit()
        assert surreal_store.connect().raw == []


class TestTransaction:

    def test_vertices_and_edges(self, surreal_store):
        tx = surreal_store.new_transaction()
        tx.add_vertex("Person", {"Person.id": 1, "Person.firstName": "Alice"})
        tx.add_edge("knows", "Person:a", "Person:b", {"knows.creationDate": 5})
        tx.commit()

        ((sql, params),) = surreal_store.connect().raw
        assert "CREATE Person CONTENT $p0;" in sql
        assert "RELATE $p1->knows->$p2 CONTENT $p3;" in sql
        assert params["p0"] == {"Person_id": 1, "Person_firstName": "Alice"}
        assert params["p3"] == {"knows_creationDate": 5}

    def test_edge_without_properties(self, surreal_store):
        tx = surreal_store.new_transaction()
        tx.add_edge("hasCreator", "Comment:x", "Person:y", {})
        tx.commit()
        ((sql, _),) = surreal_store.connect().raw
        assert "RELATE $p0->hasCreator->$p1;" in sql

    def test_find_vertex(self, surreal_store, fake_client):
        fake_client.select_rows = ["Person:abc"]
        tx = surreal_store.new_transaction()
        assert tx.find_vertex("Person.id", 1) == "Person:abc"
        sql, params = surreal_store.connect().queries[-1]
        assert "FROM Person WHERE Person_id = $value" in sql
        assert params == {"value": 1}

    def test_find_vertex_missing(self, surreal_store, fake_client):
        tx = surreal_store.new_transaction()
        assert tx.find_vertex("Person.id", 404) is None

    def test_list_property_appends(self, surreal_store, fake_client):
        fake_client.tables = {"_property_key": ""}
        fake_client.select_rows = [{"name": "Person.email", "cardinality": "list"}]
        tx = surreal_store.new_transaction()
        tx.set_vertex_property("Person:abc", "Person.email", "a@example.com")
        tx.commit()
        ((sql, _),) = surreal_store.connect().raw
        assert "SET Person_email = array::append(Person_email ?? [], $p1);" in sql

    def test_empty_commit_sends_nothing(self, surreal_store):
        surreal_store.new_transaction().commit()
        assert surreal_store.connect().raw == []
