"""
Unit tests for the bulk importer orchestration.
"""

import pytest

from graph_importer.errors import ImporterError
from graph_importer.graph.memory import InMemoryGraphStore
from graph_importer.loading.importer import PHASES, BulkImporter
from graph_importer.loading.tasks import TaskKind, TaskState


class TestPartition:

    def test_phase_order(self):
        assert PHASES == (TaskKind.VERTEX, TaskKind.EDGE, TaskKind.VERTEX_PROPERTY)

    def test_files_per_phase(self, store, small_workload, social_network_dir):
        files = BulkImporter(store, small_workload).partition(social_network_dir)
        assert [p.name for p in files[TaskKind.VERTEX]["Person"]] == [
            "person_0_2.csv", "person_1_2.csv",
        ]
        assert len(files[TaskKind.EDGE]["Person.knows.Person"]) == 1
        assert len(files[TaskKind.VERTEX_PROPERTY]["Person.email"]) == 1


class TestRun:
    """End-to-end runs against the in-memory store."""

    def test_loads_everything(self, store, small_workload, loading_config, social_network_dir):
        report = BulkImporter(store, small_workload, loading_config).run(social_network_dir)

        assert report.success
        assert report.reconcile.completed
        assert report.vertices == 7
        assert report.edges == 5
        assert report.properties == 3
        assert len(report.tasks) == 6
        assert all(t.state == TaskState.CLOSED for t in report.tasks)
        assert report.pool_errors == []

        assert len(store.vertices_with_label("Person")) == 5
        assert len(store.edges_with_label("hasCreator")) == 2
        alice = store.vertices[store.lookup("Person.id", 1)]
        assert alice.properties["Person.email"] == ["alice@example.com", "alice@work.example.com"]

    def test_respects_transaction_size(self, store, small_workload, loading_config, social_network_dir):
        BulkImporter(store, small_workload, loading_config).run(social_network_dir)
        assert max(store.committed_batches) <= loading_config.transaction_size

    def test_import_requires_reconcile(self, store, small_workload, social_network_dir):
        importer = BulkImporter(store, small_workload)
        with pytest.raises(ImporterError, match="reconciled"):
            importer.import_data(social_network_dir)

    def test_missing_input_dir(self, store, small_workload, tmp_path):
        importer = BulkImporter(store, small_workload)
        importer.reconcile()
        with pytest.raises(FileNotFoundError):
            importer.import_data(tmp_path / "nope")

    def test_empty_dir_succeeds(self, store, small_workload, loading_config, tmp_path):
        report = BulkImporter(store, small_workload, loading_config).run(tmp_path)
        assert report.success
        assert report.tasks == []
        assert report.vertices == 0

    def test_capped_file_readers(self, store, small_workload, loading_config, social_network_dir):
        capped = loading_config.model_copy(update={"max_file_readers": 1})
        report = BulkImporter(store, small_workload, capped).run(social_network_dir)
        assert report.success
        assert report.vertices == 7


class TestIsolation:
    """One bad file fails alone."""

    def test_malformed_file_only_fails_itself(
        self, store, small_workload, loading_config, social_network_dir, write_csv
    ):
        write_csv(
            social_network_dir, "comment_1_2.csv",
            ["Comment.id", "content", "length", "creationDate"],
            [["200", "bad", "not-a-number", ""]],
        )

        report = BulkImporter(store, small_workload, loading_config).run(social_network_dir)

        assert not report.success
        (failed,) = report.failed_tasks
        assert failed.path.name == "comment_1_2.csv"
        assert failed.error_type == "RowParseFailure"
        assert failed.failed_row == 2
        # Everything else loaded
        assert report.vertices == 7
        assert report.edges == 5
        assert report.properties == 3
        assert report.pool_errors == []

    def test_bad_header_among_valid_files(
        self, store, small_workload, loading_config, social_network_dir, write_csv
    ):
        write_csv(social_network_dir, "person_2_3.csv", ["id", "firstName"], [["9", "X"]])

        report = BulkImporter(store, small_workload, loading_config).run(social_network_dir)

        (failed,) = report.failed_tasks
        assert failed.error_type == "SchemaViolation"
        assert failed.rows_loaded == 0
        assert store.lookup("Person.id", 9) is None
        assert report.vertices == 7

    def test_edges_to_missing_vertices_fail_edge_task(
        self, small_workload, loading_config, social_network_dir, write_csv
    ):
        write_csv(
            social_network_dir, "person_knows_person_1_2.csv",
            ["Person.id", "Person.id", "creationDate"],
            [["1", "42", ""]],
        )
        store = InMemoryGraphStore()
        report = BulkImporter(store, small_workload, loading_config).run(social_network_dir)

        (failed,) = report.failed_tasks
        assert failed.kind == TaskKind.EDGE
        assert "42" in failed.error
        assert report.edges == 5
