"""
Bulk Importer.

Orchestrates a full import run:

1. Reconcile the store schema with the workload (must complete first)
2. Load phases in order, each fully drained before the next starts:
   vertices → edges → vertex properties
3. Report progress in the background and aggregate an ImportReport

Each phase uses two pools: a reader pool running one FileLoader per shard
and a writer pool applying their batches.

Usage:
    importer = BulkImporter(store, schema, config.loading)
    report = importer.run(Path("data/social_network"))
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from loguru import logger

from ..errors import ImporterError, PoolFailure
from ..graph.store import GraphStore
from ..schema.reconciler import ReconcileReport, SchemaReconciler
from ..schema.types import TypeRegistry
from ..schema.workload import WorkloadSchema
from ..utils.config import LoadingConfig
from .partitioner import discover_files
from .pool import WorkerPool
from .stats import LoadingStats, StatsReporter, StatsSnapshot, format_duration
from .tasks import FileLoader, LoadTask, TaskKind, TaskResult


PHASES = (TaskKind.VERTEX, TaskKind.EDGE, TaskKind.VERTEX_PROPERTY)


@dataclass
class ImportReport:
    """Aggregate result of one import run."""
    workload: str
    input_dir: Path
    started_at: datetime = field(default_factory=datetime.now)
    duration: float = 0.0
    reconcile: Optional[ReconcileReport] = None
    tasks: List[TaskResult] = field(default_factory=list)
    pool_errors: List[str] = field(default_factory=list)
    vertices: int = 0
    edges: int = 0
    properties: int = 0

    @property
    def failed_tasks(self) -> List[TaskResult]:
        return [t for t in self.tasks if not t.success]

    @property
    def success(self) -> bool:
        reconciled = self.reconcile is not None and self.reconcile.completed
        return reconciled and not self.failed_tasks and not self.pool_errors

    def record_counts(self, snapshot: StatsSnapshot) -> None:
        self.vertices = snapshot.vertices
        self.edges = snapshot.edges
        self.properties = snapshot.properties


class BulkImporter:
    """Reconciles the schema, then loads every shard of a dataset directory."""

    def __init__(
        self,
        store: GraphStore,
        schema: WorkloadSchema,
        loading: Optional[LoadingConfig] = None,
        registry: Optional[TypeRegistry] = None,
    ):
        self.store = store
        self.schema = schema
        self.loading = loading or LoadingConfig()
        self.registry = registry or TypeRegistry()
        self.reconcile_report: Optional[ReconcileReport] = None
        self.logger = logger.bind(component="BulkImporter")

    def run(self, input_dir: Path) -> ImportReport:
        """Reconcile, then import. Reconciliation errors propagate."""
        self.reconcile()
        return self.import_data(input_dir)

    def reconcile(self) -> ReconcileReport:
        reconciler = SchemaReconciler(self.store, self.registry)
        self.reconcile_report = reconciler.reconcile(self.schema)
        return self.reconcile_report

    def import_data(self, input_dir: Path) -> ImportReport:
        """
        Load all phases from ``input_dir``.

        Raises:
            ImporterError: if the schema has not been reconciled.
            FileNotFoundError: if ``input_dir`` does not exist.
        """
        if self.reconcile_report is None or not self.reconcile_report.completed:
            raise ImporterError("Schema must be reconciled before loading data")

        input_dir = Path(input_dir)
        report = ImportReport(self.schema.name, input_dir, reconcile=self.reconcile_report)
        files = self.partition(input_dir)

        self.logger.info("=" * 60)
        self.logger.info(f"IMPORT: workload '{self.schema.name}' from {input_dir}")
        self.logger.info(
            f"  threads={self.loading.num_threads}, "
            f"transaction_size={self.loading.transaction_size}"
        )
        self.logger.info("=" * 60)

        start = time.time()
        stats = LoadingStats()
        reporter = StatsReporter(stats, self.loading.stats_interval)
        reporter.start()
        try:
            for kind in PHASES:
                self._run_phase(kind, files[kind], stats, report)
        finally:
            reporter.cancel()
            reporter.join()

        report.duration = time.time() - start
        report.record_counts(stats.snapshot())
        self.logger.info(
            f"Number of vertices loaded: {report.vertices}. "
            f"Number of edges loaded: {report.edges}. "
            f"Properties set: {report.properties} ({format_duration(report.duration)})"
        )
        if report.failed_tasks:
            self.logger.warning(f"{len(report.failed_tasks)} of {len(report.tasks)} file(s) failed")
        return report

    def partition(self, input_dir: Path) -> Dict[TaskKind, Dict[str, List[Path]]]:
        """Shards per phase, keyed by vertex label, property key or edge triple."""
        prefixes: Mapping[TaskKind, Mapping[str, str]] = {
            TaskKind.VERTEX: self.schema.vertex_file_prefixes(),
            TaskKind.EDGE: self.schema.edge_files,
            TaskKind.VERTEX_PROPERTY: self.schema.vertex_property_files,
        }
        return {kind: discover_files(input_dir, prefixes[kind]) for kind in PHASES}

    def _run_phase(
        self,
        kind: TaskKind,
        files: Mapping[str, List[Path]],
        stats: LoadingStats,
        report: ImportReport,
    ) -> None:
        shards = [(label, path) for label, paths in files.items() for path in paths]
        if not shards:
            self.logger.info(f"Phase {kind.value}: no files, skipping")
            return

        threads = self.loading.num_threads
        readers = min(len(shards), self.loading.max_file_readers or len(shards))
        self.logger.info(
            f"Phase {kind.value}: {len(shards)} file(s), "
            f"{readers} reader(s), {threads} writer(s)"
        )

        writer = WorkerPool(f"{kind.value}-writer", workers=threads, capacity=threads)
        reader = WorkerPool(f"{kind.value}-reader", workers=readers, capacity=len(shards))
        loaders: List[FileLoader] = []
        try:
            for label, path in shards:
                loader = FileLoader(
                    LoadTask(kind, path, label, writer),
                    self.store,
                    self.schema,
                    self.registry,
                    stats,
                    self.loading.transaction_size,
                    self.loading.field_delimiter,
                )
                try:
                    reader.submit(loader.run)
                except PoolFailure as e:
                    report.pool_errors.append(str(e))
                    self.logger.error(f"Could not schedule {path.name}: {e}")
                    continue
                loaders.append(loader)
        finally:
            # Readers first: they are the only producers for the writer pool
            self._drain(reader, report)
            self._drain(writer, report)

        report.tasks.extend(loader.result for loader in loaders)

    def _drain(self, pool: WorkerPool, report: ImportReport) -> None:
        try:
            pool.stop(timeout=self.loading.drain_timeout)
        except PoolFailure as e:
            if e.stalled:
                report.pool_errors.append(str(e))
                self.logger.error(str(e))
            else:
                # Already recorded on the failing tasks' results
                self.logger.debug(f"{pool.name}: {len(e.errors)} task failure(s)")
