"""
Loading Layer - concurrent bulk loading of CSV shards.
"""

from .importer import BulkImporter, ImportReport
from .partitioner import discover_files
from .pool import WorkerPool
from .stats import LoadingStats, StatsReporter
from .tasks import FileLoader, LoadTask, TaskKind, TaskResult, TaskState

__all__ = [
    "BulkImporter",
    "ImportReport",
    "discover_files",
    "WorkerPool",
    "LoadingStats",
    "StatsReporter",
    "FileLoader",
    "LoadTask",
    "TaskKind",
    "TaskResult",
    "TaskState",
]
