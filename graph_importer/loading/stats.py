"""
Loading statistics and the periodic stats reporter.

LoadingStats is created once per import run and shared by every loader
task; the StatsReporter thread logs a snapshot of it every interval until
cancelled.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the counters."""
    vertices: int
    edges: int
    properties: int
    elapsed: float

    def rate(self, count: int) -> float:
        return count / self.elapsed if self.elapsed > 0 else 0.0

    def format(self) -> str:
        return (
            f"vertices={self.vertices:,} ({self.rate(self.vertices):.1f}/s), "
            f"edges={self.edges:,} ({self.rate(self.edges):.1f}/s), "
            f"properties={self.properties:,} ({self.rate(self.properties):.1f}/s), "
            f"elapsed={format_duration(self.elapsed)}"
        )


class LoadingStats:
    """Thread-safe, monotonically increasing load counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self._start_time = time.time()
        self.vertices = 0
        self.edges = 0
        self.properties = 0

    def add(self, vertices: int = 0, edges: int = 0, properties: int = 0) -> None:
        with self._lock:
            self.vertices += vertices
            self.edges += edges
            self.properties += properties

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                self.vertices, self.edges, self.properties,
                time.time() - self._start_time,
            )


class StatsReporter(threading.Thread):
    """
    Background thread that reports LoadingStats every ``interval`` seconds.

    Cancellation is cooperative: ``cancel()`` wakes the thread, which exits
    without another report. Join it after loading completes.
    """

    def __init__(
        self,
        stats: LoadingStats,
        interval: float = 5.0,
        sink: Optional[Callable[[StatsSnapshot], None]] = None,
    ):
        super().__init__(name="stats-reporter", daemon=True)
        self.stats = stats
        self.interval = interval
        self.sink = sink
        self.reports = 0
        self._cancelled = threading.Event()
        self.logger = logger.bind(component="StatsReporter")

    def run(self) -> None:
        while not self._cancelled.wait(self.interval):
            self.report()

    def report(self) -> StatsSnapshot:
        snapshot = self.stats.snapshot()
        self.logger.info(f"Progress: {snapshot.format()}")
        if self.sink is not None:
            self.sink(snapshot)
        self.reports += 1
        return snapshot

    def cancel(self) -> None:
        self._cancelled.set()


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
