"""
Unit tests for the bounded worker pool.
"""

import threading
import time

import pytest

from graph_importer.errors import PoolFailure
from graph_importer.loading.pool import WorkerPool


def fail(message):
    raise ValueError(message)


class TestSubmit:
    """Tests for running tasks."""

    def test_returns_results(self):
        pool = WorkerPool("test", workers=2, capacity=4)
        futures = [pool.submit(pow, n, 2) for n in range(5)]
        assert [f.result(timeout=5) for f in futures] == [0, 1, 4, 9, 16]
        pool.stop(timeout=5)

    def test_kwargs(self):
        pool = WorkerPool("test", workers=1, capacity=1)
        future = pool.submit(int, "ff", base=16)
        assert future.result(timeout=5) == 255
        pool.stop(timeout=5)

    def test_worker_threads_named(self):
        pool = WorkerPool("vertex-writer", workers=2, capacity=2)
        name = pool.submit(lambda: threading.current_thread().name).result(timeout=5)
        assert name.startswith("vertex-writer-")
        pool.stop(timeout=5)

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            WorkerPool("test", workers=0, capacity=1)
        with pytest.raises(ValueError):
            WorkerPool("test", workers=1, capacity=0)


class TestFailures:
    """A failing task never takes the pool down."""

    def test_failure_isolated(self):
        pool = WorkerPool("test", workers=1, capacity=4)
        bad = pool.submit(fail, "boom")
        good = pool.submit(lambda: "ok")

        with pytest.raises(ValueError, match="boom"):
            bad.result(timeout=5)
        assert good.result(timeout=5) == "ok"

        with pytest.raises(PoolFailure):
            pool.stop(timeout=5)

    def test_stop_chains_first_failure(self):
        pool = WorkerPool("test", workers=1, capacity=4)
        pool.submit(fail, "first")
        pool.submit(fail, "second")

        with pytest.raises(PoolFailure) as excinfo:
            pool.stop(timeout=5)

        assert isinstance(excinfo.value.__cause__, ValueError)
        assert str(excinfo.value.__cause__) == "first"
        assert [str(e) for e in excinfo.value.errors] == ["first", "second"]
        assert excinfo.value.stalled is False

    def test_failures_property(self):
        pool = WorkerPool("test", workers=1, capacity=1)
        future = pool.submit(fail, "x")
        with pytest.raises(ValueError):
            future.result(timeout=5)
        assert len(pool.failures) == 1
        with pytest.raises(PoolFailure):
            pool.stop(timeout=5)


class TestStop:
    """Tests for shutdown."""

    def test_waits_for_submitted_tasks(self):
        pool = WorkerPool("test", workers=2, capacity=8)
        done = []
        for n in range(6):
            pool.submit(lambda n=n: (time.sleep(0.01), done.append(n)))
        pool.stop(timeout=5)
        assert sorted(done) == list(range(6))

    def test_submit_after_stop(self):
        pool = WorkerPool("test", workers=1, capacity=1)
        pool.stop(timeout=5)
        assert pool.closed
        with pytest.raises(PoolFailure):
            pool.submit(print)

    def test_stop_twice(self):
        pool = WorkerPool("test", workers=1, capacity=1)
        pool.stop(timeout=5)
        pool.stop(timeout=5)

    def test_stalled_pool(self):
        release = threading.Event()
        pool = WorkerPool("test", workers=1, capacity=1)
        pool.submit(release.wait)

        with pytest.raises(PoolFailure) as excinfo:
            pool.stop(timeout=0.1)
        assert excinfo.value.stalled is True

        release.set()
        pool.stop(timeout=5)


class TestBackpressure:
    """Submission blocks while the queue is full."""

    def test_submit_blocks_until_space_frees(self):
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait()

        pool = WorkerPool("test", workers=1, capacity=1)
        pool.submit(block)
        assert started.wait(5)
        pool.submit(lambda: None)  # fills the queue

        submitted = threading.Event()

        def producer():
            pool.submit(lambda: None)
            submitted.set()

        thread = threading.Thread(target=producer)
        thread.start()

        assert not submitted.wait(0.2), "submit should block on a full queue"

        release.set()
        assert submitted.wait(5)
        thread.join(5)
        pool.stop(timeout=5)
