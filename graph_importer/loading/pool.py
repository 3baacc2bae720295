"""
Bounded Worker Pool.

A fixed number of worker threads pulling from a bounded queue. ``submit``
blocks while the queue is full, which throttles the producer to the pace
of the workers.

Usage:
    pool = WorkerPool("writer", workers=4, capacity=4)
    future = pool.submit(commit_batch, batch)
    future.result()
    pool.stop()
"""

import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

from loguru import logger

from ..errors import PoolFailure


_STOP = object()


class WorkerPool:
    """
    Bounded-concurrency executor.

    A task that raises never takes its worker down; the error is set on
    the task's future and collected for ``stop``.
    """

    def __init__(self, name: str, workers: int, capacity: int):
        if workers < 1:
            raise ValueError(f"Pool {name} needs at least one worker, got {workers}")
        if capacity < 1:
            raise ValueError(f"Pool {name} needs a queue capacity of at least 1, got {capacity}")

        self.name = name
        self.workers = workers
        self.capacity = capacity
        self._queue: "queue.Queue" = queue.Queue(maxsize=capacity)
        self._submit_lock = threading.Lock()
        self._error_lock = threading.Lock()
        self._errors: List[BaseException] = []
        self._closed = False
        self._unsent_stops = 0
        self.logger = logger.bind(component=f"WorkerPool[{name}]")

        self._threads = [
            threading.Thread(target=self._work, name=f"{name}-{i}", daemon=True)
            for i in range(workers)
        ]
        for thread in self._threads:
            thread.start()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failures(self) -> List[BaseException]:
        with self._error_lock:
            return list(self._errors)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Queue ``fn(*args, **kwargs)``; blocks while the queue is full.

        Raises:
            PoolFailure: if the pool has been stopped.
        """
        future: Future = Future()
        with self._submit_lock:
            if self._closed:
                raise PoolFailure(f"Pool {self.name} is stopped and no longer accepts tasks")
            self._queue.put((future, fn, args, kwargs))
        return future

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting tasks and wait for the queued ones to finish.

        Raises:
            PoolFailure: ``stalled=True`` if workers are still busy after
                ``timeout`` seconds; otherwise chained from the first task
                failure, with every failure on ``.errors``.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._submit_lock:
            if not self._closed:
                self._closed = True
                self._unsent_stops = len(self._threads)
            # Sentinels queue behind the submitted work
            while self._unsent_stops:
                try:
                    self._queue.put(_STOP, timeout=self._remaining(deadline))
                except queue.Full:
                    break
                self._unsent_stops -= 1

        for thread in self._threads:
            thread.join(self._remaining(deadline))

        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            raise PoolFailure(
                f"Pool {self.name} did not drain within {timeout}s; busy workers: {alive}",
                errors=self.failures,
                stalled=True,
            )

        errors = self.failures
        if errors:
            raise PoolFailure(
                f"Pool {self.name}: {len(errors)} task(s) failed; first: {errors[0]}",
                errors=errors,
            ) from errors[0]
        self.logger.debug(f"Pool {self.name} drained")

    @staticmethod
    def _remaining(deadline: Optional[float]) -> Optional[float]:
        return None if deadline is None else max(0.0, deadline - time.monotonic())

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                future, fn, args, kwargs = item
                if not future.set_running_or_notify_cancel():
                    continue
                try:
                    result = fn(*args, **kwargs)
                except Exception as e:
                    with self._error_lock:
                        self._errors.append(e)
                    future.set_exception(e)
                else:
                    future.set_result(result)
            finally:
                self._queue.task_done()
