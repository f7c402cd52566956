"""Run a batch of training tasks and wait for all of them.

Both schedulers share the same contract: `run(tasks)` returns once every task
has finished, and a task that raised makes `run` raise.
"""
from __future__ import annotations

import logging
import os
import typing
import weakref
from concurrent.futures import ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)

Task = typing.Callable[[], typing.Any]


class SequentialScheduler:
    n_workers = 1

    def run(self, tasks: typing.Iterable[Task]):
        for task in tasks:
            task()

    def close(self):
        pass


class ThreadPoolScheduler:
    """Runs tasks on a lazily started thread pool.

    `close` shuts the pool down and waits for its threads. A scheduler that is
    garbage collected without being closed shuts its pool down without waiting.
    """

    def __init__(self, n_workers: int):
        self.n_workers = n_workers
        self._pool: ThreadPoolExecutor | None = None
        self._finalizer: weakref.finalize | None = None

    def run(self, tasks: typing.Iterable[Task]):
        tasks = list(tasks)
        if not tasks:
            return

        if self._pool is None:
            logger.debug("Starting training pool with %d workers", self.n_workers)
            self._pool = ThreadPoolExecutor(
                max_workers=self.n_workers, thread_name_prefix="arte-train"
            )
            self._finalizer = weakref.finalize(self, self._pool.shutdown, wait=False)

        futures = [self._pool.submit(task) for task in tasks]
        # Barrier: every task finishes before the first failure is raised
        wait(futures)
        for future in futures:
            exc = future.exception()
            if exc is not None:
                raise exc

    def close(self):
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __getstate__(self):
        state = self.__dict__.copy()
        state["_pool"] = None
        state["_finalizer"] = None
        return state


def make_scheduler(n_jobs: int) -> SequentialScheduler | ThreadPoolScheduler:
    """Pick a scheduler for `n_jobs`.

    `0` and `1` run tasks in the calling thread, `-1` uses one worker per CPU and
    any other positive value is the number of workers.
    """
    if n_jobs < -1:
        raise ValueError(f"n_jobs must be -1, 0 or a positive integer, got {n_jobs}")
    if n_jobs == -1:
        n_jobs = os.cpu_count() or 1
    if n_jobs in (0, 1):
        return SequentialScheduler()
    return ThreadPoolScheduler(n_jobs)
