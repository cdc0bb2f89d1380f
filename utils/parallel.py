"""
Task pool for per-parameter work within one observation time.
"""

import logging
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Callable, List, Literal, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ParameterTaskPool:
    """
    Runs one independent task per parameter and gathers results in order.

    With n_jobs == 1 tasks run inline. Otherwise a ThreadPoolExecutor
    (default) or ProcessPoolExecutor is used; the process backend requires
    the task function and its arguments to be picklable.

    The executor lives for the duration of a `with` block; outside one,
    tasks run inline.
    """

    def __init__(
        self,
        n_jobs: int = 1,
        backend: Literal["thread", "process"] = "thread",
    ):
        if n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {n_jobs}")
        if backend not in ("thread", "process"):
            raise ValueError(f"Unknown backend: {backend}")
        self.n_jobs = int(n_jobs)
        self.backend = backend
        self._executor: Optional[Executor] = None

    def __enter__(self) -> "ParameterTaskPool":
        if self.n_jobs > 1:
            ExecutorClass = ThreadPoolExecutor if self.backend == "thread" else ProcessPoolExecutor
            self._executor = ExecutorClass(max_workers=self.n_jobs)
            logger.debug("started %s pool with %d workers", self.backend, self.n_jobs)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def map(self, fn: Callable[[T], R], tasks: Sequence[T]) -> List[R]:
        """
        Apply fn to every task.

        Returns:
            Results in task order. The first task error propagates.
        """
        if self._executor is None:
            return [fn(task) for task in tasks]
        return list(self._executor.map(fn, tasks))
