"""Fork-join task pool with a sequential fallback."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)

BACKENDS = ("process", "thread", "sequential")


def default_workers() -> int:
    return max(1, (os.cpu_count() or 1) - 1)


class TaskPool:
    """Map a function over independent tasks, collecting results by input position.

    `process` and `thread` backends fan tasks out to a pool and join once per
    call; `sequential` runs them in order in the calling process. All three
    return identical results for deterministic task functions.
    """

    def __init__(self, backend: str = "process", workers: int | None = None) -> None:
        name = backend.strip().lower()
        if name not in BACKENDS:
            raise ValueError(f"Unsupported backend '{backend}'. Supported: process|thread|sequential")
        self.workers = int(workers) if workers is not None else default_workers()
        if self.workers <= 0:
            raise ValueError("workers must be positive")
        self.backend = "sequential" if self.workers == 1 else name

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "TaskPool":
        par = cfg.get("parallel", {})
        return cls(backend=str(par.get("backend", "process")), workers=par.get("workers"))

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        tasks = list(items)
        if self.backend == "sequential" or len(tasks) <= 1:
            return [fn(task) for task in tasks]

        results: list[Any] = [None] * len(tasks)
        with self._executor(min(self.workers, len(tasks))) as ex:
            fut_to_idx = {ex.submit(fn, task): idx for idx, task in enumerate(tasks)}
            for fut in as_completed(fut_to_idx):
                results[fut_to_idx[fut]] = fut.result()
        logger.debug("Joined %d tasks on %s backend", len(tasks), self.backend)
        return results

    def _executor(self, n_jobs: int) -> Executor:
        if self.backend == "process":
            return ProcessPoolExecutor(max_workers=n_jobs)
        return ThreadPoolExecutor(max_workers=n_jobs)

    def __repr__(self) -> str:
        return f"TaskPool(backend={self.backend!r}, workers={self.workers})"
