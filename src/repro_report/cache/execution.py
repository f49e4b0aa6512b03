"""Scoped execution plans.

By default everything runs sequentially. parallel_plan() creates a bounded
worker pool for the duration of a `with` block and makes it the active plan
for code running inside it; parallel_map() uses whatever plan is active.

    with parallel_plan():
        fits = parallel_map(fit_model, grid)

The active plan lives in a ContextVar: entering a plan installs it, leaving
restores the previous one and shuts the pool down, on normal exit and on error.

Backends:
- process: concurrent.futures.ProcessPoolExecutor (default; fn and items must pickle)
- thread: concurrent.futures.ThreadPoolExecutor
- ray: optional (`pip install repro-report[ray]`); ray.init on entry, ray.shutdown on
  exit unless Ray was already running
"""

from __future__ import annotations
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional
import logging
import os

from tqdm import tqdm

from ..errors import ConfigError

log = logging.getLogger("repro_report.cache")

MAX_WORKERS = 8
BACKENDS = ("process", "thread", "ray")


def usable_cores() -> int:
    """Cores this process may run on (CPU affinity / cpuset), not the host total."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def available_workers(cap: int = MAX_WORKERS) -> int:
    """Leave one core for the session: min(cap, max(1, cores - 1))."""
    n_avail = usable_cores()
    return min(cap, max(1, n_avail - 1))


class WorkerPool:
    """Minimal pool interface shared by all backends."""

    def map(self, fn: Callable[[Any], Any], items: List[Any], chunksize: int = 1) -> Iterator[Any]:
        raise NotImplementedError

    def shutdown(self) -> None:
        raise NotImplementedError


class ExecutorPool(WorkerPool):
    def __init__(self, executor: Executor):
        self.executor = executor

    def map(self, fn, items, chunksize=1):
        return self.executor.map(fn, items, chunksize=chunksize)

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True, cancel_futures=True)


class RayPool(WorkerPool):
    def __init__(self, workers: int):
        try:
            import ray
        except ImportError as exc:
            raise ImportError("ray required for backend='ray' (pip install repro-report[ray])") from exc
        self._ray = ray
        self._owns_runtime = not ray.is_initialized()
        if self._owns_runtime:
            ray.init(num_cpus=workers, ignore_reinit_error=True, log_to_driver=False)

    def map(self, fn, items, chunksize=1):
        remote_fn = self._ray.remote(fn)
        refs = [remote_fn.remote(item) for item in items]
        return iter(self._ray.get(refs))

    def shutdown(self) -> None:
        if self._owns_runtime:
            self._ray.shutdown()


@dataclass(frozen=True)
class ExecutionPlan:
    kind: str = "sequential"  # sequential | parallel
    workers: int = 1
    backend: Optional[str] = None
    pool: Optional[WorkerPool] = field(default=None, compare=False, repr=False)

    @property
    def is_parallel(self) -> bool:
        return self.kind == "parallel"


SEQUENTIAL = ExecutionPlan()

_active_plan: ContextVar[ExecutionPlan] = ContextVar("repro_report_plan", default=SEQUENTIAL)


def current_plan() -> ExecutionPlan:
    return _active_plan.get()


def _make_pool(backend: str, workers: int) -> WorkerPool:
    if backend == "process":
        return ExecutorPool(ProcessPoolExecutor(max_workers=workers))
    if backend == "thread":
        return ExecutorPool(ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repro_report"))
    if backend == "ray":
        return RayPool(workers)
    raise ConfigError(f"Unknown parallel backend: {backend!r}", BACKENDS)


@contextmanager
def parallel_plan(workers: Optional[int] = None, backend: str = "process") -> Iterator[ExecutionPlan]:
    """Activate a bounded worker pool for the duration of the block."""
    if workers is None:
        workers = available_workers()
    if workers < 1:
        raise ConfigError(f"workers must be >= 1, got {workers}")

    pool = _make_pool(backend, workers)
    plan = ExecutionPlan(kind="parallel", workers=workers, backend=backend, pool=pool)
    token = _active_plan.set(plan)
    log.info(
        "Parallel plan activated with %d %s workers (available cores: %s).",
        workers, backend, usable_cores(),
    )
    try:
        yield plan
    finally:
        _active_plan.reset(token)
        pool.shutdown()
        log.info("Parallel plan shut down. Restored %s plan.", current_plan().kind)


def parallel_map(
    fn: Callable[[Any], Any],
    items: Iterable[Any],
    chunksize: int = 1,
    progress: bool = False,
    desc: Optional[str] = None,
) -> List[Any]:
    """Map fn over items on the active plan. Results keep the input order."""
    items = list(items)
    plan = current_plan()
    if plan.pool is None:
        results: Iterable[Any] = map(fn, items)
    else:
        results = plan.pool.map(fn, items, chunksize=chunksize)
    if progress:
        results = tqdm(results, total=len(items), desc=desc)
    return list(results)
