"""Scoped execution plans and parallel_map."""

import os
import threading

import pytest

from repro_report.cache.execution import (
    SEQUENTIAL,
    available_workers,
    current_plan,
    parallel_map,
    parallel_plan,
    usable_cores,
)
from repro_report.errors import ConfigError


class TestAvailableWorkers:
    @pytest.mark.parametrize("cores,expected", [(1, 1), (2, 1), (4, 3), (16, 8)])
    def test_bounds(self, monkeypatch, cores, expected):
        monkeypatch.setattr("repro_report.cache.execution.usable_cores", lambda: cores)
        assert available_workers() == expected

    def test_custom_cap(self, monkeypatch):
        monkeypatch.setattr("repro_report.cache.execution.usable_cores", lambda: 16)
        assert available_workers(cap=4) == 4

    def test_affinity_limits_usable_cores(self, monkeypatch):
        monkeypatch.setattr(os, "cpu_count", lambda: 64)
        monkeypatch.setattr(os, "sched_getaffinity", lambda pid: {0, 1, 2}, raising=False)
        assert usable_cores() == 3
        assert available_workers() == 2

    @pytest.mark.parametrize("cores,expected", [(4, 4), (None, 1)])
    def test_cpu_count_without_affinity(self, monkeypatch, cores, expected):
        monkeypatch.delattr(os, "sched_getaffinity", raising=False)
        monkeypatch.setattr(os, "cpu_count", lambda: cores)
        assert usable_cores() == expected


class TestParallelPlan:
    def test_default_is_sequential(self):
        assert current_plan() == SEQUENTIAL
        assert not current_plan().is_parallel

    def test_plan_active_inside_block_and_restored_after(self):
        with parallel_plan(workers=2, backend="thread") as plan:
            assert current_plan() is plan
            assert plan.is_parallel
            assert plan.workers == 2
        assert current_plan() == SEQUENTIAL

    def test_restored_and_shut_down_on_error(self):
        with pytest.raises(RuntimeError, match="boom"):
            with parallel_plan(workers=2, backend="thread") as plan:
                pool = plan.pool
                raise RuntimeError("boom")
        assert current_plan() == SEQUENTIAL
        with pytest.raises(RuntimeError):
            pool.executor.submit(abs, -1)

    def test_nested_plans_restore_outer(self):
        with parallel_plan(workers=2, backend="thread") as outer:
            with parallel_plan(workers=1, backend="thread") as inner:
                assert current_plan() is inner
            assert current_plan() is outer
        assert current_plan() == SEQUENTIAL

    def test_unknown_backend(self):
        with pytest.raises(ConfigError, match="process, thread, ray"):
            with parallel_plan(backend="dask"):
                pass
        assert current_plan() == SEQUENTIAL

    def test_bad_worker_count(self):
        with pytest.raises(ConfigError):
            with parallel_plan(workers=0):
                pass


class TestParallelMap:
    def test_sequential_without_plan(self):
        seen = []

        def work(x):
            seen.append(threading.current_thread().name)
            return x * x

        assert parallel_map(work, range(5)) == [0, 1, 4, 9, 16]
        assert set(seen) == {threading.current_thread().name}

    def test_thread_pool_keeps_order(self):
        with parallel_plan(workers=3, backend="thread"):
            assert parallel_map(lambda x: x + 1, range(20)) == list(range(1, 21))

    def test_process_pool(self):
        with parallel_plan(workers=2, backend="process"):
            assert parallel_map(abs, [-3, 2, -1], chunksize=2) == [3, 2, 1]

    def test_progress_bar(self):
        assert parallel_map(str, [1, 2], progress=True, desc="fits") == ["1", "2"]
