"""Hash-based computation caching with call-scoped parallel execution."""

from .execution import ExecutionPlan, available_workers, current_plan, parallel_map, parallel_plan
from .fingerprint import canonical_bytes, code_repr, fingerprint
from .memoize import CacheEntry, CacheStore, cache_computation, memoize

__all__ = [
    "ExecutionPlan",
    "available_workers",
    "current_plan",
    "parallel_map",
    "parallel_plan",
    "canonical_bytes",
    "code_repr",
    "fingerprint",
    "CacheEntry",
    "CacheStore",
    "cache_computation",
    "memoize",
]
