"""Cache a computation and optionally run it on a worker pool.

On the first run the computation is executed and `{result, hash}` is pickled
to `<cache_dir>/<cache_key>`. Later runs with the same code text and the same
declared dependencies load the result instead of executing anything, so
side effects of the computation (prints, plots, files) do not happen on a hit.

    result = memoize(lambda: slow_fit(df, k), "fit.pkl", deps=[k, df])

Limitations:
- Only the literal code and `deps` are hashed (see cache.fingerprint).
- One writer per cache key. Concurrent writers race and the last one wins.
- Cache files are tied to the Python/library versions that wrote them.
  An unreadable file is treated as a miss.
"""

from __future__ import annotations
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import functools
import glob
import logging
import os
import pickle
import time

from ..errors import ConfigError, UnsupportedInputError
from ..export.layout import CACHE_DIR
from .execution import parallel_plan
from .fingerprint import fingerprint

log = logging.getLogger("repro_report.cache")

CACHE_SUFFIX = ".pkl"


@dataclass
class CacheEntry:
    result: Any
    hash: str
    created_at: float = field(default_factory=time.time)


class CacheStore:
    """One file per cache key; each file holds exactly one entry."""

    def __init__(self, cache_dir: str = CACHE_DIR):
        self.cache_dir = cache_dir

    def path_for(self, key: str) -> str:
        if not isinstance(key, str) or not key.strip():
            raise ConfigError(f"Cache key must be a non-empty string, got {key!r}")
        if os.path.isabs(key) or ".." in key.replace("\\", "/").split("/"):
            raise ConfigError(f"Cache key must be a relative path inside {self.cache_dir}: {key!r}")
        if not os.path.splitext(key)[1]:
            key += CACHE_SUFFIX
        return os.path.join(self.cache_dir, key)

    def load(self, key: str) -> Optional[CacheEntry]:
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "rb") as f:
                data = pickle.load(f)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, IndexError, TypeError, ValueError) as e:
            log.warning("Unreadable cache file %s (%s); treating as a miss", path, e)
            return None
        if isinstance(data, dict) and "result" in data and "hash" in data:
            return CacheEntry(result=data["result"], hash=data["hash"], created_at=data.get("created_at", 0.0))
        log.warning("Cache file %s has no {result, hash} entry; treating as a miss", path)
        return None

    def save(self, key: str, entry: CacheEntry) -> str:
        """Serialize fully in memory, then write tmp and os.replace into place."""
        path = self.path_for(key)
        payload = pickle.dumps(
            {"result": entry.result, "hash": entry.hash, "created_at": entry.created_at},
            protocol=pickle.HIGHEST_PROTOCOL,
        )
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        tmp = path + ".tmp"
        try:
            with open(tmp, "wb") as f:
                f.write(payload)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        return path

    def clear(self, key: Optional[str] = None) -> List[str]:
        """Delete one entry (or every readable entry when key is None). Returns removed paths."""
        if key is not None:
            path = self.path_for(key)
            if os.path.exists(path):
                os.remove(path)
                return [path]
            return []
        removed = []
        for info in self.list_entries():
            os.remove(info["path"])
            removed.append(info["path"])
        return removed

    def list_entries(self) -> List[Dict[str, Any]]:
        """Cache entries under cache_dir, newest first. Other pickles are ignored."""
        entries = []
        pattern = os.path.join(self.cache_dir, "**", "*" + CACHE_SUFFIX)
        for path in glob.glob(pattern, recursive=True):
            key = os.path.relpath(path, self.cache_dir)
            entry = self.load(key)
            if entry is None:
                continue
            entries.append({
                "key": key,
                "path": path,
                "hash": entry.hash,
                "created_at": entry.created_at,
                "size_bytes": os.path.getsize(path),
            })
        return sorted(entries, key=lambda x: x["created_at"], reverse=True)


def memoize(
    computation: Callable[[], Any],
    cache_key: str,
    deps: Any = None,
    parallel: bool = True,
    *,
    store: Optional[CacheStore] = None,
    cache_dir: str = CACHE_DIR,
    workers: Optional[int] = None,
    backend: str = "process",
) -> Any:
    """
    Return the cached result of `computation`, computing it on a miss.

    Args:
        computation: Zero-argument callable; runs in the caller's thread, so it
            can use any names in the caller's scope
        cache_key: File name for the cache entry (".pkl" added if no extension)
        deps: External values the result depends on; part of the fingerprint
        parallel: Activate a worker pool (see cache.execution) while computing
        store: CacheStore to use (default: one rooted at cache_dir)
        workers, backend: Worker pool settings when parallel is True

    Errors raised by the computation propagate unchanged and nothing is cached.
    """
    if not callable(computation):
        raise UnsupportedInputError(
            f"memoize expects a zero-argument callable, got {type(computation).__name__}"
        )
    store = store or CacheStore(cache_dir)
    current_hash = fingerprint(computation, deps)

    cached = store.load(cache_key)
    if cached is not None:
        if cached.hash == current_hash:
            log.info("Cache hit: loading '%s' from cache.", cache_key)
            return cached.result
        log.info("Code/deps changed. Re-running computation for '%s'.", cache_key)
    else:
        log.info("No cache found for '%s'. Running computation.", cache_key)

    with parallel_plan(workers=workers, backend=backend) if parallel else nullcontext():
        result = computation()

    store.save(cache_key, CacheEntry(result=result, hash=current_hash))
    return result


def cache_computation(
    cache_key: str,
    deps: Any = None,
    parallel: bool = True,
    **kwargs: Any,
) -> Callable[[Callable[[], Any]], Callable[[], Any]]:
    """Decorator form of memoize(). `deps` is fixed when the decorator is applied.

        @cache_computation("bootstrap.pkl", deps=[n_boot, seed])
        def boot():
            return parallel_map(one_replicate, range(n_boot))

        result = boot()
    """
    def decorator(fn: Callable[[], Any]) -> Callable[[], Any]:
        @functools.wraps(fn)
        def wrapper() -> Any:
            return memoize(fn, cache_key, deps=deps, parallel=parallel, **kwargs)
        return wrapper
    return decorator
