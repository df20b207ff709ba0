"""Bounded result caches with an engine-owned sweep thread."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

CACHE_NAMES = ("similarity", "clustering", "hierarchy", "neighbors")


def _canonical(value: Any) -> Any:
    if hasattr(value, "__dataclass_fields__"):
        fields = {k: _canonical(getattr(value, k)) for k in value.__dataclass_fields__}
        return {"__type__": type(value).__name__, **fields}
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if hasattr(value, "tolist"):
        return value.tolist()
    return value


def make_key(operation: str, *args: Any, **kwargs: Any) -> str:
    """Deterministic key: operation plus a digest of canonical JSON arguments."""
    payload = json.dumps(
        {"args": _canonical(list(args)), "kwargs": _canonical(kwargs)},
        sort_keys=True,
        default=str,
    )
    return f"{operation}:{hashlib.sha1(payload.encode('utf-8')).hexdigest()}"


@dataclass
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class BoundedCache:
    """Insertion-ordered map that evicts the oldest key once full.

    Re-setting an existing key replaces its value but keeps its position,
    so eviction order is first-inserted, not least-recently-used.
    """

    def __init__(self, max_size: int = 1000) -> None:
        self.max_size = max(1, max_size)
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            if key in self._data:
                self._hits += 1
                return self._data[key]
            self._misses += 1
            return None

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._data:
                while len(self._data) >= self.max_size:
                    oldest = next(iter(self._data))
                    del self._data[oldest]
            self._data[key] = value

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def sweep(self) -> bool:
        """Clear the cache if it somehow grew past its cap."""
        with self._lock:
            if len(self._data) > self.max_size:
                self._data.clear()
                return True
            return False

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(len(self._data), self.max_size, self._hits, self._misses)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class CacheLayer:
    """The four operation caches plus the background sweep that guards them.

    The sweep thread starts on construction and stops on :meth:`shutdown`.
    """

    def __init__(self, max_size: int = 1000, sweep_interval: float = 300.0) -> None:
        self._caches = {name: BoundedCache(max_size) for name in CACHE_NAMES}
        self._interval = sweep_interval
        self._stop = threading.Event()

        # Background sweep thread (daemon so it dies with main process)
        self._worker = threading.Thread(target=self._sweep_loop, name="neuralytics-cache-sweep", daemon=True)
        self._worker.start()

    def __getitem__(self, name: str) -> BoundedCache:
        return self._caches[name]

    @property
    def similarity(self) -> BoundedCache:
        return self._caches["similarity"]

    @property
    def clustering(self) -> BoundedCache:
        return self._caches["clustering"]

    @property
    def hierarchy(self) -> BoundedCache:
        return self._caches["hierarchy"]

    @property
    def neighbors(self) -> BoundedCache:
        return self._caches["neighbors"]

    def clear(self) -> None:
        for cache in self._caches.values():
            cache.clear()

    def stats(self) -> dict[str, CacheStats]:
        return {name: cache.stats() for name, cache in self._caches.items()}

    def sweep(self) -> None:
        for name, cache in self._caches.items():
            if cache.sweep():
                log.info("cache sweep cleared oversized %s cache", name)

    @property
    def running(self) -> bool:
        return self._worker.is_alive()

    def shutdown(self, timeout: float = 5.0) -> None:
        self._stop.set()
        self._worker.join(timeout=timeout)
        log.debug("cache sweep thread stopped")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._interval):
            self.sweep()
