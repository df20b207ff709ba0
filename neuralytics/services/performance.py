"""Per-operation timing and cache counters."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace

from neuralytics.domain.models import PerformanceMetrics


@dataclass
class OperationStats:
    calls: int = 0
    total_ms: float = 0.0
    items: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    last: PerformanceMetrics | None = None

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.calls if self.calls else 0.0


class PerformanceTracker:
    def __init__(self) -> None:
        self._ops: dict[str, OperationStats] = {}
        self._lock = threading.Lock()

    def record(
        self,
        operation: str,
        started: float,
        items: int = 0,
        algorithm: str = "",
        cache_hit: bool | None = None,
    ) -> PerformanceMetrics:
        elapsed = (time.perf_counter() - started) * 1000.0
        with self._lock:
            stats = self._ops.setdefault(operation, OperationStats())
            stats.calls += 1
            stats.total_ms += elapsed
            stats.items += items
            if cache_hit is True:
                stats.cache_hits += 1
            elif cache_hit is False:
                stats.cache_misses += 1
            stats.last = PerformanceMetrics(
                execution_time_ms=elapsed,
                items_processed=items,
                cache_hits=stats.cache_hits,
                cache_misses=stats.cache_misses,
                algorithm=algorithm,
            )
            return stats.last

    def get(self, operation: str) -> OperationStats | None:
        with self._lock:
            stats = self._ops.get(operation)
            return replace(stats) if stats else None

    def snapshot(self) -> dict[str, OperationStats]:
        with self._lock:
            return {k: replace(v) for k, v in self._ops.items()}

    def reset(self) -> None:
        with self._lock:
            self._ops.clear()
