"""Helpers shared by the clustering adapters."""

from __future__ import annotations

import time
from typing import Any

from neuralytics.domain.models import Cluster, ClusteringResult, PerformanceMetrics


def build_result(
    algorithm: str,
    clusters: list[Cluster],
    started: float,
    items_processed: int,
    **metadata: Any,
) -> ClusteringResult:
    """Wrap *clusters* with timing and the standard summary metadata."""
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    sizes = [c.size for c in clusters]
    meta: dict[str, Any] = {
        "algorithm": algorithm,
        "total_items": items_processed,
        "clusters_found": len(clusters),
        "average_cluster_size": (sum(sizes) / len(sizes)) if sizes else 0.0,
    }
    meta.update(metadata)
    return ClusteringResult(
        clusters=clusters,
        metrics=PerformanceMetrics(
            execution_time_ms=elapsed_ms,
            items_processed=items_processed,
            algorithm=algorithm,
        ),
        metadata=meta,
    )


def empty_result(algorithm: str, started: float, **metadata: Any) -> ClusteringResult:
    return build_result(algorithm, [], started, 0, **metadata)
