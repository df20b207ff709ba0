"""Clustering adapter: DBSCAN density clustering."""

from __future__ import annotations

import logging
import math
import time
from collections import deque

import numpy as np

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

NOISE = -1
DEFAULT_EPS = 0.5
EPS_PERCENTILE = 0.9
OUTLIER_CONFIDENCE = 0.1
_CHUNK = 1024


def default_min_pts(n: int) -> int:
    return max(4, int(math.floor(math.log2(n)))) if n > 0 else 4


def _distance_rows(points: np.ndarray, start: int, stop: int) -> np.ndarray:
    """Euclidean distances from rows ``start:stop`` to every point, self = inf."""
    d = np.sqrt(dk.squared_distances(points[start:stop], points))
    rows = np.arange(stop - start)
    d[rows, rows + start] = np.inf
    return d


def estimate_eps(points: np.ndarray, min_pts: int) -> float:
    """90th percentile of each point's distance to its ``min_pts``-th nearest other point."""
    n = points.shape[0]
    if n < min_pts or n < 2:
        return DEFAULT_EPS
    kth = min(min_pts, n - 1) - 1
    kdist = np.empty(n)
    for start in range(0, n, _CHUNK):
        stop = min(start + _CHUNK, n)
        d = _distance_rows(points, start, stop)
        kdist[start:stop] = np.partition(d, kth, axis=1)[:, kth]
    kdist.sort()
    return float(kdist[min(int(math.floor(EPS_PERCENTILE * n)), n - 1)])


def neighborhoods(points: np.ndarray, eps: float) -> list[np.ndarray]:
    """Indices within *eps* of each point, excluding the point itself."""
    n = points.shape[0]
    out: list[np.ndarray] = []
    for start in range(0, n, _CHUNK):
        stop = min(start + _CHUNK, n)
        d = _distance_rows(points, start, stop)
        out.extend(np.flatnonzero(row <= eps) for row in d)
    return out


def dbscan(points: np.ndarray, eps: float, min_pts: int) -> tuple[np.ndarray, list[np.ndarray]]:
    """Label every point with a cluster index or ``NOISE``.

    Core points have at least *min_pts* neighbours within *eps*. Clusters
    grow breadth-first from core points in index order; a border point
    joins the first cluster that reaches it.
    """
    n = points.shape[0]
    nbrs = neighborhoods(points, eps)
    core = np.array([len(x) >= min_pts for x in nbrs], dtype=bool)
    labels = np.full(n, NOISE, dtype=np.int64)
    current = 0

    for i in range(n):
        if labels[i] != NOISE or not core[i]:
            continue
        labels[i] = current
        queue = deque([i])
        while queue:
            p = queue.popleft()
            if not core[p]:
                continue
            for q in nbrs[p]:
                if labels[q] == NOISE:
                    labels[q] = current
                    queue.append(q)
        current += 1

    return labels, nbrs


class DBSCANClustering(ClusteringPort):
    """Density-based clustering; isolated points become noise."""

    name = "dbscan"

    def __init__(self, items: ItemRepository, labeler: ClusterLabeler | None = None) -> None:
        self._items = items
        self._labeler = labeler or ClusterLabeler()

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        started = time.perf_counter()
        records = await self._items.get_many(item_ids)
        if not records:
            return empty_result(self.name, started)

        ids = [r.id for r in records]
        points = np.stack([np.asarray(r.vector, dtype=np.float64) for r in records])
        n = len(ids)
        min_pts = options.min_pts or default_min_pts(n)
        eps = options.eps if options.eps is not None else estimate_eps(points, min_pts)

        labels, nbrs = dbscan(points, eps, min_pts)

        clusters: list[Cluster] = []
        for label in range(int(labels.max()) + 1 if n else 0):
            idx = np.flatnonzero(labels == label)
            members = set(idx.tolist())
            inside = [sum(1 for q in nbrs[i] if q in members) for i in idx]
            denom = max(len(idx) - 1, 1)
            clusters.append(
                Cluster(
                    id=f"dbscan-{label}",
                    centroid=points[idx].mean(axis=0).tolist(),
                    members=[ids[i] for i in idx],
                    confidence=dk.clamp(float(np.mean(inside)) / denom),
                    label=self._labeler.simple([records[i] for i in idx], self.name),
                    metadata={"algorithm": self.name, "eps": eps, "min_pts": min_pts},
                )
            )

        noise_idx = np.flatnonzero(labels == NOISE)
        if options.include_outliers and noise_idx.size:
            clusters.append(
                Cluster(
                    id="dbscan-outliers",
                    centroid=points[noise_idx].mean(axis=0).tolist(),
                    members=[ids[i] for i in noise_idx],
                    confidence=OUTLIER_CONFIDENCE,
                    label=f"outliers ({noise_idx.size})",
                    metadata={"algorithm": self.name, "outliers": True},
                )
            )

        log.info("dbscan: eps=%.4f min_pts=%d -> %d clusters, %d noise", eps, min_pts,
                 len(clusters), noise_idx.size)
        return build_result(
            self.name,
            clusters,
            started,
            n,
            eps=eps,
            min_pts=min_pts,
            noise_points=[ids[i] for i in noise_idx],
        )
