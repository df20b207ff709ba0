"""Clustering adapter: KMeans with k-means++ seeding."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field

import numpy as np

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

MAX_AUTO_K = 50


@dataclass
class KMeansFit:
    labels: np.ndarray
    centroids: np.ndarray
    iterations: int
    converged: bool
    inertia_history: list[float] = field(default_factory=list)


def default_k(n: int) -> int:
    return min(int(math.floor(math.sqrt(n / 2))), MAX_AUTO_K)


def kmeans_plus_plus_init(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """Pick *k* seeds, each with probability proportional to D(x)²."""
    n = points.shape[0]
    chosen = [int(rng.integers(n))]
    d2 = dk.squared_distances(points, points[chosen]).min(axis=1)
    while len(chosen) < k:
        total = float(d2.sum())
        if total <= 0.0:
            nxt = int(rng.integers(n))
        else:
            nxt = int(rng.choice(n, p=d2 / total))
        chosen.append(nxt)
        d2 = np.minimum(d2, dk.squared_distances(points, points[[nxt]])[:, 0])
    return points[chosen].copy()


def kmeans(
    points: np.ndarray,
    k: int,
    *,
    seed: int | None = None,
    max_iterations: int = 100,
    tolerance: float = 1e-4,
) -> KMeansFit:
    """Lloyd iterations from k-means++ seeds.

    Ties go to the lowest centroid index. A centroid that loses every
    member keeps its previous position. Iteration stops once the fraction
    of points that changed cluster drops below *tolerance*.
    """
    rng = np.random.default_rng(seed)
    centroids = kmeans_plus_plus_init(points, k, rng)
    labels = np.full(points.shape[0], -1, dtype=np.int64)
    history: list[float] = []
    converged = False
    iterations = 0

    for it in range(max_iterations):
        iterations = it + 1
        new_labels = np.argmin(dk.squared_distances(points, centroids), axis=1)
        change_rate = 1.0 if it == 0 else float(np.mean(new_labels != labels))
        labels = new_labels

        for j in range(k):
            mask = labels == j
            if mask.any():
                centroids[j] = points[mask].mean(axis=0)

        diff = points - centroids[labels]
        history.append(float(np.einsum("ij,ij->", diff, diff)))
        log.debug("kmeans iter %d: change_rate=%.4f inertia=%.4f", iterations, change_rate, history[-1])

        if change_rate < tolerance:
            converged = True
            break

    return KMeansFit(labels, centroids, iterations, converged, history)


def spread_confidence(member_points: np.ndarray, center: np.ndarray) -> float:
    """``1 - std/mean`` of member-to-centroid distances, clamped to [0, 1]."""
    if len(member_points) <= 1:
        return 1.0
    d = np.linalg.norm(member_points - center, axis=1)
    mean = float(d.mean())
    if mean == 0.0:
        return 1.0
    return dk.clamp(1.0 - float(d.std()) / mean)


class KMeansClustering(ClusteringPort):
    """Centroid partitioning over item vectors."""

    name = "kmeans"

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
        k = min(options.max_clusters or default_k(n), n)

        if k <= 1:
            whole = Cluster(
                id="kmeans-0",
                centroid=points.mean(axis=0).tolist(),
                members=ids,
                confidence=1.0,
                label=self._labeler.simple(records, self.name),
                metadata={"algorithm": self.name},
            )
            return build_result(self.name, [whole], started, n, k=1, iterations=0, converged=True)

        fit = kmeans(
            points,
            k,
            seed=options.seed,
            max_iterations=options.max_iterations,
            tolerance=options.tolerance,
        )

        clusters: list[Cluster] = []
        for j in range(k):
            idx = np.flatnonzero(fit.labels == j)
            if idx.size == 0:
                continue
            members = [records[i] for i in idx]
            clusters.append(
                Cluster(
                    id=f"kmeans-{j}",
                    centroid=fit.centroids[j].tolist(),
                    members=[ids[i] for i in idx],
                    confidence=spread_confidence(points[idx], fit.centroids[j]),
                    label=self._labeler.simple(members, self.name),
                    metadata={"algorithm": self.name, "k": k},
                )
            )

        log.info("kmeans: %d items -> %d clusters in %d iterations", n, len(clusters), fit.iterations)
        return build_result(
            self.name,
            clusters,
            started,
            n,
            k=k,
            iterations=fit.iterations,
            converged=fit.converged,
            inertia_history=fit.inertia_history,
        )
