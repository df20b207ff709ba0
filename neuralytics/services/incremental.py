"""Incremental cluster maintenance and batch-streamed clustering."""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator

import numpy as np

from neuralytics.adapters.clustering.common import build_result
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult, StreamingBatch
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.router import AlgorithmRouter

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
ADAPT_RATE = 0.25
MIN_THRESHOLD = 0.3
MAX_THRESHOLD = 0.9


def adapt_threshold(current: float, clusters: list[Cluster]) -> float:
    """Move a quarter of the way toward the batch's mean cluster confidence."""
    if not clusters:
        return current
    mean_conf = sum(c.confidence for c in clusters) / len(clusters)
    return dk.clamp(current + ADAPT_RATE * (mean_conf - current), MIN_THRESHOLD, MAX_THRESHOLD)


class IncrementalEngine:
    """Fold new items into existing clusters, or stream clustering in batches."""

    def __init__(
        self,
        items: ItemRepository,
        router: AlgorithmRouter,
        batch_size: int = 100,
    ) -> None:
        self._items = items
        self._router = router
        self._batch_size = batch_size

    async def update_clusters(
        self,
        new_ids: list[str],
        options: ClusteringOptions,
        existing: list[Cluster],
    ) -> ClusteringResult:
        """Return *existing* (copied, never mutated) extended with *new_ids*.

        Each new item joins the cluster whose centroid it is most similar to,
        provided that similarity exceeds the threshold; that centroid moves to
        the new member mean. The remaining items are clustered from scratch.
        """
        started = time.perf_counter()
        threshold = options.threshold if options.threshold is not None else DEFAULT_THRESHOLD
        clusters = [c.copy() for c in existing]
        records = await self._items.get_many(new_ids)

        centroids = (
            dk.normalize_rows(np.array([c.centroid for c in clusters], dtype=np.float64))
            if clusters and all(len(c.centroid) for c in clusters)
            else None
        )
        assigned = 0
        unassigned: list[str] = []
        for rec in records:
            best = -1
            if centroids is not None and len(rec.vector) == centroids.shape[1]:
                v = np.asarray(rec.vector, dtype=np.float64)
                sims = centroids @ (v / (np.linalg.norm(v) or 1.0))
                j = int(np.argmax(sims))
                if sims[j] > threshold:
                    best = j
            if best < 0:
                unassigned.append(rec.id)
                continue
            target = clusters[best]
            target.members.append(rec.id)
            c = np.asarray(target.centroid, dtype=np.float64)
            c = c + (np.asarray(rec.vector, dtype=np.float64) - c) / target.size
            target.centroid = c.tolist()
            centroids[best] = c / (np.linalg.norm(c) or 1.0)
            assigned += 1

        created = 0
        if unassigned:
            fresh = await self._router.cluster(unassigned, options)
            taken = {c.id for c in clusters}
            for c in fresh.clusters:
                if c.id in taken:
                    c.id = f"{c.id}-new-{created}"
                taken.add(c.id)
                clusters.append(c)
                created += 1

        log.info("incremental: %d new items, %d assigned, %d new clusters", len(records), assigned, created)
        return build_result(
            "incremental",
            clusters,
            started,
            len(records),
            assigned=assigned,
            new_clusters=created,
            threshold=threshold,
        )

    async def cluster_stream(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> AsyncIterator[StreamingBatch]:
        """Yield one batch of clusters at a time over a snapshot of *item_ids*.

        Nothing runs between yields, so the consumer stops the work simply by
        not asking for the next batch.
        """
        ids = list(item_ids)
        total = len(ids)
        size = options.batch_size or self._batch_size
        threshold = options.threshold if options.threshold is not None else DEFAULT_THRESHOLD
        processed = 0

        for number, start in enumerate(range(0, total, size), start=1):
            batch_started = time.perf_counter()
            batch = ids[start : start + size]
            result = await self._router.cluster(batch, options)
            processed += len(batch)
            used = threshold
            if options.adaptive_threshold:
                threshold = adapt_threshold(threshold, result.clusters)
                log.debug("stream batch %d: threshold %.3f -> %.3f", number, used, threshold)

            yield StreamingBatch(
                clusters=result.clusters,
                batch_number=number,
                is_complete=processed >= total,
                processed=processed,
                total=total,
                percentage=processed / total * 100.0,
                execution_time_ms=(time.perf_counter() - batch_started) * 1000.0,
                threshold=used,
            )
