"""Cluster a representative sample, then project the remaining items onto it."""

from __future__ import annotations

import logging
import math
import time

import numpy as np

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.errors import ClusteringError
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)

STRATEGIES = ("random", "diverse", "recent", "important")
PROJECTION_NEIGHBOURS = 3
PROJECTION_SIMILARITY = 0.7
PROJECTED_CONFIDENCE_FACTOR = 0.9


class SamplingEngine(ClusteringPort):
    """Bounded-cost clustering for very large item sets."""

    name = "sample"

    def __init__(
        self,
        items: ItemRepository,
        hierarchical: HierarchicalClustering,
        chunk_size: int = 512,
    ) -> None:
        self._items = items
        self._hierarchical = hierarchical
        self._chunk_size = chunk_size

    # ── sample selection ──

    async def select(
        self,
        records: list[ItemRecord],
        size: int,
        strategy: str,
        seed: int | None = None,
    ) -> list[ItemRecord]:
        if strategy not in STRATEGIES:
            raise ClusteringError(
                f"Unsupported sampling strategy: {strategy}",
                code="UNSUPPORTED_STRATEGY",
                context={"strategy": strategy},
            )
        if len(records) <= size:
            return list(records)

        if strategy == "random":
            rng = np.random.default_rng(seed)
            idx = rng.choice(len(records), size=size, replace=False)
            return [records[i] for i in sorted(idx)]

        if strategy == "recent":
            return sorted(records, key=lambda r: r.created_at, reverse=True)[:size]

        if strategy == "important":
            rels = await self._items.relationships_for_many([r.id for r in records])
            return sorted(
                records,
                key=lambda r: len(rels.get(r.id, ())) * 2 + len(r.metadata),
                reverse=True,
            )[:size]

        return self._farthest_point(records, size, seed)

    @staticmethod
    def _farthest_point(records: list[ItemRecord], size: int, seed: int | None) -> list[ItemRecord]:
        """Greedy max-min selection under cosine distance."""
        mat = dk.normalize_rows(np.stack([np.asarray(r.vector, dtype=np.float64) for r in records]))
        rng = np.random.default_rng(seed)
        first = int(rng.integers(len(records)))
        chosen = [first]
        min_dist = 1.0 - mat @ mat[first]
        min_dist[first] = -np.inf
        while len(chosen) < size:
            nxt = int(np.argmax(min_dist))
            chosen.append(nxt)
            min_dist = np.minimum(min_dist, 1.0 - mat @ mat[nxt])
            min_dist[chosen] = -np.inf
        return [records[i] for i in chosen]

    # ── projection ──

    def _project(
        self,
        sample_clusters: list[Cluster],
        sample: list[ItemRecord],
        rest: list[ItemRecord],
    ) -> dict[str, list[str]]:
        """Map cluster id -> projected item ids, processing *rest* in chunks."""
        owner: dict[str, list[str]] = {}
        for c in sample_clusters:
            for m in c.members:
                owner.setdefault(m, []).append(c.id)

        projected: dict[str, list[str]] = {c.id: [] for c in sample_clusters}
        if not rest or not sample:
            return projected

        sample_mat = dk.normalize_rows(np.stack([np.asarray(r.vector, dtype=np.float64) for r in sample]))
        k = min(PROJECTION_NEIGHBOURS, len(sample))
        for start in range(0, len(rest), self._chunk_size):
            chunk = rest[start : start + self._chunk_size]
            mat = dk.normalize_rows(np.stack([np.asarray(r.vector, dtype=np.float64) for r in chunk]))
            sims = mat @ sample_mat.T
            top = np.argpartition(-sims, k - 1, axis=1)[:, :k]
            for row, record in enumerate(chunk):
                joined: set[str] = set()
                for j in top[row]:
                    if sims[row, j] <= PROJECTION_SIMILARITY:
                        continue
                    for cid in owner.get(sample[j].id, ()):
                        if cid not in joined:
                            joined.add(cid)
                            projected[cid].append(record.id)
        return projected

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        if options.strategy not in STRATEGIES:
            raise ClusteringError(
                f"Unsupported sampling strategy: {options.strategy}",
                code="UNSUPPORTED_STRATEGY",
                context={"strategy": options.strategy},
            )
        started = time.perf_counter()
        records = await self._items.get_many(item_ids)
        if not records:
            return empty_result(self.name, started)

        sample = await self.select(records, options.sample_size, options.strategy, options.seed)
        sampled_ids = {r.id for r in sample}
        rest = [r for r in records if r.id not in sampled_ids]

        sub = await self._hierarchical.cluster(
            [r.id for r in sample],
            options.with_(max_clusters=min(options.max_clusters or 50, math.ceil(len(sample) / 10))),
        )
        projected = self._project(sub.clusters, sample, rest)

        by_id = {r.id: r for r in records}
        clusters: list[Cluster] = []
        for c in sub.clusters:
            members = c.members + projected.get(c.id, [])
            clusters.append(
                Cluster(
                    id=f"projected-{c.id}",
                    centroid=dk.centroid(by_id[m].vector for m in members),
                    members=members,
                    confidence=c.confidence * PROJECTED_CONFIDENCE_FACTOR,
                    label=c.label,
                    metadata={
                        **c.metadata,
                        "algorithm": self.name,
                        "sample_members": c.size,
                        "projected_members": len(projected.get(c.id, [])),
                    },
                )
            )

        log.info("sampling: %d of %d items sampled (%s) -> %d clusters",
                 len(sample), len(records), options.strategy, len(clusters))
        return build_result(
            self.name,
            clusters,
            started,
            len(records),
            sample_size=len(sample),
            strategy=options.strategy,
            projected_items=sum(len(v) for v in projected.values()),
        )
