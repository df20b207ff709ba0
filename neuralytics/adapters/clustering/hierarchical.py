"""Clustering adapter: approximate hierarchical clustering over index levels.

Representatives promoted to a higher index level act as cluster seeds; each
seed claims its unclaimed nearest neighbours, and leftovers join the
nearest centroid afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time

import numpy as np

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

DEFAULT_SIMILARITY_FLOOR = 0.5


def level_for(n: int) -> int:
    if n < 100:
        return 0
    if n < 1000:
        return 1
    if n < 10000:
        return 2
    return 3


def default_max_clusters(n: int) -> int:
    return max(1, min(50, math.ceil(n / 20)))


def neighbour_limit(n: int) -> int:
    return min(50, max(10, n // 10))


class HierarchicalClustering(ClusteringPort):
    """Seeds clusters from index-level representatives."""

    name = "hierarchical"

    def __init__(self, items: ItemRepository, labeler: ClusterLabeler | None = None) -> None:
        self._items = items
        self._labeler = labeler or ClusterLabeler()

    async def _representatives(self, ids: list[str], level: int, max_clusters: int) -> list[str]:
        idset = set(ids)
        reps = [r for r in await self._items.index.get_index_level_items(level) if r in idset]
        if not reps:
            stride = max(1, len(ids) // max_clusters)
            reps = ids[::stride]
        return reps[:max_clusters]

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        started = time.perf_counter()
        records = await self._items.get_many(item_ids)
        if not records:
            return empty_result(self.name, started)

        by_id = {r.id: r for r in records}
        ids = list(by_id)
        n = len(ids)
        level = options.level if options.level is not None else level_for(n)
        max_clusters = options.max_clusters or default_max_clusters(n)
        floor = options.similarity_floor
        if floor is None:
            floor = DEFAULT_SIMILARITY_FLOOR
        limit = neighbour_limit(n)

        reps = await self._representatives(ids, level, max_clusters)
        hit_lists = await asyncio.gather(
            *(
                self._items.index.search(
                    by_id[rep].vector, limit, candidate_ids=ids, min_similarity=floor
                )
                for rep in reps
            )
        )

        claimed: dict[str, int] = {}
        groups: list[list[str]] = []
        for rep, hits in zip(reps, hit_lists):
            if rep in claimed:
                continue
            members = [rep]
            claimed[rep] = len(groups)
            for hit in hits:
                if hit.id not in claimed and hit.id in by_id:
                    claimed[hit.id] = len(groups)
                    members.append(hit.id)
            groups.append(members)

        centroids = np.stack([
            np.mean([by_id[m].vector for m in g], axis=0) for g in groups
        ])
        leftovers = [i for i in ids if i not in claimed]
        if leftovers:
            pts = np.stack([np.asarray(by_id[i].vector, dtype=np.float64) for i in leftovers])
            nearest = np.argmin(dk.squared_distances(pts, centroids), axis=1)
            for item_id, g in zip(leftovers, nearest):
                groups[int(g)].append(item_id)
            log.debug("hierarchical: %d unclaimed items assigned to nearest centroid", len(leftovers))

        clusters: list[Cluster] = []
        for i, members in enumerate(groups):
            vecs = [by_id[m].vector for m in members]
            center = dk.centroid(vecs)
            clusters.append(
                Cluster(
                    id=f"hierarchical-{i}",
                    centroid=center,
                    members=members,
                    confidence=dk.coherence(vecs, center),
                    label=self._labeler.simple([by_id[m] for m in members], self.name),
                    metadata={"algorithm": self.name, "level": level, "representative": members[0]},
                )
            )

        log.info("hierarchical: %d items at level %d -> %d clusters", n, level, len(clusters))
        return build_result(
            self.name,
            clusters,
            started,
            n,
            level=level,
            representatives=len(reps),
            unclaimed_assigned=len(leftovers),
        )
