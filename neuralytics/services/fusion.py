"""Consensus fusion of hierarchical, graph and semantic clusterings."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

MIN_AGREEMENT = 2


@dataclass
class ConsensusGroup:
    members: list[str]
    confidence: float
    agreement: dict[str, int]


def fuse_consensus(
    item_order: list[str],
    results: dict[str, list[Cluster]],
    min_size: int = 2,
    min_agreement: int = MIN_AGREEMENT,
) -> list[ConsensusGroup]:
    """Greedy consensus over several clusterings of the same items.

    Seeds are taken in *item_order*. An unprocessed item joins the seed's
    group when the two share a cluster under at least *min_agreement*
    distinct algorithms. Groups smaller than *min_size* are discarded; the
    group confidence is the mean of every member's per-algorithm confidence.
    """
    assignments: dict[str, list[tuple[str, str, float]]] = defaultdict(list)
    cluster_members: dict[tuple[str, str], list[str]] = {}
    for algorithm, clusters in results.items():
        for c in clusters:
            cluster_members[(algorithm, c.id)] = c.members
            for m in c.members:
                assignments[m].append((algorithm, c.id, c.confidence))

    position = {item: i for i, item in enumerate(item_order)}
    processed: set[str] = set()
    groups: list[ConsensusGroup] = []

    for seed in item_order:
        if seed in processed or seed not in assignments:
            continue
        processed.add(seed)

        shared: dict[str, set[str]] = defaultdict(set)
        for algorithm, cid, _ in assignments[seed]:
            for other in cluster_members[(algorithm, cid)]:
                if other != seed and other not in processed:
                    shared[other].add(algorithm)

        partners = sorted(
            (o for o, algs in shared.items() if len(algs) >= min_agreement and o in position),
            key=position.__getitem__,
        )
        members = [seed, *partners]
        processed.update(partners)

        if len(members) < min_size:
            continue
        confs = [conf for m in members for _, _, conf in assignments[m]]
        agreement: dict[str, int] = defaultdict(int)
        for m in members:
            for algorithm in {a for a, _, _ in assignments[m]}:
                agreement[algorithm] += 1
        groups.append(ConsensusGroup(members, sum(confs) / len(confs), dict(agreement)))

    return groups


class FusionEngine(ClusteringPort):
    """Runs three algorithms concurrently and keeps only agreed groupings."""

    name = "multimodal"

    def __init__(
        self,
        items: ItemRepository,
        algorithms: dict[str, ClusteringPort],
        labeler: ClusterLabeler | None = None,
    ) -> None:
        self._items = items
        self._algorithms = algorithms
        self._labeler = labeler or ClusterLabeler()

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        started = time.perf_counter()
        if not item_ids:
            return empty_result(self.name, started)

        names = list(self._algorithms)
        outputs = await asyncio.gather(
            *(self._algorithms[n].cluster(item_ids, options) for n in names)
        )
        results = {n: r.clusters for n, r in zip(names, outputs)}
        groups = fuse_consensus(item_ids, results, options.min_cluster_size)

        records = {r.id: r for r in await self._items.get_many([m for g in groups for m in g.members])}
        clusters = [
            Cluster(
                id=f"fusion-{i}",
                centroid=dk.centroid(records[m].vector for m in g.members if m in records),
                members=g.members,
                confidence=dk.clamp(g.confidence),
                metadata={"algorithm": self.name, "agreement": g.agreement},
            )
            for i, g in enumerate(groups)
        ]
        await self._labeler.label_all(clusters, records, self.name)

        log.info("fusion: %s -> %d consensus clusters",
                 ", ".join(f"{n}={len(results[n])}" for n in names), len(clusters))
        return build_result(
            self.name,
            clusters,
            started,
            len(item_ids),
            source_clusters={n: len(results[n]) for n in names},
        )
