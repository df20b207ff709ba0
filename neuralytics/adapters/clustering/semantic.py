"""Clustering adapter: group by item type, then split large groups by vector."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import defaultdict

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

SMALL_GROUP_CONFIDENCE = 0.9
PAIR_GROUP_CONFIDENCE = 1.0
CROSS_TYPE_SAMPLE = 10
DEFAULT_RELATIONSHIP_CONFIDENCE = 0.7
CANDIDATE_STRENGTH = 0.5
MERGE_STRENGTH = 0.8


class SemanticClustering(ClusteringPort):
    """Type-first clustering with cross-type merges along strong relationships."""

    name = "semantic"

    def __init__(
        self,
        items: ItemRepository,
        hierarchical: HierarchicalClustering,
        labeler: ClusterLabeler | None = None,
    ) -> None:
        self._items = items
        self._hierarchical = hierarchical
        self._labeler = labeler or ClusterLabeler()

    async def _cluster_type(
        self,
        noun_type: str,
        group: list[ItemRecord],
        options: ClusteringOptions,
    ) -> list[Cluster]:
        ids = [r.id for r in group]
        meta = {"algorithm": self.name, "semantic_type": noun_type}

        if len(group) < options.min_cluster_size or len(group) <= 2:
            conf = (
                SMALL_GROUP_CONFIDENCE
                if len(group) < options.min_cluster_size
                else PAIR_GROUP_CONFIDENCE
            )
            return [
                Cluster(
                    id=f"semantic-{noun_type}-0",
                    centroid=dk.centroid(r.vector for r in group),
                    members=ids,
                    confidence=conf,
                    label=self._labeler.simple(group, self.name),
                    metadata=meta,
                )
            ]

        sub = await self._hierarchical.cluster(
            ids,
            options.with_(max_clusters=min(math.ceil(len(group) / 3), 10)),
        )
        out = []
        for i, c in enumerate(sub.clusters):
            c.id = f"semantic-{noun_type}-{i}"
            c.metadata = {**meta, "level": c.metadata.get("level")}
            out.append(c)
        return out

    async def _cross_type_strengths(
        self,
        groups: dict[str, list[ItemRecord]],
    ) -> dict[tuple[str, str], float]:
        """Average relationship confidence between item pairs of different types."""
        type_of = {r.id: t for t, rs in groups.items() for r in rs}
        sampled = [r.id for rs in groups.values() for r in rs[:CROSS_TYPE_SAMPLE]]
        rel_map = await self._items.relationships_for_many(sampled)

        scores: dict[tuple[str, str], list[float]] = defaultdict(list)
        for item_id, rels in rel_map.items():
            for rel in rels:
                other = rel.target_id if rel.source_id == item_id else rel.source_id
                if other not in type_of or type_of[other] == type_of[item_id]:
                    continue
                conf = rel.confidence if rel.confidence is not None else DEFAULT_RELATIONSHIP_CONFIDENCE
                scores[(item_id, other)].append(conf)

        return {
            pair: sum(v) / len(v)
            for pair, v in scores.items()
            if sum(v) / len(v) > CANDIDATE_STRENGTH
        }

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        started = time.perf_counter()
        records = await self._items.get_many(item_ids)
        if not records:
            return empty_result(self.name, started)

        groups: dict[str, list[ItemRecord]] = {}
        for r in records:
            groups.setdefault(r.noun_type or "concept", []).append(r)

        per_type = await asyncio.gather(
            *(self._cluster_type(t, g, options) for t, g in groups.items())
        )
        clusters = [c for cs in per_type for c in cs]

        strengths = await self._cross_type_strengths(groups) if len(groups) > 1 else {}
        merges = 0
        if strengths:
            by_id = {r.id: r for r in records}
            clusters, merges = merge_linked(clusters, strengths, by_id)

        log.info("semantic: %d types -> %d clusters (%d cross-type merges)",
                 len(groups), len(clusters), merges)
        return build_result(
            self.name,
            clusters,
            started,
            len(records),
            types=len(groups),
            cross_type_candidates=len(strengths),
            merges=merges,
        )


def merge_linked(
    clusters: list[Cluster],
    strengths: dict[tuple[str, str], float],
    records: dict[str, ItemRecord],
) -> tuple[list[Cluster], int]:
    """Union clusters joined by a pair whose strength exceeds the merge bar.

    The surviving cluster keeps the first id; its centroid is recomputed from
    the combined member vectors.
    """
    owner = {m: i for i, c in enumerate(clusters) for m in c.members}
    parent = list(range(len(clusters)))

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    merges = 0
    for (a, b), strength in strengths.items():
        if strength <= MERGE_STRENGTH or a not in owner or b not in owner:
            continue
        ra, rb = find(owner[a]), find(owner[b])
        if ra != rb:
            parent[max(ra, rb)] = min(ra, rb)
            merges += 1

    if not merges:
        return clusters, 0

    grouped: dict[int, list[Cluster]] = {}
    for i, c in enumerate(clusters):
        grouped.setdefault(find(i), []).append(c)

    out: list[Cluster] = []
    for root in sorted(grouped):
        parts = grouped[root]
        if len(parts) == 1:
            out.append(parts[0])
            continue
        head = parts[0]
        members = [m for p in parts for m in p.members]
        total = sum(p.size for p in parts)
        out.append(
            Cluster(
                id=head.id,
                centroid=dk.centroid(records[m].vector for m in members if m in records),
                members=members,
                confidence=sum(p.confidence * p.size for p in parts) / total,
                label=f"merged {head.label}" if head.label else "merged cluster",
                metadata={
                    **head.metadata,
                    "merged_from": [p.id for p in parts],
                    "semantic_types": sorted({p.metadata.get("semantic_type", "") for p in parts}),
                },
            )
        )
    return out, merges
