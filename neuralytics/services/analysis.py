"""Neighbourhood, hierarchy and outlier analysis over the vector index."""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from neuralytics.adapters.clustering.kmeans import default_k, kmeans
from neuralytics.domain.models import (
    HierarchyNode,
    Neighbor,
    NeighborsResult,
    Outlier,
    SemanticHierarchy,
)
from neuralytics.errors import NeuralAnalyticsError
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)

SORT_KEYS = ("similarity", "importance", "recency")
OUTLIER_METHODS = ("cluster-based", "statistical", "isolation")
HIERARCHY_CANDIDATES = 20


class AnalysisEngine:
    """Read-only analytics that do not produce clusters."""

    def __init__(self, items: ItemRepository, seed: int | None = 42) -> None:
        self._items = items
        self._seed = seed

    # ── neighbours ──

    async def neighbors(
        self,
        item_id: str,
        *,
        limit: int = 10,
        min_similarity: float = 0.1,
        sort_by: str = "similarity",
        include_metadata: bool = True,
    ) -> NeighborsResult:
        if sort_by not in SORT_KEYS:
            raise NeuralAnalyticsError(
                f"Unsupported sort order: {sort_by}",
                code="INVALID_INPUT",
                context={"sort_by": sort_by},
            )
        record = await self._items.get(item_id)
        if record is None:
            return NeighborsResult(center=item_id)

        hits = await self._items.index.search(record.vector, limit + 1, min_similarity=min_similarity)
        hits = [h for h in hits if h.id != item_id][:limit]

        if sort_by != "similarity" and hits:
            recs = {r.id: r for r in await self._items.get_many([h.id for h in hits])}
            if sort_by == "importance":
                hits = sorted(hits, key=lambda h: importance_of(recs[h.id]) if h.id in recs else 0.0, reverse=True)
            else:
                hits = sorted(hits, key=lambda h: recs[h.id].created_at if h.id in recs else 0.0, reverse=True)

        neighbours = [
            Neighbor(id=h.id, similarity=h.similarity, metadata=dict(h.metadata) if include_metadata else None)
            for h in hits
        ]
        avg = sum(n.similarity for n in neighbours) / len(neighbours) if neighbours else 0.0
        return NeighborsResult(
            center=item_id,
            neighbors=neighbours,
            total_found=len(neighbours),
            average_similarity=avg,
        )

    # ── hierarchy ──

    async def hierarchy(self, item_id: str) -> SemanticHierarchy | None:
        """Locate *item_id* in the index levels.

        The item's level is the highest level listing it. Parent, grandparent
        and root are the most similar items one, two and all the way up.
        Siblings share the parent; children sit one level down and have the
        item as their nearest representative.
        """
        record = await self._items.get(item_id)
        if record is None:
            return None

        top = await self._items.index.max_level()
        levels = await asyncio.gather(
            *(self._items.index.get_index_level_items(l) for l in range(top + 1))
        )
        level = max((l for l, ids in enumerate(levels) if item_id in set(ids)), default=0)
        result = SemanticHierarchy(self_id=item_id, level=level)

        async def nearest(l: int, exclude: str = item_id) -> HierarchyNode | None:
            candidates = [i for i in levels[l] if i != exclude]
            if not candidates:
                return None
            hits = await self._items.index.search(record.vector, 1, candidate_ids=candidates)
            return HierarchyNode(hits[0].id, hits[0].similarity, l) if hits else None

        if level + 1 <= top:
            result.parent = await nearest(level + 1)
        if level + 2 <= top:
            result.grandparent = await nearest(level + 2)
        if level < top:
            result.root = await nearest(top)

        if result.parent is not None:
            upper = levels[level + 1]
            promoted = set(upper)
            peers = await self._items.index.search(
                record.vector, HIERARCHY_CANDIDATES,
                candidate_ids=[i for i in levels[level] if i != item_id and i not in promoted],
            )
            owners = await self._nearest_owner([p.id for p in peers], upper)
            result.siblings = [
                HierarchyNode(p.id, p.similarity, level)
                for p in peers
                if owners.get(p.id) == result.parent.id
            ]

        if level > 0:
            here = levels[level]
            here_set = set(here)
            below = await self._items.index.search(
                record.vector, HIERARCHY_CANDIDATES,
                candidate_ids=[i for i in levels[level - 1] if i not in here_set],
            )
            owners = await self._nearest_owner([b.id for b in below], here)
            result.children = [
                HierarchyNode(b.id, b.similarity, level - 1)
                for b in below
                if owners.get(b.id) == item_id
            ]

        return result

    async def _nearest_owner(self, ids: list[str], representatives: list[str]) -> dict[str, str]:
        """Map each id to its most cosine-similar representative."""
        if not ids or not representatives:
            return {}
        rep_ids, rep_mat = await self._items.matrix(representatives)
        got_ids, mat = await self._items.matrix(ids)
        if not rep_ids or not got_ids:
            return {}
        sims = dk.normalize_rows(mat) @ dk.normalize_rows(rep_mat).T
        return {i: rep_ids[int(j)] for i, j in zip(got_ids, np.argmax(sims, axis=1))}

    # ── outliers ──

    async def outliers(
        self,
        *,
        method: str = "cluster-based",
        threshold: float = 0.3,
        max_items: int | None = None,
    ) -> list[Outlier]:
        """Score every item in [0, 1]; report those scoring at least ``1 - threshold``."""
        if method not in OUTLIER_METHODS:
            raise NeuralAnalyticsError(
                f"Unsupported outlier method: {method}",
                code="UNSUPPORTED_METHOD",
                context={"method": method, "supported": list(OUTLIER_METHODS)},
            )
        ids = await self._items.all_ids()
        if max_items is not None:
            ids = ids[:max_items]
        records = await self._items.get_many(ids)
        if len(records) < 2:
            return []

        points = np.stack([np.asarray(r.vector, dtype=np.float64) for r in records])
        if method == "cluster-based":
            scores, nearest, reasons = self._cluster_scores(points)
        elif method == "statistical":
            scores, nearest, reasons = self._statistical_scores(points)
        else:
            scores, nearest, reasons = self._isolation_scores(points)

        cutoff = 1.0 - threshold
        found = [
            Outlier(
                id=r.id,
                score=float(scores[i]),
                method=method,
                reason=reasons[i],
                nearest_cluster=nearest[i],
            )
            for i, r in enumerate(records)
            if scores[i] >= cutoff
        ]
        found.sort(key=lambda o: o.score, reverse=True)
        log.info("outliers(%s): %d of %d items flagged", method, len(found), len(records))
        return found

    def _cluster_scores(self, points: np.ndarray) -> tuple[np.ndarray, list[str | None], list[str]]:
        n = points.shape[0]
        k = max(1, min(default_k(n), n))
        if k == 1:
            labels = np.zeros(n, dtype=np.int64)
            centroids = points.mean(axis=0, keepdims=True)
        else:
            fit = kmeans(points, k, seed=self._seed)
            labels, centroids = fit.labels, fit.centroids
        d = np.linalg.norm(points - centroids[labels], axis=1)

        scores = np.zeros(n)
        reasons: list[str] = []
        for i in range(n):
            mask = labels == labels[i]
            if mask.sum() == 1:
                scores[i] = 1.0
                reasons.append("only member of its cluster")
                continue
            mean = float(d[mask].mean())
            scores[i] = d[i] / (d[i] + mean) if d[i] + mean > 0 else 0.0
            reasons.append(f"distance {d[i]:.3f} vs cluster mean {mean:.3f}")
        return scores, [f"kmeans-{int(l)}" for l in labels], reasons

    @staticmethod
    def _statistical_scores(points: np.ndarray) -> tuple[np.ndarray, list[str | None], list[str]]:
        d = np.linalg.norm(points - points.mean(axis=0), axis=1)
        std = float(d.std())
        z = (d - d.mean()) / std if std > 0 else np.zeros_like(d)
        scores = 1.0 - np.exp(-np.maximum(z, 0.0) / 2.0)
        return scores, [None] * len(d), [f"z-score {v:.2f} from global centroid" for v in z]

    def _isolation_scores(self, points: np.ndarray) -> tuple[np.ndarray, list[str | None], list[str]]:
        from sklearn.ensemble import IsolationForest

        forest = IsolationForest(
            n_estimators=100,
            max_samples=min(256, points.shape[0]),
            random_state=self._seed,
        )
        forest.fit(points)
        scores = np.clip(-forest.score_samples(points), 0.0, 1.0)
        return scores, [None] * len(scores), [f"isolation score {s:.3f}" for s in scores]


def importance_of(record: ItemRecord) -> float:
    value = record.metadata.get("importance", 0)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0

