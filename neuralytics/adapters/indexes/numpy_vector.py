"""Vector index adapter: pure NumPy (no FAISS dependency)."""

from __future__ import annotations

import math
import zlib
from typing import Any

import numpy as np

from neuralytics.ports.vector_index import IdPage, ItemRecord, SearchHit, VectorIndexPort


class NumpyVectorIndex(VectorIndexPort):
    """Brute-force cosine index backed by a NumPy matrix.

    Every item lives on level 0. Items are promoted to higher levels with the
    usual HNSW geometric distribution ``floor(-ln(U) * mL)``, where ``U`` is
    drawn from a generator seeded by the item id, so level membership is
    reproducible across runs. Suitable for small–medium corpora (< 1M vectors).
    """

    def __init__(self, M: int = 16, max_levels: int = 4) -> None:
        self._mL = 1.0 / math.log(M)
        self._max_levels = max_levels
        self._items: dict[str, ItemRecord] = {}
        self._levels: dict[str, int] = {}
        # lazily rebuilt search matrix
        self._ids: list[str] = []
        self._matrix: np.ndarray | None = None

    # ── write ──

    def add(
        self,
        item_id: str,
        vector: np.ndarray | list[float],
        *,
        noun_type: str = "concept",
        created_at: float = 0.0,
        metadata: dict[str, Any] | None = None,
        level: int | None = None,
    ) -> None:
        vec = np.asarray(vector, dtype=np.float64)
        self._items[item_id] = ItemRecord(
            id=item_id,
            vector=vec,
            noun_type=noun_type,
            created_at=created_at,
            metadata=dict(metadata or {}),
        )
        self._levels[item_id] = self._assign_level(item_id) if level is None else level
        self._matrix = None

    def remove(self, item_id: str) -> None:
        self._items.pop(item_id, None)
        self._levels.pop(item_id, None)
        self._matrix = None

    def clear(self) -> None:
        self._items.clear()
        self._levels.clear()
        self._matrix = None

    def _assign_level(self, item_id: str) -> int:
        rng = np.random.default_rng(zlib.crc32(item_id.encode("utf-8")))
        u = max(rng.random(), 1e-12)
        return min(int(math.floor(-math.log(u) * self._mL)), self._max_levels)

    def _ensure_matrix(self) -> None:
        if self._matrix is not None:
            return
        self._ids = list(self._items)
        if not self._ids:
            self._matrix = np.zeros((0, 0))
            return
        mat = np.stack([self._items[i].vector for i in self._ids])
        norms = np.linalg.norm(mat, axis=1, keepdims=True)
        self._matrix = mat / (norms + 1e-10)

    # ── read ──

    async def search(
        self,
        query: np.ndarray,
        k: int,
        *,
        offset: int = 0,
        candidate_ids: list[str] | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchHit]:
        self._ensure_matrix()
        if not self._ids or k <= 0:
            return []

        q = np.asarray(query, dtype=np.float64).reshape(-1)
        q = q / (np.linalg.norm(q) + 1e-10)
        sims = self._matrix @ q

        if candidate_ids is not None:
            wanted = set(candidate_ids)
            order = [i for i in np.argsort(-sims, kind="stable") if self._ids[i] in wanted]
        else:
            order = list(np.argsort(-sims, kind="stable"))

        hits: list[SearchHit] = []
        for idx in order[offset:]:
            sim = float(sims[idx])
            if min_similarity is not None and sim < min_similarity:
                break
            item = self._items[self._ids[idx]]
            hits.append(SearchHit(id=item.id, similarity=sim, metadata=item.metadata))
            if len(hits) >= k:
                break
        return hits

    async def get_item(self, item_id: str) -> ItemRecord | None:
        return self._items.get(item_id)

    async def get_statistics(self) -> dict[str, Any]:
        dims = {len(r.vector) for r in self._items.values()}
        counts: dict[int, int] = {}
        for lvl in self._levels.values():
            for l in range(lvl + 1):
                counts[l] = counts.get(l, 0) + 1
        return {
            "item_count": len(self._items),
            "dimension": dims.pop() if len(dims) == 1 else 0,
            "max_level": max(self._levels.values(), default=0),
            "level_counts": counts,
        }

    async def get_index_level_items(self, level: int) -> list[str]:
        return [iid for iid, lvl in self._levels.items() if lvl >= level]

    async def list_ids(self, *, offset: int = 0, limit: int = 1000) -> IdPage:
        ids = list(self._items)
        page = ids[offset : offset + limit]
        nxt = offset + limit if offset + limit < len(ids) else None
        return IdPage(ids=page, next_offset=nxt)

    def __len__(self) -> int:
        return len(self._items)
