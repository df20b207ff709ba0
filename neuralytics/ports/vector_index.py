"""Port: approximate nearest-neighbour vector index."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np


@dataclass
class ItemRecord:
    """A stored item: its embedding plus free-form metadata."""

    id: str
    vector: np.ndarray
    noun_type: str = "concept"
    created_at: float = 0.0  # epoch seconds
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    """One ranked result of a similarity search."""

    id: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IdPage:
    ids: list[str]
    next_offset: int | None = None


class VectorIndexPort(ABC):
    """Look up and search item vectors, organised into hierarchy levels."""

    @abstractmethod
    async def search(
        self,
        query: np.ndarray,
        k: int,
        *,
        offset: int = 0,
        candidate_ids: list[str] | None = None,
        min_similarity: float | None = None,
    ) -> list[SearchHit]:
        """Return up to *k* hits ranked by cosine similarity, skipping *offset*."""

    @abstractmethod
    async def get_item(self, item_id: str) -> ItemRecord | None:
        """Return the stored item or ``None`` when it does not exist."""

    @abstractmethod
    async def get_statistics(self) -> dict[str, Any]:
        """Return at least ``item_count``."""

    @abstractmethod
    async def get_index_level_items(self, level: int) -> list[str]:
        """Return the representative ids promoted to *level* (0 = every item)."""

    @abstractmethod
    async def list_ids(self, *, offset: int = 0, limit: int = 1000) -> IdPage:
        """Page through every stored id in a stable order."""

    async def max_level(self) -> int:
        """Highest level holding at least one item."""
        stats = await self.get_statistics()
        return int(stats.get("max_level", 0))

    async def all_ids(self, page_size: int = 1000) -> list[str]:
        """Drain :meth:`list_ids` into one list."""
        ids: list[str] = []
        offset: int | None = 0
        while offset is not None:
            page = await self.list_ids(offset=offset, limit=page_size)
            ids.extend(page.ids)
            offset = page.next_offset
        return ids
