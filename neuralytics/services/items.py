"""Collaborator fan-out: fetch item records and relationships concurrently."""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from neuralytics.ports.relationship_store import Relationship, RelationshipStorePort
from neuralytics.ports.vector_index import ItemRecord, VectorIndexPort

log = logging.getLogger(__name__)


class ItemRepository:
    """Thin async facade over the index and relationship store.

    Lookups for many ids run concurrently with ``asyncio.gather`` and fail
    as soon as one lookup fails. Missing items are dropped, not errors.
    """

    def __init__(
        self,
        vector_index: VectorIndexPort,
        relationship_store: RelationshipStorePort | None = None,
    ) -> None:
        self.index = vector_index
        self.relationships = relationship_store

    async def get(self, item_id: str) -> ItemRecord | None:
        return await self.index.get_item(item_id)

    async def get_many(self, item_ids: list[str]) -> list[ItemRecord]:
        records = await asyncio.gather(*(self.index.get_item(i) for i in item_ids))
        found = [r for r in records if r is not None]
        if len(found) < len(item_ids):
            log.debug("%d of %d ids not found in index", len(item_ids) - len(found), len(item_ids))
        return found

    async def vectors(self, item_ids: list[str]) -> dict[str, np.ndarray]:
        return {r.id: np.asarray(r.vector, dtype=np.float64) for r in await self.get_many(item_ids)}

    async def matrix(self, item_ids: list[str]) -> tuple[list[str], np.ndarray]:
        """Return (ids actually found, stacked vectors) in input order."""
        records = await self.get_many(item_ids)
        if not records:
            return [], np.zeros((0, 0))
        return [r.id for r in records], np.stack([np.asarray(r.vector, dtype=np.float64) for r in records])

    async def all_ids(self) -> list[str]:
        return await self.index.all_ids()

    async def relationships_for(self, item_id: str) -> list[Relationship]:
        if self.relationships is None:
            return []
        return await self.relationships.get_relationships_for(item_id)

    async def relationships_for_many(self, item_ids: list[str]) -> dict[str, list[Relationship]]:
        if self.relationships is None:
            return {i: [] for i in item_ids}
        rels = await asyncio.gather(*(self.relationships.get_relationships_for(i) for i in item_ids))
        return dict(zip(item_ids, rels))

    async def all_relationships(self) -> list[Relationship]:
        if self.relationships is None:
            return []
        return await self.relationships.all_relationships()
