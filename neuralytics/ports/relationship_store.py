"""Port: typed, weighted relationships between items."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Relationship:
    """A directed edge between two stored items."""

    source_id: str
    target_id: str
    type: str = "relatedTo"
    confidence: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RelationshipPage:
    data: list[Relationship]
    next_offset: int | None = None


class RelationshipStorePort(ABC):
    """Read access to the relationship graph."""

    @abstractmethod
    async def get_relationships_for(self, item_id: str) -> list[Relationship]:
        """Return every relationship where *item_id* is source or target."""

    @abstractmethod
    async def get_relationships(
        self,
        *,
        offset: int = 0,
        limit: int = 1000,
    ) -> RelationshipPage:
        """Page through all relationships."""

    async def all_relationships(self, page_size: int = 1000) -> list[Relationship]:
        """Drain :meth:`get_relationships` into one list."""
        out: list[Relationship] = []
        offset: int | None = 0
        while offset is not None:
            page = await self.get_relationships(offset=offset, limit=page_size)
            out.extend(page.data)
            offset = page.next_offset
        return out
