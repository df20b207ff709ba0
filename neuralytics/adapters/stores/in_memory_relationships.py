"""Relationship store adapter: in-memory (for tests and embedding hosts)."""

from __future__ import annotations

from collections import defaultdict

from neuralytics.ports.relationship_store import (
    Relationship,
    RelationshipPage,
    RelationshipStorePort,
)


class InMemoryRelationshipStore(RelationshipStorePort):
    """Non-persistent relationship store for tests and embedding hosts."""

    def __init__(self) -> None:
        self._relations: list[Relationship] = []
        self._by_item: dict[str, list[Relationship]] = defaultdict(list)

    def save_relation(self, relation: Relationship) -> None:
        self._relations.append(relation)
        self._by_item[relation.source_id].append(relation)
        if relation.target_id != relation.source_id:
            self._by_item[relation.target_id].append(relation)

    def save_relations(self, relations: list[Relationship]) -> None:
        for r in relations:
            self.save_relation(r)

    def connect(
        self,
        source_id: str,
        target_id: str,
        rel_type: str = "relatedTo",
        confidence: float | None = None,
    ) -> Relationship:
        rel = Relationship(source_id, target_id, rel_type, confidence)
        self.save_relation(rel)
        return rel

    async def get_relationships_for(self, item_id: str) -> list[Relationship]:
        return list(self._by_item.get(item_id, ()))

    async def get_relationships(
        self,
        *,
        offset: int = 0,
        limit: int = 1000,
    ) -> RelationshipPage:
        page = self._relations[offset : offset + limit]
        nxt = offset + limit if offset + limit < len(self._relations) else None
        return RelationshipPage(data=page, next_offset=nxt)

    def clear(self) -> None:
        self._relations.clear()
        self._by_item.clear()

    def __len__(self) -> int:
        return len(self._relations)
