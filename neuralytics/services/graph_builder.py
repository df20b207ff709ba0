"""Build a weighted, undirected relationship graph over a set of items.

Nodes are interned into an arena so the adjacency can be stored as
``node index -> [(neighbour index, weight), ...]`` instead of nested
dictionaries keyed by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from neuralytics.domain.models import Cluster, ClusterEdge
from neuralytics.ports.relationship_store import Relationship
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)

RELATIONSHIP_WEIGHTS: dict[str, float] = {
    "creates": 1.0,
    "partOf": 0.9,
    "contains": 0.9,
    "memberOf": 0.9,
    "causes": 0.8,
    "dependsOn": 0.8,
    "relatedTo": 0.7,
    "worksWith": 0.7,
    "references": 0.6,
    "communicates": 0.6,
}
DEFAULT_RELATIONSHIP_WEIGHT = 0.5


def edge_weight(rel: Relationship) -> float:
    base = RELATIONSHIP_WEIGHTS.get(rel.type, DEFAULT_RELATIONSHIP_WEIGHT)
    conf = rel.confidence if rel.confidence else 1.0
    return base * conf


class IdArena:
    """Intern item ids to dense integer indices."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: list[str] = []
        self._index: dict[str, int] = {}
        for i in ids:
            self.intern(i)

    def intern(self, item_id: str) -> int:
        idx = self._index.get(item_id)
        if idx is None:
            idx = len(self._ids)
            self._ids.append(item_id)
            self._index[item_id] = idx
        return idx

    def index_of(self, item_id: str) -> int | None:
        return self._index.get(item_id)

    def id_of(self, idx: int) -> str:
        return self._ids[idx]

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._index

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class RelationshipGraph:
    """Symmetric weighted adjacency over interned ids."""

    arena: IdArena
    adjacency: list[list[tuple[int, float]]]
    edge_types: dict[tuple[int, int], str] = field(default_factory=dict)

    @property
    def node_count(self) -> int:
        return len(self.arena)

    @property
    def edge_count(self) -> int:
        return sum(len(nbrs) for nbrs in self.adjacency) // 2

    @property
    def total_weight(self) -> float:
        """Sum of undirected edge weights (``m``)."""
        return sum(w for nbrs in self.adjacency for _, w in nbrs) / 2.0

    def degree(self, idx: int) -> float:
        return sum(w for _, w in self.adjacency[idx])

    def neighbors(self, idx: int) -> list[tuple[int, float]]:
        return self.adjacency[idx]

    def weight(self, a: int, b: int) -> float:
        for nbr, w in self.adjacency[a]:
            if nbr == b:
                return w
        return 0.0

    def relationship_type(self, a: int, b: int) -> str:
        return self.edge_types.get((min(a, b), max(a, b)), "unknown")

    def edges(self) -> list[tuple[int, int, float]]:
        """Each undirected edge once, as ``(low, high, weight)``."""
        return [(a, b, w) for a, nbrs in enumerate(self.adjacency) for b, w in nbrs if a < b]


def build_graph(item_ids: list[str], relationships: Iterable[Relationship]) -> RelationshipGraph:
    """Accumulate relationship weights between members of *item_ids*.

    Each relationship adds ``base(type) * confidence`` to both directions of
    the pair, capped at 1.0. Self loops and edges leaving the item set are
    ignored.
    """
    arena = IdArena(item_ids)
    acc: list[dict[int, float]] = [{} for _ in range(len(arena))]
    types: dict[tuple[int, int], str] = {}

    for rel in relationships:
        s = arena.index_of(rel.source_id)
        t = arena.index_of(rel.target_id)
        if s is None or t is None or s == t:
            continue
        w = edge_weight(rel)
        acc[s][t] = min(acc[s].get(t, 0.0) + w, 1.0)
        acc[t][s] = min(acc[t].get(s, 0.0) + w, 1.0)
        types.setdefault((min(s, t), max(s, t)), rel.type)

    adjacency = [sorted(nbrs.items()) for nbrs in acc]
    graph = RelationshipGraph(arena=arena, adjacency=adjacency, edge_types=types)
    log.debug("Relationship graph: %d nodes, %d edges", graph.node_count, graph.edge_count)
    return graph


async def load_graph(items: ItemRepository, item_ids: list[str]) -> RelationshipGraph:
    """Fetch outgoing relationships for every item and build the graph."""
    by_item = await items.relationships_for_many(item_ids)
    outgoing = [r for iid, rels in by_item.items() for r in rels if r.source_id == iid]
    return build_graph(item_ids, outgoing)


def cluster_edges(clusters: list[Cluster], relationships: Iterable[Relationship]) -> list[ClusterEdge]:
    """Relationship edges between clustered items, tagged intra/inter cluster."""
    owner: dict[str, str] = {}
    for c in clusters:
        for m in c.members:
            owner.setdefault(m, c.id)

    edges: list[ClusterEdge] = []
    for i, rel in enumerate(relationships):
        sc = owner.get(rel.source_id)
        tc = owner.get(rel.target_id)
        if sc is None or tc is None:
            continue
        edges.append(
            ClusterEdge(
                id=f"edge-{i}",
                source=rel.source_id,
                target=rel.target_id,
                relationship_type=rel.type,
                weight=edge_weight(rel),
                is_inter_cluster=sc != tc,
                source_cluster=sc,
                target_cluster=tc,
            )
        )
    return edges
