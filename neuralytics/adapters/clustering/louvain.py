"""Clustering adapter: Louvain-style community detection on the relationship graph."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field

from neuralytics.adapters.clustering.common import build_result, empty_result
from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult, Community
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services import distance as dk
from neuralytics.services.graph_builder import RelationshipGraph, load_graph
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler

log = logging.getLogger(__name__)

MAX_PASSES = 50
MIN_GAIN = 1e-12  # below float noise a move is not an improvement
STRONGEST_EDGES = 3
COHERENCE_FLOOR = 0.3
SPLIT_MODULARITY_FACTOR = 0.8
FALLBACK_CONFIDENCE = 0.7


@dataclass
class LocalMovingResult:
    assignment: list[int]
    moves_per_pass: list[int] = field(default_factory=list)
    gains: list[float] = field(default_factory=list)


def local_moving(graph: RelationshipGraph, max_passes: int = MAX_PASSES) -> LocalMovingResult:
    """Greedy modularity local moving, one node at a time.

    Every node starts in its own community. A node moves only to the
    neighbouring community with the largest strictly positive gain, where
    gain compares ``edges_to(C) - deg * tot(C) / 2m`` for the candidate
    against the node's current community with the node itself taken out,
    so every move raises modularity. Stops after a pass with no moves.
    """
    n = graph.node_count
    assignment = list(range(n))
    result = LocalMovingResult(assignment=assignment)
    m = graph.total_weight
    if n == 0 or m <= 0:
        return result

    degree = [graph.degree(i) for i in range(n)]
    tot = list(degree)  # total degree per community id

    for _ in range(max_passes):
        moves = 0
        for node in range(n):
            current = assignment[node]
            links: dict[int, float] = {}
            for nbr, w in graph.neighbors(node):
                c = assignment[nbr]
                links[c] = links.get(c, 0.0) + w

            k = degree[node]
            old_contrib = links.get(current, 0.0) - k * (tot[current] - k) / (2.0 * m)
            best, best_gain = current, MIN_GAIN
            for c, edges_to in links.items():
                if c == current:
                    continue
                gain = (edges_to - k * tot[c] / (2.0 * m)) - old_contrib
                if gain > best_gain:
                    best, best_gain = c, gain

            if best != current:
                assignment[node] = best
                tot[current] -= k
                tot[best] += k
                result.gains.append(best_gain)
                moves += 1

        result.moves_per_pass.append(moves)
        log.debug("louvain pass %d: %d moves", len(result.moves_per_pass), moves)
        if moves == 0:
            break

    return result


def community_stats(graph: RelationshipGraph, members: list[int]) -> Community:
    """Modularity contribution, edge density and strongest internal edges."""
    ids = [graph.arena.id_of(i) for i in members]
    if len(members) < 2:
        return Community(members=ids)

    inside = set(members)
    m = graph.total_weight
    internal_weight = 0.0
    internal_edges: list[tuple[int, int, float]] = []
    total_degree = 0.0
    for a in members:
        total_degree += graph.degree(a)
        for b, w in graph.neighbors(a):
            if b in inside and a < b:
                internal_weight += w
                internal_edges.append((a, b, w))

    expected = total_degree * total_degree / (4.0 * m)
    modularity = internal_weight / m - expected / m
    max_edges = len(members) * (len(members) - 1) / 2
    internal_edges.sort(key=lambda e: e[2], reverse=True)
    return Community(
        members=ids,
        modularity=modularity,
        density=len(internal_edges) / max_edges,
        strongest_connections=[
            (graph.arena.id_of(a), graph.arena.id_of(b), w)
            for a, b, w in internal_edges[:STRONGEST_EDGES]
        ],
    )


def detect_communities(
    graph: RelationshipGraph,
    min_size: int = 2,
    max_passes: int = MAX_PASSES,
) -> tuple[list[Community], LocalMovingResult]:
    moving = local_moving(graph, max_passes)
    grouped: dict[int, list[int]] = {}
    for node, c in enumerate(moving.assignment):
        grouped.setdefault(c, []).append(node)
    communities = [
        community_stats(graph, nodes)
        for nodes in grouped.values()
        if len(nodes) >= min_size
    ]
    return communities, moving


class GraphCommunityClustering(ClusteringPort):
    """Communities over typed relationships, refined by vector coherence."""

    name = "graph"

    def __init__(
        self,
        items: ItemRepository,
        hierarchical: HierarchicalClustering,
        labeler: ClusterLabeler | None = None,
    ) -> None:
        self._items = items
        self._hierarchical = hierarchical
        self._labeler = labeler or ClusterLabeler()

    async def _refine(
        self,
        communities: list[Community],
        vectors: dict,
        options: ClusteringOptions,
    ) -> tuple[list[Community], int]:
        refined: list[Community] = []
        splits = 0
        for comm in communities:
            vecs = [vectors[m] for m in comm.members if m in vectors]
            if dk.coherence(vecs) >= COHERENCE_FLOOR:
                refined.append(comm)
                continue
            splits += 1
            sub = await self._hierarchical.cluster(
                comm.members,
                options.with_(max_clusters=math.ceil(len(comm.members) / 5)),
            )
            for sc in sub.clusters:
                if len(sc.members) < options.min_cluster_size:
                    continue
                refined.append(
                    Community(
                        members=sc.members,
                        modularity=comm.modularity * SPLIT_MODULARITY_FACTOR,
                        density=comm.density,
                    )
                )
        return refined, splits

    async def cluster(
        self,
        item_ids: list[str],
        options: ClusteringOptions,
    ) -> ClusteringResult:
        started = time.perf_counter()
        if not item_ids:
            return empty_result(self.name, started)

        graph = await load_graph(self._items, list(dict.fromkeys(item_ids)))
        if graph.edge_count == 0:
            log.info("graph: no relationships among %d items", graph.node_count)
            return empty_result(self.name, started, edge_count=0)

        communities, moving = detect_communities(graph, options.min_cluster_size)
        records = {r.id: r for r in await self._items.get_many(graph.arena.ids)}
        vectors = {i: r.vector for i, r in records.items()}
        communities, splits = await self._refine(communities, vectors, options)

        clusters: list[Cluster] = []
        for i, comm in enumerate(communities):
            if not comm.members:
                continue
            clusters.append(
                Cluster(
                    id=f"graph-{i}",
                    centroid=dk.centroid(vectors[m] for m in comm.members if m in vectors),
                    members=comm.members,
                    confidence=dk.clamp(comm.modularity) if comm.modularity > 0 else FALLBACK_CONFIDENCE,
                    metadata={
                        "algorithm": self.name,
                        "community_id": i,
                        "modularity": comm.modularity,
                        "graph_density": comm.density,
                        "strongest_connections": comm.strongest_connections,
                    },
                )
            )
        await self._labeler.label_all(clusters, records, self.name)

        log.info(
            "graph: %d nodes, %d edges -> %d communities after %d passes (%d split)",
            graph.node_count, graph.edge_count, len(clusters), len(moving.moves_per_pass), splits,
        )
        return build_result(
            self.name,
            clusters,
            started,
            graph.node_count,
            node_count=graph.node_count,
            edge_count=graph.edge_count,
            passes=len(moving.moves_per_pass),
            moves_per_pass=moving.moves_per_pass,
            refined_splits=splits,
        )
