"""Visualization-ready graph snapshots: nodes, edges, colours and layouts.

Usage:
  - A library:  ``await engine.visualize(max_nodes=200, algorithm="force")``
  - HTML:       ``render_html(result, "out/graph.html")`` (needs the ``viz`` extra)
"""

from __future__ import annotations

import asyncio
import logging
import textwrap
from pathlib import Path

import numpy as np

from neuralytics.adapters.clustering.kmeans import default_k, kmeans
from neuralytics.domain.models import (
    VisualizationCluster,
    VisualizationEdge,
    VisualizationNode,
    VisualizationResult,
)
from neuralytics.errors import NeuralAnalyticsError
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.services import distance as dk
from neuralytics.services.graph_builder import load_graph
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)

LAYOUTS = ("force", "hierarchical", "radial", "projection")
SCALE = 100.0

# ── Colours per cluster / level ─────────────────────────────────────────────

PALETTE = [
    "#4C78A8",  # steel blue
    "#F58518",  # orange
    "#E45756",  # coral
    "#72B7B2",  # teal
    "#54A24B",  # green
    "#EECA3B",  # gold
    "#B279A2",  # mauve
    "#FF9DA6",  # pink
]


def _colour(i: int) -> str:
    return PALETTE[i % len(PALETTE)]


def scale_positions(pos: np.ndarray) -> np.ndarray:
    """Min-max scale each axis into [0, 100]; a flat axis sits at 50."""
    out = np.empty_like(pos, dtype=np.float64)
    for axis in range(pos.shape[1]):
        col = pos[:, axis]
        lo, hi = float(col.min()), float(col.max())
        out[:, axis] = SCALE / 2 if hi - lo < 1e-12 else (col - lo) / (hi - lo) * SCALE
    return out


def knn_edges(
    ids: list[str],
    vectors: np.ndarray,
    k: int = 3,
    threshold: float = 0.5,
) -> list[tuple[int, int, float]]:
    """k-NN similarity edges ``(i, j, sim)`` with ``i < j``, deduplicated."""
    if len(ids) < 2:
        return []
    unit = dk.normalize_rows(vectors)
    sims = unit @ unit.T
    np.fill_diagonal(sims, -np.inf)
    seen: dict[tuple[int, int], float] = {}
    for i in range(len(ids)):
        for j in np.argsort(-sims[i])[:k]:
            s = float(sims[i, j])
            if s >= threshold:
                seen.setdefault((min(i, int(j)), max(i, int(j))), s)
    return [(a, b, s) for (a, b), s in seen.items()]


class VisualizationEngine:
    """Builds node/edge/cluster payloads over a level-of-detail slice of the index."""

    def __init__(self, items: ItemRepository, seed: int = 42) -> None:
        self._items = items
        self._seed = seed

    async def _select_nodes(self, max_nodes: int) -> tuple[int, list[str], dict[str, int]]:
        """Pick the most detailed index level that fits in *max_nodes*."""
        top = await self._items.index.max_level()
        levels = await asyncio.gather(
            *(self._items.index.get_index_level_items(l) for l in range(top + 1))
        )
        own_level: dict[str, int] = {}
        for l, ids in enumerate(levels):
            for i in ids:
                own_level[i] = l

        for l, ids in enumerate(levels):
            if len(ids) <= max_nodes:
                return l, list(ids), own_level
        return top, list(levels[top])[:max_nodes], own_level

    async def visualize(
        self,
        *,
        max_nodes: int = 100,
        dimensions: int = 2,
        algorithm: str = "force",
        include_edges: bool = True,
        similarity_edges: bool = False,
        similarity_k: int = 3,
        similarity_threshold: float = 0.5,
        cluster_colors: bool = True,
    ) -> VisualizationResult:
        if dimensions not in (2, 3):
            raise NeuralAnalyticsError(
                f"dimensions must be 2 or 3, got {dimensions}",
                code="INVALID_INPUT",
                context={"dimensions": dimensions},
            )
        if algorithm not in LAYOUTS:
            raise NeuralAnalyticsError(
                f"Unsupported layout: {algorithm}",
                code="INVALID_INPUT",
                context={"algorithm": algorithm, "supported": list(LAYOUTS)},
            )

        level, ids, own_level = await self._select_nodes(max_nodes)
        records = await self._items.get_many(ids)
        result = VisualizationResult(layout=algorithm, dimensions=dimensions)
        if not records:
            return result

        ids = [r.id for r in records]
        vectors = np.stack([np.asarray(r.vector, dtype=np.float64) for r in records])

        edges: list[VisualizationEdge] = []
        pairs: list[tuple[int, int, float]] = []
        if include_edges:
            graph = await load_graph(self._items, ids)
            for a, b, w in graph.edges():
                pairs.append((a, b, w))
                edges.append(VisualizationEdge(ids[a], ids[b], w, "relationship", graph.relationship_type(a, b)))
        if similarity_edges:
            existing = {(a, b) for a, b, _ in pairs}
            for a, b, s in knn_edges(ids, vectors, similarity_k, similarity_threshold):
                if (a, b) not in existing:
                    pairs.append((a, b, s))
                    edges.append(VisualizationEdge(ids[a], ids[b], s, "similarity"))

        labels = np.zeros(len(ids), dtype=np.int64)
        if cluster_colors and len(ids) >= 2:
            k = max(1, min(default_k(len(ids)), len(ids)))
            if k > 1:
                labels = kmeans(vectors, k, seed=self._seed).labels
            for c in sorted(set(labels.tolist())):
                members = [ids[i] for i in np.flatnonzero(labels == c)]
                result.clusters.append(
                    VisualizationCluster(id=f"viz-{c}", label=f"cluster {c} ({len(members)})",
                                         color=_colour(c), members=members)
                )

        node_levels = [own_level.get(i, 0) for i in ids]
        pos = scale_positions(self._layout(algorithm, ids, vectors, pairs, node_levels, labels, dimensions))

        degree = np.zeros(len(ids))
        for a, b, _ in pairs:
            degree[a] += 1
            degree[b] += 1

        for i, rec in enumerate(records):
            result.nodes.append(
                VisualizationNode(
                    id=rec.id,
                    label=_node_label(rec),
                    x=float(pos[i, 0]),
                    y=float(pos[i, 1]),
                    z=float(pos[i, 2]) if dimensions == 3 else None,
                    level=node_levels[i],
                    cluster=f"viz-{int(labels[i])}" if result.clusters else None,
                    color=_colour(int(labels[i])) if result.clusters else _colour(node_levels[i]),
                    size=1.0 + float(degree[i]),
                    metadata={"noun_type": rec.noun_type},
                )
            )
        result.edges = edges
        result.metadata = {
            "level": level,
            "node_count": len(result.nodes),
            "edge_count": len(edges),
            "bounds": {axis: [0.0, SCALE] for axis in "xyz"[:dimensions]},
        }
        log.info("visualize: %d nodes, %d edges at level %d (%s, %dD)",
                 len(result.nodes), len(edges), level, algorithm, dimensions)
        return result

    def _layout(
        self,
        algorithm: str,
        ids: list[str],
        vectors: np.ndarray,
        pairs: list[tuple[int, int, float]],
        levels: list[int],
        labels: np.ndarray,
        dimensions: int,
    ) -> np.ndarray:
        n = len(ids)
        if algorithm == "projection":
            return _project(vectors, dimensions, self._seed)

        if algorithm == "hierarchical":
            pos = np.zeros((n, dimensions))
            for lvl in sorted(set(levels)):
                members = [i for i in range(n) if levels[i] == lvl]
                for rank, i in enumerate(members):
                    pos[i, 0] = (rank - (len(members) - 1) / 2) * 2.0
                    pos[i, 1] = lvl * 3.0
                    if dimensions == 3:
                        pos[i, 2] = float(labels[i])
            return pos

        import networkx as nx

        G = nx.Graph()
        G.add_nodes_from(range(n))
        G.add_weighted_edges_from(pairs)
        if algorithm == "radial":
            shells = [[i for i in range(n) if levels[i] == lvl] for lvl in sorted(set(levels), reverse=True)]
            layout = nx.shell_layout(G, nlist=[s for s in shells if s])
            pos = np.array([layout[i] for i in range(n)], dtype=np.float64)
            if dimensions == 3:
                pos = np.column_stack([pos, np.array(levels, dtype=np.float64)])
            return pos

        layout = nx.spring_layout(G, dim=dimensions, seed=self._seed, weight="weight")
        return np.array([layout[i] for i in range(n)], dtype=np.float64)


def _project(vectors: np.ndarray, dimensions: int, seed: int) -> np.ndarray:
    from sklearn.decomposition import PCA

    n, d = vectors.shape
    comps = min(dimensions, n, d)
    pos = np.zeros((n, dimensions))
    if comps >= 1 and n >= 2:
        pos[:, :comps] = PCA(n_components=comps, random_state=seed).fit_transform(vectors)
    return pos


def _node_label(rec: ItemRecord) -> str:
    raw = rec.metadata.get("label") or rec.metadata.get("name") or rec.id
    return textwrap.shorten(str(raw), width=40, placeholder="…")


def render_html(result: VisualizationResult, path: str, title: str = "Item graph") -> str:
    """Write *result* as an interactive Plotly HTML file and return the path."""
    import plotly.graph_objects as go

    by_id = {n.id: n for n in result.nodes}
    three_d = result.dimensions == 3
    ex, ey, ez = [], [], []
    for e in result.edges:
        a, b = by_id.get(e.source), by_id.get(e.target)
        if a is None or b is None:
            continue
        ex += [a.x, b.x, None]
        ey += [a.y, b.y, None]
        ez += [a.z, b.z, None]

    node_kw = dict(
        mode="markers",
        marker=dict(size=[6 + 2 * n.size for n in result.nodes], color=[n.color for n in result.nodes],
                    line=dict(width=1, color="white")),
        text=[f"<b>{n.label}</b><br>level {n.level}<br>{n.cluster or ''}" for n in result.nodes],
        hoverinfo="text",
        name="items",
    )
    edge_kw = dict(mode="lines", line=dict(width=1, color="#888"), hoverinfo="none", name="edges")
    if three_d:
        traces = [
            go.Scatter3d(x=ex, y=ey, z=ez, **edge_kw),
            go.Scatter3d(x=[n.x for n in result.nodes], y=[n.y for n in result.nodes],
                         z=[n.z for n in result.nodes], **node_kw),
        ]
    else:
        traces = [
            go.Scatter(x=ex, y=ey, **edge_kw),
            go.Scatter(x=[n.x for n in result.nodes], y=[n.y for n in result.nodes], **node_kw),
        ]

    fig = go.Figure(data=traces)
    fig.update_layout(
        title=dict(text=f"{title}<br><sup>{result.layout} layout, {len(result.nodes)} nodes</sup>"),
        showlegend=False,
        hovermode="closest",
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
    )
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(path)
    log.info("Visualization written to %s", path)
    return path
