"""Domain models for clusters, analytics results and similarity inputs."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Sequence, Union


# ── Clusters ────────────────────────────────────────────────────────────────

@dataclass
class Cluster:
    """A group of items with a shared centroid."""

    id: str
    centroid: list[float]
    members: list[str] = field(default_factory=list)
    confidence: float = 0.0
    label: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.members)

    def copy(self) -> "Cluster":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class ClusterEdge:
    """A relationship between two clustered items."""

    id: str
    source: str
    target: str
    relationship_type: str
    weight: float
    is_inter_cluster: bool
    source_cluster: str | None = None
    target_cluster: str | None = None


@dataclass
class Community:
    """Intermediate output of graph community detection."""

    members: list[str] = field(default_factory=list)
    modularity: float = 0.0
    density: float = 0.0
    strongest_connections: list[tuple[str, str, float]] = field(default_factory=list)


@dataclass
class DataCharacteristics:
    """Summary statistics used by the router to pick an algorithm."""

    size: int
    dimensionality: int
    graph_density: float
    type_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def distinct_types(self) -> int:
        return len(self.type_distribution)


# ── Options / results ───────────────────────────────────────────────────────

@dataclass
class ClusteringOptions:
    """Knobs shared by every clustering entry point."""

    algorithm: str = "auto"
    max_clusters: int | None = None
    min_cluster_size: int = 2
    threshold: float | None = None
    similarity_floor: float | None = None
    level: int | None = None
    seed: int | None = None
    # kmeans
    max_iterations: int = 100
    tolerance: float = 1e-4
    # dbscan
    eps: float | None = None
    min_pts: int | None = None
    include_outliers: bool = False
    # sampling
    sample_size: int = 1000
    strategy: str = "diverse"
    # relationship-aware output
    include_edges: bool = False
    # streaming / incremental
    batch_size: int | None = None
    adaptive_threshold: bool = False

    def with_(self, **changes: Any) -> "ClusteringOptions":
        return replace(self, **changes)


@dataclass
class PerformanceMetrics:
    """Timing and cache counters for one operation."""

    execution_time_ms: float = 0.0
    items_processed: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    algorithm: str = ""


@dataclass
class ClusteringResult:
    """Clusters produced by one algorithm run plus run metadata."""

    clusters: list[Cluster] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    metadata: dict[str, Any] = field(default_factory=dict)
    edges: list[ClusterEdge] = field(default_factory=list)

    def copy(self) -> "ClusteringResult":
        return copy.deepcopy(self)


@dataclass
class StreamingBatch:
    """One increment of a streamed clustering run."""

    clusters: list[Cluster]
    batch_number: int
    is_complete: bool
    processed: int
    total: int
    percentage: float
    execution_time_ms: float
    threshold: float


# ── Domain / temporal clustering ────────────────────────────────────────────

@dataclass
class TimeWindow:
    start: float
    end: float
    label: str = ""

    def contains(self, ts: float) -> bool:
        return self.start <= ts < self.end

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class DomainCluster(Cluster):
    """A cluster scoped to one value of a metadata field."""

    domain: str = ""
    domain_confidence: float = 0.0
    cross_domain_members: list[str] = field(default_factory=list)


@dataclass
class TemporalCluster(Cluster):
    """A cluster scoped to a time window."""

    time_window: TimeWindow | None = None
    trend: str = "stable"
    temporal_metrics: dict[str, Any] = field(default_factory=dict)


# ── Similarity / neighbours / hierarchy ─────────────────────────────────────

@dataclass
class SimilarityResult:
    score: float
    confidence: float
    explanation: str
    metric: str


@dataclass
class Neighbor:
    id: str
    similarity: float
    metadata: dict[str, Any] | None = None


@dataclass
class NeighborsResult:
    center: str
    neighbors: list[Neighbor] = field(default_factory=list)
    total_found: int = 0
    average_similarity: float = 0.0


@dataclass
class HierarchyNode:
    id: str
    similarity: float
    level: int


@dataclass
class SemanticHierarchy:
    """Where an item sits in the index's level structure."""

    self_id: str
    level: int
    parent: HierarchyNode | None = None
    grandparent: HierarchyNode | None = None
    root: HierarchyNode | None = None
    siblings: list[HierarchyNode] = field(default_factory=list)
    children: list[HierarchyNode] = field(default_factory=list)


@dataclass
class Outlier:
    id: str
    score: float
    method: str
    reason: str = ""
    nearest_cluster: str | None = None


# ── Visualization ───────────────────────────────────────────────────────────

@dataclass
class VisualizationNode:
    id: str
    label: str
    x: float
    y: float
    z: float | None = None
    level: int = 0
    cluster: str | None = None
    color: str = "#999999"
    size: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class VisualizationEdge:
    source: str
    target: str
    weight: float
    kind: str = "relationship"  # relationship | similarity
    relationship_type: str = ""


@dataclass
class VisualizationCluster:
    id: str
    label: str
    color: str
    members: list[str] = field(default_factory=list)


@dataclass
class VisualizationResult:
    nodes: list[VisualizationNode] = field(default_factory=list)
    edges: list[VisualizationEdge] = field(default_factory=list)
    clusters: list[VisualizationCluster] = field(default_factory=list)
    layout: str = "force"
    dimensions: int = 2
    metadata: dict[str, Any] = field(default_factory=dict)


# ── Tagged similarity inputs ────────────────────────────────────────────────

@dataclass(frozen=True)
class Identifier:
    value: str


@dataclass(frozen=True)
class VectorInput:
    values: tuple[float, ...]


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Raw:
    value: Any


SimilarityInput = Union[Identifier, VectorInput, Text, Raw]


def looks_like_id(value: str) -> bool:
    """UUID-shaped strings and long single tokens are treated as ids."""
    if len(value) == 36 and value.count("-") == 4:
        return True
    return len(value) > 10 and not any(ch.isspace() for ch in value)


def classify_input(value: Any) -> SimilarityInput:
    """Tag an untyped similarity argument exactly once."""
    if isinstance(value, (Identifier, VectorInput, Text, Raw)):
        return value
    if isinstance(value, str):
        return Identifier(value) if looks_like_id(value) else Text(value)
    if isinstance(value, Sequence) or hasattr(value, "tolist"):
        seq = value.tolist() if hasattr(value, "tolist") else list(value)
        if seq and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in seq):
            return VectorInput(tuple(float(v) for v in seq))
    return Raw(value)
