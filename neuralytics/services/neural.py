"""NeuralAnalytics: the single entry point for clustering and similarity analytics.

Wires the algorithm adapters, engines and caches around the injected
collaborators (vector index, relationship store, embedding, optional LLM)
and wraps every public operation with timing, caching and typed errors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator

from neuralytics.adapters.clustering.dbscan import DBSCANClustering
from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.adapters.clustering.kmeans import KMeansClustering
from neuralytics.adapters.clustering.louvain import GraphCommunityClustering
from neuralytics.adapters.clustering.semantic import SemanticClustering
from neuralytics.domain.models import (
    Cluster,
    ClusteringOptions,
    ClusteringResult,
    NeighborsResult,
    Outlier,
    SemanticHierarchy,
    SimilarityResult,
    StreamingBatch,
    TimeWindow,
    VisualizationResult,
)
from neuralytics.errors import ClusteringError, NeuralAnalyticsError, SimilarityError, truncate
from neuralytics.ports.embedding import EmbeddingPort
from neuralytics.ports.llm import LLMPort
from neuralytics.ports.relationship_store import RelationshipStorePort
from neuralytics.ports.vector_index import VectorIndexPort
from neuralytics.services.analysis import AnalysisEngine
from neuralytics.services.cache import CacheLayer, CacheStats, make_key
from neuralytics.services.domains import DomainEngine
from neuralytics.services.fusion import FusionEngine
from neuralytics.services.graph_builder import cluster_edges
from neuralytics.services.incremental import IncrementalEngine
from neuralytics.services.items import ItemRepository
from neuralytics.services.labeling import ClusterLabeler
from neuralytics.services.performance import OperationStats, PerformanceTracker
from neuralytics.services.router import AlgorithmRouter, validate_algorithm
from neuralytics.services.sampling import STRATEGIES, SamplingEngine
from neuralytics.services.similarity import SimilarityEngine
from neuralytics.services.visualization import VisualizationEngine

log = logging.getLogger(__name__)


class NeuralAnalytics:
    """Facade over every analytics operation."""

    def __init__(
        self,
        vector_index: VectorIndexPort,
        relationship_store: RelationshipStorePort | None = None,
        embedding: EmbeddingPort | None = None,
        llm: LLMPort | None = None,
        *,
        cache_size: int = 1000,
        cleanup_interval: float = 300.0,
        streaming_batch_size: int = 100,
        similarity_metric: str = "cosine",
        default_algorithm: str = "auto",
        sampling_chunk_size: int = 512,
        seed: int | None = 42,
        router_thresholds: dict[str, Any] | None = None,
    ) -> None:
        validate_algorithm(default_algorithm)
        self._default_algorithm = default_algorithm
        self._seed = seed
        self.items = ItemRepository(vector_index, relationship_store)

        simple = ClusterLabeler()
        smart = ClusterLabeler(llm)
        self.hierarchical = HierarchicalClustering(self.items, simple)
        base = {
            "hierarchical": self.hierarchical,
            "kmeans": KMeansClustering(self.items, simple),
            "dbscan": DBSCANClustering(self.items, simple),
            "semantic": SemanticClustering(self.items, self.hierarchical, simple),
            "graph": GraphCommunityClustering(self.items, self.hierarchical, smart),
        }
        fusion = FusionEngine(
            self.items,
            {k: base[k] for k in ("hierarchical", "graph", "semantic")},
            smart,
        )
        sampling = SamplingEngine(self.items, self.hierarchical, chunk_size=sampling_chunk_size)
        self.algorithms = {**base, "multimodal": fusion, "sample": sampling}

        self.router = AlgorithmRouter(self.items, self.algorithms, **(router_thresholds or {}))
        self.similarity_engine = SimilarityEngine(self.items, embedding, similarity_metric)
        self.incremental = IncrementalEngine(self.items, self.router, batch_size=streaming_batch_size)
        self.domains = DomainEngine(self.items, self.router)
        self.analysis = AnalysisEngine(self.items, seed=seed)
        self.visualization = VisualizationEngine(self.items, seed=seed if seed is not None else 42)
        self.cache = CacheLayer(max_size=cache_size, sweep_interval=cleanup_interval)
        self.performance = PerformanceTracker()
        self._last_clusters: list[Cluster] | None = None

        log.info(
            "NeuralAnalytics ready (cache_size=%d, metric=%s, default_algorithm=%s, llm=%s)",
            cache_size, similarity_metric, default_algorithm, smart.has_llm,
        )

    # ── lifecycle ──

    def shutdown(self) -> None:
        """Stop the cache sweep thread."""
        self.cache.shutdown()

    async def __aenter__(self) -> "NeuralAnalytics":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.shutdown()

    def _options(self, options: ClusteringOptions | None, overrides: dict[str, Any]) -> ClusteringOptions:
        opts = options or ClusteringOptions(algorithm=self._default_algorithm, seed=self._seed)
        return opts.with_(**overrides) if overrides else opts

    # ── similarity ──

    async def similar(
        self,
        a: Any,
        b: Any,
        *,
        metric: str | None = None,
        normalized: bool = True,
        detailed: bool = False,
    ) -> float | SimilarityResult:
        """Similarity of two ids, vectors, texts or tagged inputs."""
        started = time.perf_counter()
        key = make_key("similar", a, b, metric, normalized, detailed)
        cached = self.cache.similarity.get(key)
        if cached is not None:
            self.performance.record("similar", started, 2, metric or "", cache_hit=True)
            return cached
        try:
            result = await self.similarity_engine.similarity(
                a, b, metric=metric, normalized=normalized, detailed=detailed
            )
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("similarity failed: %s", exc)
            raise SimilarityError(
                f"Failed to calculate similarity: {exc}",
                context={"a": truncate(a), "b": truncate(b), "metric": metric},
            ) from exc
        self.cache.similarity.set(key, result)
        self.performance.record("similar", started, 2, metric or "", cache_hit=False)
        return result

    def similar_sync(self, a: Any, b: Any, **kwargs: Any) -> float | SimilarityResult:
        """Synchronous wrapper for :meth:`similar` (for scripts and tests)."""
        return asyncio.run(self.similar(a, b, **kwargs))

    # ── clustering ──

    async def clusters(
        self,
        item_ids: list[str] | None = None,
        options: ClusteringOptions | None = None,
        **overrides: Any,
    ) -> ClusteringResult:
        """Cluster *item_ids* (default: every stored item) with the routed algorithm."""
        started = time.perf_counter()
        opts = self._options(options, overrides)
        validate_algorithm(opts.algorithm)
        if opts.algorithm == "sample" and opts.strategy not in STRATEGIES:
            raise ClusteringError(
                f"Unsupported sampling strategy: {opts.strategy}",
                code="UNSUPPORTED_STRATEGY",
                context={"strategy": opts.strategy},
            )
        try:
            ids = list(item_ids) if item_ids is not None else await self.items.all_ids()
            key = make_key("clusters", ids, opts)
            cached = self.cache.clustering.get(key)
            if cached is not None:
                self.performance.record("clusters", started, len(ids), cached.metadata.get("algorithm", ""), True)
                return cached.copy()

            result = await self.router.cluster(ids, opts)
            if opts.include_edges:
                result.edges = cluster_edges(result.clusters, await self.items.all_relationships())
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("clustering failed: %s", exc)
            raise ClusteringError(
                f"Failed to perform clustering: {exc}",
                context={"items": truncate(item_ids), "algorithm": opts.algorithm},
            ) from exc

        result.metrics = self.performance.record(
            "clusters", started, len(ids), result.metadata.get("algorithm", ""), cache_hit=False
        )
        self.cache.clustering.set(key, result.copy())
        self._last_clusters = [c.copy() for c in result.clusters]
        return result

    def clusters_sync(self, item_ids: list[str] | None = None, **overrides: Any) -> ClusteringResult:
        """Synchronous wrapper for :meth:`clusters`."""
        return asyncio.run(self.clusters(item_ids, **overrides))

    async def cluster_fast(self, level: int | None = None, max_clusters: int | None = None) -> ClusteringResult:
        """Hierarchical clustering over every item using index levels."""
        return await self.clusters(algorithm="hierarchical", level=level, max_clusters=max_clusters)

    async def cluster_large(
        self,
        sample_size: int = 1000,
        strategy: str = "diverse",
        max_clusters: int | None = None,
    ) -> ClusteringResult:
        """Sample-then-project clustering for very large stores."""
        return await self.clusters(
            algorithm="sample", sample_size=sample_size, strategy=strategy, max_clusters=max_clusters
        )

    async def cluster_by_domain(
        self,
        field: str,
        options: ClusteringOptions | None = None,
        *,
        preserve_domain_boundaries: bool = False,
        cross_domain_threshold: float = 0.8,
        **overrides: Any,
    ) -> ClusteringResult:
        started = time.perf_counter()
        opts = self._options(options, overrides)
        validate_algorithm(opts.algorithm)
        try:
            result = await self.domains.cluster_by_domain(
                field,
                opts,
                preserve_domain_boundaries=preserve_domain_boundaries,
                cross_domain_threshold=cross_domain_threshold,
            )
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("domain clustering failed: %s", exc)
            raise ClusteringError(
                f"Failed to cluster by domain: {exc}",
                context={"field": truncate(field), "algorithm": opts.algorithm},
            ) from exc
        self.performance.record("cluster_by_domain", started, result.metadata["total_items"], field)
        return result

    async def cluster_by_time(
        self,
        time_field: str,
        windows: list[TimeWindow],
        options: ClusteringOptions | None = None,
        *,
        overlap_strategy: str = "separate",
        **overrides: Any,
    ) -> ClusteringResult:
        started = time.perf_counter()
        opts = self._options(options, overrides)
        validate_algorithm(opts.algorithm)
        if overlap_strategy not in ("separate", "merge"):
            raise ClusteringError(
                f"Unsupported overlap strategy: {overlap_strategy}",
                code="INVALID_INPUT",
                context={"overlap_strategy": overlap_strategy},
            )
        try:
            result = await self.domains.cluster_by_time(
                time_field, windows, opts, overlap_strategy=overlap_strategy
            )
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("temporal clustering failed: %s", exc)
            raise ClusteringError(
                f"Failed to cluster by time: {exc}",
                context={"time_field": truncate(time_field), "windows": len(windows)},
            ) from exc
        self.performance.record("cluster_by_time", started, result.metadata["total_items"], "temporal")
        return result

    async def cluster_stream(
        self,
        options: ClusteringOptions | None = None,
        item_ids: list[str] | None = None,
        **overrides: Any,
    ) -> AsyncIterator[StreamingBatch]:
        """Yield clusters batch by batch; stop iterating to cancel."""
        opts = self._options(options, overrides)
        validate_algorithm(opts.algorithm)
        ids = list(item_ids) if item_ids is not None else await self.items.all_ids()
        batch_number = 0
        try:
            async for batch in self.incremental.cluster_stream(ids, opts):
                batch_number = batch.batch_number
                yield batch
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("streaming clustering failed at batch %d: %s", batch_number + 1, exc)
            raise ClusteringError(
                f"Failed in streaming clustering: {exc}",
                context={"batch_number": batch_number + 1, "algorithm": opts.algorithm},
            ) from exc

    async def update_clusters(
        self,
        new_ids: list[str],
        options: ClusteringOptions | None = None,
        existing: list[Cluster] | None = None,
        **overrides: Any,
    ) -> ClusteringResult:
        """Fold *new_ids* into *existing* clusters (default: the last clustering)."""
        started = time.perf_counter()
        opts = self._options(options, overrides)
        validate_algorithm(opts.algorithm)
        try:
            if existing is None:
                existing = self._last_clusters
            if existing is None:
                new = set(new_ids)
                current = [i for i in await self.items.all_ids() if i not in new]
                existing = (await self.clusters(current, opts)).clusters if current else []
            result = await self.incremental.update_clusters(new_ids, opts, existing)
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("incremental update failed: %s", exc)
            raise ClusteringError(
                f"Failed to update clusters: {exc}",
                context={"new_items": truncate(new_ids), "algorithm": opts.algorithm},
            ) from exc
        self._last_clusters = [c.copy() for c in result.clusters]
        self.performance.record("update_clusters", started, len(new_ids), "incremental")
        return result

    # ── neighbours / hierarchy / outliers ──

    async def neighbors(
        self,
        item_id: str,
        *,
        limit: int = 10,
        min_similarity: float = 0.1,
        sort_by: str = "similarity",
        include_metadata: bool = True,
    ) -> NeighborsResult:
        started = time.perf_counter()
        key = make_key("neighbors", item_id, limit, min_similarity, sort_by, include_metadata)
        cached = self.cache.neighbors.get(key)
        if cached is not None:
            self.performance.record("neighbors", started, cached.total_found, sort_by, cache_hit=True)
            return cached
        try:
            result = await self.analysis.neighbors(
                item_id,
                limit=limit,
                min_similarity=min_similarity,
                sort_by=sort_by,
                include_metadata=include_metadata,
            )
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("neighbors failed for %s: %s", truncate(item_id), exc)
            raise NeuralAnalyticsError(
                f"Failed to find neighbors: {exc}",
                code="NEIGHBORS_ERROR",
                context={"id": truncate(item_id), "limit": limit},
            ) from exc
        self.cache.neighbors.set(key, result)
        self.performance.record("neighbors", started, result.total_found, sort_by, cache_hit=False)
        return result

    async def hierarchy(self, item_id: str) -> SemanticHierarchy | None:
        started = time.perf_counter()
        key = make_key("hierarchy", item_id)
        if key in self.cache.hierarchy:
            self.performance.record("hierarchy", started, 1, cache_hit=True)
            return self.cache.hierarchy.get(key)
        try:
            result = await self.analysis.hierarchy(item_id)
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("hierarchy failed for %s: %s", truncate(item_id), exc)
            raise NeuralAnalyticsError(
                f"Failed to build hierarchy: {exc}",
                code="HIERARCHY_ERROR",
                context={"id": truncate(item_id)},
            ) from exc
        self.cache.hierarchy.set(key, result)
        self.performance.record("hierarchy", started, 1, cache_hit=False)
        return result

    async def outliers(
        self,
        method: str = "cluster-based",
        threshold: float = 0.3,
        max_items: int | None = None,
    ) -> list[Outlier]:
        started = time.perf_counter()
        try:
            found = await self.analysis.outliers(method=method, threshold=threshold, max_items=max_items)
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("outlier detection failed: %s", exc)
            raise NeuralAnalyticsError(
                f"Failed to detect outliers: {exc}",
                code="OUTLIERS_ERROR",
                context={"method": method, "threshold": threshold},
            ) from exc
        self.performance.record("outliers", started, len(found), method)
        return found

    # ── visualization ──

    async def visualize(self, **kwargs: Any) -> VisualizationResult:
        started = time.perf_counter()
        try:
            result = await self.visualization.visualize(**kwargs)
        except NeuralAnalyticsError:
            raise
        except Exception as exc:
            log.error("visualization failed: %s", exc)
            raise NeuralAnalyticsError(
                f"Failed to generate visualization: {exc}",
                code="VISUALIZATION_ERROR",
                context={k: truncate(v) for k, v in kwargs.items()},
            ) from exc
        self.performance.record("visualize", started, len(result.nodes), result.layout)
        return result

    # ── housekeeping ──

    def get_performance_metrics(self, operation: str | None = None) -> OperationStats | dict[str, OperationStats] | None:
        if operation is not None:
            return self.performance.get(operation)
        return self.performance.snapshot()

    def clear_caches(self) -> None:
        self.cache.clear()
        self._last_clusters = None

    def get_cache_stats(self) -> dict[str, CacheStats]:
        return self.cache.stats()
