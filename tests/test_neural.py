"""Tests for the NeuralAnalytics facade: routing, caching, errors and lifecycle."""

import asyncio

import pytest

from neuralytics import (
    ClusteringError,
    Identifier,
    NeuralAnalytics,
    NeuralAnalyticsError,
    SimilarityError,
    Text,
)
from neuralytics.domain.models import SimilarityResult


class TestClusters:
    def test_auto_routes_to_graph(self, engine):
        result = asyncio.run(engine.clusters())
        assert result.metadata["selected_algorithm"] == "graph"
        assert result.metadata["characteristics"]["size"] == 12
        assert result.metrics.items_processed == 12
        assert len(result.clusters) >= 2
        for c in result.clusters:
            # no relationship crosses the two groups
            assert len({m[0] for m in c.members}) == 1

    def test_second_call_is_cached(self, engine):
        first = asyncio.run(engine.clusters(algorithm="kmeans"))
        first.clusters[0].members.append("tampered")
        second = asyncio.run(engine.clusters(algorithm="kmeans"))

        assert "tampered" not in second.clusters[0].members
        stats = engine.get_cache_stats()["clustering"]
        assert stats.hits == 1
        assert stats.misses == 1
        assert engine.get_performance_metrics("clusters").cache_hits == 1

    def test_different_options_miss_cache(self, engine):
        asyncio.run(engine.clusters(algorithm="kmeans"))
        asyncio.run(engine.clusters(algorithm="kmeans", max_clusters=3))
        assert engine.get_cache_stats()["clustering"].hits == 0

    def test_include_edges(self, engine):
        result = asyncio.run(engine.clusters(algorithm="kmeans", include_edges=True))
        assert len(result.edges) == 14
        assert {e.relationship_type for e in result.edges} == {"worksWith", "references"}
        for e in result.edges:
            assert e.is_inter_cluster == (e.source_cluster != e.target_cluster)

    def test_explicit_ids(self, engine):
        result = asyncio.run(engine.clusters(["a0", "a1", "a2"], algorithm="kmeans"))
        assert sorted(m for c in result.clusters for m in c.members) == ["a0", "a1", "a2"]

    def test_unsupported_algorithm_fails_fast(self, failing_engine):
        with pytest.raises(ClusteringError) as exc:
            asyncio.run(failing_engine.clusters(algorithm="spectral"))
        assert exc.value.code == "UNSUPPORTED_ALGORITHM"
        assert exc.value.context["algorithm"] == "spectral"

    def test_unsupported_strategy_fails_fast(self, failing_engine):
        with pytest.raises(ClusteringError) as exc:
            asyncio.run(failing_engine.clusters(algorithm="sample", strategy="loudest"))
        assert exc.value.code == "UNSUPPORTED_STRATEGY"

    def test_collaborator_failure_is_wrapped(self, failing_engine):
        with pytest.raises(ClusteringError) as exc:
            asyncio.run(failing_engine.clusters(algorithm="kmeans"))
        assert exc.value.code == "CLUSTERING_ERROR"
        assert "Failed to perform clustering" in str(exc.value)
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.context["algorithm"] == "kmeans"

    def test_unknown_default_algorithm(self, populated_index):
        with pytest.raises(ClusteringError):
            NeuralAnalytics(populated_index, default_algorithm="spectral")

    def test_clusters_sync(self, engine):
        result = engine.clusters_sync(algorithm="kmeans")
        assert result.metadata["selected_algorithm"] == "kmeans"


class TestShortcuts:
    def test_cluster_fast(self, engine):
        result = asyncio.run(engine.cluster_fast(level=1, max_clusters=2))
        assert result.metadata["selected_algorithm"] == "hierarchical"
        assert len(result.clusters) == 2

    def test_cluster_large(self, engine):
        result = asyncio.run(engine.cluster_large(sample_size=4, strategy="recent"))
        assert result.metadata["selected_algorithm"] == "sample"
        assert result.metadata["sample_size"] == 4
        assert all(c.id.startswith("projected-") for c in result.clusters)


class TestUpdateClusters:
    def test_uses_last_clustering(self, engine, populated_index):
        asyncio.run(engine.clusters(algorithm="kmeans"))
        populated_index.add("a6", [1.0, 0.3, 0.0, 0.0], noun_type="person")
        result = asyncio.run(engine.update_clusters(["a6"], algorithm="kmeans"))
        assert result.metadata["assigned"] == 1
        assert any("a6" in c.members for c in result.clusters)
        assert any("a6" in c.members for c in engine._last_clusters)

    def test_clusters_existing_items_first(self, engine, populated_index):
        populated_index.add("a6", [1.0, 0.3, 0.0, 0.0], noun_type="person")
        result = asyncio.run(engine.update_clusters(["a6"], algorithm="kmeans"))
        assert result.metadata["assigned"] == 1
        clustered = [m for c in result.clusters for m in c.members]
        assert sorted(clustered) == sorted(
            [f"a{i}" for i in range(7)] + [f"b{i}" for i in range(6)]
        )


class TestSimilar:
    def test_identifiers(self, engine):
        assert engine.similar_sync(Identifier("a0"), Identifier("a0")) == pytest.approx(1.0)
        assert engine.similar_sync(Identifier("a0"), Identifier("b0")) == pytest.approx(0.0)

    def test_detailed(self, engine):
        result = engine.similar_sync(Identifier("a0"), Identifier("a1"), detailed=True)
        assert isinstance(result, SimilarityResult)
        assert result.explanation == "Very high similarity"
        assert result.metric == "cosine"

    def test_text_uses_embedding(self, engine):
        assert engine.similar_sync(Text("graph"), Text("graph")) == pytest.approx(1.0)

    def test_cached(self, engine):
        engine.similar_sync(Identifier("a0"), Identifier("a1"))
        engine.similar_sync(Identifier("a0"), Identifier("a1"))
        assert engine.get_cache_stats()["similarity"].hits == 1
        assert engine.get_performance_metrics("similar").calls == 2

    def test_cache_keeps_input_kinds_apart(self, engine):
        engine.similar_sync(Identifier("a0"), Identifier("a1"))
        by_text = engine.similar_sync(Text("a0"), Text("a1"))
        expected = asyncio.run(engine.similarity_engine.similarity(Text("a0"), Text("a1")))
        assert by_text == pytest.approx(expected)
        assert engine.get_cache_stats()["similarity"].hits == 0

    def test_unknown_metric(self, engine):
        with pytest.raises(SimilarityError):
            engine.similar_sync(Identifier("a0"), Identifier("a1"), metric="hamming")

    def test_text_without_embedding(self, populated_index):
        eng = NeuralAnalytics(populated_index, cleanup_interval=3600.0)
        try:
            with pytest.raises(SimilarityError) as exc:
                eng.similar_sync(Text("one"), Text("two"))
            assert exc.value.code == "NO_EMBEDDING"
        finally:
            eng.shutdown()


class TestNeighborsAndHierarchy:
    def test_neighbors_cached(self, engine):
        first = asyncio.run(engine.neighbors("a0", limit=3))
        second = asyncio.run(engine.neighbors("a0", limit=3))
        assert second is first
        assert engine.get_cache_stats()["neighbors"].hits == 1

    def test_neighbors_failure(self, failing_engine):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(failing_engine.neighbors("a0"))
        assert exc.value.code == "NEIGHBORS_ERROR"
        assert exc.value.context["id"] == "a0"

    def test_missing_hierarchy_is_cached(self, engine):
        assert asyncio.run(engine.hierarchy("ghost")) is None
        assert asyncio.run(engine.hierarchy("ghost")) is None
        stats = engine.get_performance_metrics("hierarchy")
        assert stats.calls == 2
        assert stats.cache_hits == 1

    def test_hierarchy_failure(self, failing_engine):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(failing_engine.hierarchy("a1"))
        assert exc.value.code == "HIERARCHY_ERROR"

    def test_outliers_failure(self, failing_engine):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(failing_engine.outliers(method="statistical"))
        assert exc.value.code == "OUTLIERS_ERROR"


class TestVisualize:
    def test_visualize(self, engine):
        result = asyncio.run(engine.visualize(max_nodes=50))
        assert len(result.nodes) == 12
        assert engine.get_performance_metrics("visualize").items == 12

    def test_invalid_input_passes_through(self, engine):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(engine.visualize(dimensions=5))
        assert exc.value.code == "INVALID_INPUT"

    def test_failure_is_wrapped(self, failing_engine):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(failing_engine.visualize())
        assert exc.value.code == "VISUALIZATION_ERROR"


class TestHousekeeping:
    def test_clear_caches(self, engine):
        asyncio.run(engine.clusters(algorithm="kmeans"))
        asyncio.run(engine.neighbors("a0"))
        engine.clear_caches()
        assert all(s.size == 0 for s in engine.get_cache_stats().values())
        assert engine._last_clusters is None

    def test_performance_snapshot(self, engine):
        asyncio.run(engine.neighbors("a0"))
        snapshot = engine.get_performance_metrics()
        assert set(snapshot) == {"neighbors"}
        assert snapshot["neighbors"].cache_misses == 1
        assert engine.get_performance_metrics("unknown") is None

    def test_async_context_manager(self, populated_index):
        async def run():
            async with NeuralAnalytics(populated_index, cleanup_interval=3600.0) as eng:
                assert eng.cache.running
                await eng.neighbors("a0")
            return eng

        eng = asyncio.run(run())
        assert not eng.cache.running
