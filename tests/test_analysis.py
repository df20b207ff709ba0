"""Tests for neighbours, hierarchy placement and outlier detection."""

import asyncio

import pytest

from neuralytics.errors import NeuralAnalyticsError
from neuralytics.services.analysis import AnalysisEngine


@pytest.fixture
def analysis(items):
    return AnalysisEngine(items, seed=0)


@pytest.fixture
def with_outlier(items, populated_index):
    populated_index.add("z0", [-5.0, -5.0, -5.0, -5.0], noun_type="noise")
    return AnalysisEngine(items, seed=0)


class TestNeighbors:
    def test_nearest_exclude_self(self, analysis):
        result = asyncio.run(analysis.neighbors("a0", limit=3))
        assert result.center == "a0"
        assert result.total_found == 3
        assert [n.id for n in result.neighbors] == ["a1", "a2", "a3"]
        assert result.average_similarity == pytest.approx(
            sum(n.similarity for n in result.neighbors) / 3
        )
        assert result.neighbors[0].metadata["team"] == "research"

    def test_min_similarity_cuts_other_group(self, analysis):
        result = asyncio.run(analysis.neighbors("a0", limit=20, min_similarity=0.5))
        assert {n.id for n in result.neighbors} == {"a1", "a2", "a3", "a4", "a5"}

    def test_sort_by_recency(self, analysis):
        result = asyncio.run(analysis.neighbors("a0", limit=3, sort_by="recency"))
        assert [n.id for n in result.neighbors] == ["a3", "a2", "a1"]

    def test_without_metadata(self, analysis):
        result = asyncio.run(analysis.neighbors("a0", limit=1, include_metadata=False))
        assert result.neighbors[0].metadata is None

    def test_missing_item(self, analysis):
        result = asyncio.run(analysis.neighbors("ghost"))
        assert result.neighbors == []
        assert result.average_similarity == 0.0

    def test_invalid_sort(self, analysis):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(analysis.neighbors("a0", sort_by="alphabetical"))
        assert exc.value.code == "INVALID_INPUT"


class TestHierarchy:
    def test_leaf_item(self, analysis):
        h = asyncio.run(analysis.hierarchy("a1"))
        assert h.level == 0
        assert h.parent.id == "a0"
        assert h.parent.level == 1
        assert h.grandparent is None
        assert h.root.id == "a0"
        assert {s.id for s in h.siblings} == {"a2", "a3", "a4", "a5"}
        assert h.children == []

    def test_representative(self, analysis):
        h = asyncio.run(analysis.hierarchy("a0"))
        assert h.level == 1
        assert h.parent is None
        assert h.root is None
        assert {c.id for c in h.children} == {"a1", "a2", "a3", "a4", "a5"}
        assert all(c.level == 0 for c in h.children)

    def test_missing_item(self, analysis):
        assert asyncio.run(analysis.hierarchy("ghost")) is None


class TestOutliers:
    def test_statistical_flags_far_point(self, with_outlier):
        found = asyncio.run(with_outlier.outliers(method="statistical", threshold=0.3))
        assert [o.id for o in found] == ["z0"]
        assert found[0].score >= 0.7
        assert found[0].method == "statistical"

    def test_isolation_ranks_far_point_first(self, with_outlier):
        found = asyncio.run(with_outlier.outliers(method="isolation", threshold=1.0))
        assert len(found) == 13
        assert found[0].id == "z0"
        assert all(0.0 <= o.score <= 1.0 for o in found)

    def test_cluster_based_scores_in_range(self, with_outlier):
        found = asyncio.run(with_outlier.outliers(method="cluster-based", threshold=1.0))
        assert len(found) == 13
        scores = [o.score for o in found]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)
        assert all(o.nearest_cluster.startswith("kmeans-") for o in found)

    def test_max_items(self, analysis):
        found = asyncio.run(analysis.outliers(method="statistical", threshold=1.0, max_items=4))
        assert len(found) == 4

    def test_unknown_method(self, analysis):
        with pytest.raises(NeuralAnalyticsError) as exc:
            asyncio.run(analysis.outliers(method="vibes"))
        assert exc.value.code == "UNSUPPORTED_METHOD"
