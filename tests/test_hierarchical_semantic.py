"""Tests for level-seeded hierarchical clustering and type-first semantic clustering."""

import asyncio

import numpy as np
import pytest

from neuralytics.adapters.clustering.hierarchical import (
    HierarchicalClustering,
    default_max_clusters,
    level_for,
    neighbour_limit,
)
from neuralytics.adapters.clustering.semantic import SemanticClustering, merge_linked
from neuralytics.domain.models import Cluster, ClusteringOptions
from neuralytics.ports.vector_index import ItemRecord


class TestHierarchicalHelpers:
    def test_level_for(self):
        assert [level_for(n) for n in (10, 500, 5000, 50000)] == [0, 1, 2, 3]

    def test_limits(self):
        assert default_max_clusters(10) == 1
        assert default_max_clusters(10_000) == 50
        assert neighbour_limit(12) == 10
        assert neighbour_limit(300) == 30
        assert neighbour_limit(10_000) == 50


class TestHierarchicalClustering:
    def test_representatives_seed_groups(self, items):
        ids = asyncio.run(items.all_ids())
        result = asyncio.run(
            HierarchicalClustering(items).cluster(ids, ClusteringOptions(level=1, max_clusters=2))
        )
        assert [c.id for c in result.clusters] == ["hierarchical-0", "hierarchical-1"]
        assert sorted(result.clusters[0].members) == [f"a{i}" for i in range(6)]
        assert sorted(result.clusters[1].members) == [f"b{i}" for i in range(6)]
        assert result.clusters[0].metadata["representative"] == "a0"
        assert result.clusters[0].label == "person group (6)"
        assert result.metadata["representatives"] == 2
        assert result.metadata["unclaimed_assigned"] == 0
        assert all(c.confidence > 0.9 for c in result.clusters)

    def test_leftovers_join_nearest_centroid(self, items):
        ids = asyncio.run(items.all_ids())
        opts = ClusteringOptions(level=1, max_clusters=2, similarity_floor=0.9999)
        result = asyncio.run(HierarchicalClustering(items).cluster(ids, opts))
        assert result.metadata["unclaimed_assigned"] > 0
        assert sorted(result.clusters[0].members) == [f"a{i}" for i in range(6)]

    def test_empty(self, items):
        result = asyncio.run(HierarchicalClustering(items).cluster([], ClusteringOptions()))
        assert result.clusters == []


class TestSemanticClustering:
    def test_one_cluster_per_type(self, items):
        semantic = SemanticClustering(items, HierarchicalClustering(items))
        ids = asyncio.run(items.all_ids())
        result = asyncio.run(semantic.cluster(ids, ClusteringOptions()))
        by_id = {c.id: c for c in result.clusters}
        assert set(by_id) == {"semantic-person-0", "semantic-document-0"}
        assert sorted(by_id["semantic-person-0"].members) == [f"a{i}" for i in range(6)]
        assert by_id["semantic-document-0"].metadata["semantic_type"] == "document"
        assert result.metadata["types"] == 2
        assert result.metadata["merges"] == 0

    def test_small_groups(self, items):
        semantic = SemanticClustering(items, HierarchicalClustering(items))
        result = asyncio.run(semantic.cluster(["a0", "a1", "b0"], ClusteringOptions()))
        by_id = {c.id: c for c in result.clusters}
        assert by_id["semantic-person-0"].confidence == 1.0
        assert by_id["semantic-document-0"].confidence == 0.9

    def test_strong_cross_type_link_merges(self, items, relationship_store):
        relationship_store.connect("a0", "b0", "authored", confidence=0.95)
        semantic = SemanticClustering(items, HierarchicalClustering(items))
        ids = asyncio.run(items.all_ids())
        result = asyncio.run(semantic.cluster(ids, ClusteringOptions()))
        assert len(result.clusters) == 1
        merged = result.clusters[0]
        assert merged.metadata["semantic_types"] == ["document", "person"]
        assert len(merged.members) == 12
        assert result.metadata["merges"] == 1


class TestMergeLinked:
    def records(self):
        return {
            k: ItemRecord(id=k, vector=np.array(v))
            for k, v in {"x": [1.0, 0.0], "y": [0.0, 1.0], "z": [1.0, 1.0]}.items()
        }

    def test_merge(self):
        clusters = [
            Cluster(id="c0", centroid=[1.0, 0.0], members=["x"], confidence=1.0, label="person group (1)"),
            Cluster(id="c1", centroid=[0.0, 1.0], members=["y"], confidence=0.5),
            Cluster(id="c2", centroid=[1.0, 1.0], members=["z"], confidence=0.9),
        ]
        out, merges = merge_linked(clusters, {("x", "y"): 0.9, ("y", "z"): 0.6}, self.records())
        assert merges == 1
        assert [c.id for c in out] == ["c0", "c2"]
        assert out[0].members == ["x", "y"]
        assert out[0].centroid == pytest.approx([0.5, 0.5])
        assert out[0].confidence == pytest.approx(0.75)
        assert out[0].label == "merged person group (1)"
        assert out[0].metadata["merged_from"] == ["c0", "c1"]

    def test_weak_links_ignored(self):
        clusters = [Cluster(id="c0", centroid=[], members=["x"]), Cluster(id="c1", centroid=[], members=["y"])]
        out, merges = merge_linked(clusters, {("x", "y"): 0.8}, self.records())
        assert merges == 0
        assert out is clusters
