"""Tests for multi-algorithm consensus fusion."""

import asyncio

import pytest

from neuralytics.domain.models import Cluster, ClusteringOptions, ClusteringResult
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services.fusion import FusionEngine, fuse_consensus


def c(cid, members, confidence=0.6):
    return Cluster(id=cid, centroid=[], members=list(members), confidence=confidence)


# (A, B) co-occur under 1 algorithm, (C, D) under 2, (E, F) under 3.
RESULTS = {
    "hierarchical": [c("h0", "AB"), c("h1", "CD"), c("h2", "EF")],
    "graph": [c("g0", "A"), c("g1", "B"), c("g2", "CD", 0.9), c("g3", "EF")],
    "semantic": [c("s0", "A"), c("s1", "B"), c("s2", "C"), c("s3", "D"), c("s4", "EF")],
}


class FixedClustering(ClusteringPort):
    def __init__(self, name, clusters):
        self.name = name
        self._clusters = clusters

    async def cluster(self, item_ids, options):
        return ClusteringResult(clusters=[x.copy() for x in self._clusters])


class TestFuseConsensus:
    def test_two_of_three_rule(self):
        groups = fuse_consensus(list("ABCDEF"), RESULTS)
        assert [g.members for g in groups] == [["C", "D"], ["E", "F"]]

    def test_confidence_is_mean_of_contributions(self):
        groups = fuse_consensus(list("ABCDEF"), RESULTS)
        cd = groups[0]
        # C: h1 0.6, g2 0.9, s2 0.6 ; D: h1 0.6, g2 0.9, s3 0.6
        assert cd.confidence == pytest.approx((0.6 + 0.9 + 0.6) * 2 / 6)
        assert cd.agreement == {"hierarchical": 2, "graph": 2, "semantic": 2}

    def test_min_size_one_keeps_singletons(self):
        groups = fuse_consensus(list("AB"), RESULTS, min_size=1)
        assert [g.members for g in groups] == [["A"], ["B"]]

    def test_items_without_assignments_are_skipped(self):
        assert fuse_consensus(["Z"], RESULTS) == []


class TestFusionEngine:
    def test_engine_builds_fusion_clusters(self, items):
        algorithms = {
            "hierarchical": FixedClustering("hierarchical", [c("h0", ["a0", "a1"]), c("h1", ["b0", "b1"])]),
            "graph": FixedClustering("graph", [c("g0", ["a0", "a1"]), c("g1", ["b0"]), c("g2", ["b1"])]),
            "semantic": FixedClustering("semantic", [c("s0", ["a0", "a1", "b0", "b1"])]),
        }
        engine = FusionEngine(items, algorithms)
        result = asyncio.run(engine.cluster(["a0", "a1", "b0", "b1"], ClusteringOptions()))

        assert result.metadata["algorithm"] == "multimodal"
        assert [cl.id for cl in result.clusters] == ["fusion-0", "fusion-1"]
        assert result.clusters[0].members == ["a0", "a1"]
        assert result.clusters[1].members == ["b0", "b1"]
        assert result.clusters[0].centroid == pytest.approx([1.0, 0.025, 0.0, 0.0])
        assert result.metadata["source_clusters"] == {"hierarchical": 2, "graph": 3, "semantic": 1}
