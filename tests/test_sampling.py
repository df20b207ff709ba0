"""Tests for sample-then-project clustering."""

import asyncio

import pytest

from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.domain.models import ClusteringOptions
from neuralytics.errors import ClusteringError
from neuralytics.services.sampling import SamplingEngine


@pytest.fixture
def sampler(items):
    return SamplingEngine(items, HierarchicalClustering(items), chunk_size=3)


@pytest.fixture
def records(items):
    return asyncio.run(items.get_many(asyncio.run(items.all_ids())))


class TestSelect:
    def test_recent(self, sampler, records):
        picked = asyncio.run(sampler.select(records, 3, "recent"))
        assert [r.id for r in picked] == ["b5", "b4", "b3"]

    def test_important_prefers_connected_items(self, sampler, records):
        picked = asyncio.run(sampler.select(records, 1, "important"))
        assert picked[0].id == "a2"

    def test_random_is_seeded(self, sampler, records):
        first = asyncio.run(sampler.select(records, 5, "random", seed=3))
        second = asyncio.run(sampler.select(records, 5, "random", seed=3))
        assert [r.id for r in first] == [r.id for r in second]
        assert len({r.id for r in first}) == 5

    def test_diverse_spans_both_groups(self, sampler, records):
        picked = asyncio.run(sampler.select(records, 2, "diverse", seed=0))
        assert {r.id[0] for r in picked} == {"a", "b"}

    def test_small_input_returned_whole(self, sampler, records):
        assert len(asyncio.run(sampler.select(records, 50, "diverse"))) == 12

    def test_unknown_strategy(self, sampler, records):
        with pytest.raises(ClusteringError) as exc:
            asyncio.run(sampler.select(records, 2, "loudest"))
        assert exc.value.code == "UNSUPPORTED_STRATEGY"


class TestProjection:
    def test_rest_projected_onto_sample_clusters(self, sampler, items):
        ids = asyncio.run(items.all_ids())
        result = asyncio.run(
            sampler.cluster(ids, ClusteringOptions(sample_size=4, strategy="recent"))
        )
        assert result.metadata["sample_size"] == 4
        assert len(result.clusters) == 1
        cluster = result.clusters[0]
        assert cluster.id == "projected-hierarchical-0"
        assert sorted(cluster.members) == [f"b{i}" for i in range(6)]
        assert cluster.metadata["projected_members"] == 2
        assert result.metadata["projected_items"] == 2

    def test_projected_confidence_is_scaled(self, sampler, items):
        ids = asyncio.run(items.all_ids())
        opts = ClusteringOptions(sample_size=4, strategy="recent")
        sample_level = asyncio.run(
            HierarchicalClustering(items).cluster(
                ["b5", "b4", "b3", "b2"], opts.with_(max_clusters=1)
            )
        )
        result = asyncio.run(sampler.cluster(ids, opts))
        assert result.clusters[0].confidence == pytest.approx(sample_level.clusters[0].confidence * 0.9)

    def test_unknown_strategy_fails_before_lookup(self, failing_index):
        from neuralytics.services.items import ItemRepository

        bad = ItemRepository(failing_index)
        sampler = SamplingEngine(bad, HierarchicalClustering(bad))
        with pytest.raises(ClusteringError):
            asyncio.run(sampler.cluster(["a0"], ClusteringOptions(strategy="loudest")))
