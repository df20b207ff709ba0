"""Pick a clustering algorithm from data characteristics, then run it."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict

from neuralytics.domain.models import ClusteringOptions, ClusteringResult, DataCharacteristics
from neuralytics.errors import ClusteringError
from neuralytics.ports.clustering import ClusteringPort
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)

ALGORITHMS = (
    "auto",
    "hierarchical",
    "kmeans",
    "dbscan",
    "semantic",
    "graph",
    "multimodal",
    "sample",
)


def validate_algorithm(name: str) -> None:
    """Fail fast on names the router cannot dispatch."""
    if name not in ALGORITHMS:
        raise ClusteringError(
            f"Unsupported algorithm: {name}",
            code="UNSUPPORTED_ALGORITHM",
            context={"algorithm": name, "supported": list(ALGORITHMS)},
        )


class AlgorithmRouter:
    """Dispatches ``auto`` to the algorithm the data shape calls for."""

    def __init__(
        self,
        items: ItemRepository,
        algorithms: dict[str, ClusteringPort],
        *,
        density_threshold: float = 0.05,
        type_threshold: int = 3,
        large_dataset: int = 10_000,
        medium_dataset: int = 1_000,
        analysis_sample: int = 100,
        density_sample: int = 50,
    ) -> None:
        self._items = items
        self._algorithms = algorithms
        self.density_threshold = density_threshold
        self.type_threshold = type_threshold
        self.large_dataset = large_dataset
        self.medium_dataset = medium_dataset
        self.analysis_sample = analysis_sample
        self.density_sample = density_sample

    async def analyze(self, item_ids: list[str]) -> DataCharacteristics:
        size = len(item_ids)
        sample = await self._items.get_many(item_ids[: min(self.analysis_sample, size)])
        dimensionality = len(sample[0].vector) if sample else 0

        density_ids = item_ids[: min(self.density_sample, size)]
        rels = await self._items.relationships_for_many(density_ids)
        connections = sum(len(v) for v in rels.values())
        s = len(density_ids)
        density = connections / (s * s) if s else 0.0

        types = Counter(r.noun_type for r in sample)
        return DataCharacteristics(
            size=size,
            dimensionality=dimensionality,
            graph_density=density,
            type_distribution=dict(types),
        )

    def select(self, chars: DataCharacteristics) -> str:
        dense = chars.graph_density > self.density_threshold
        varied = chars.distinct_types > self.type_threshold
        if dense and varied:
            return "multimodal"
        if dense:
            return "graph"
        if varied:
            return "semantic"
        if chars.size > self.large_dataset:
            return "sample"
        if chars.size > self.medium_dataset:
            return "hierarchical"
        return "kmeans"

    async def route(self, item_ids: list[str], options: ClusteringOptions) -> tuple[str, DataCharacteristics | None]:
        validate_algorithm(options.algorithm)
        if options.algorithm != "auto":
            return options.algorithm, None
        chars = await self.analyze(item_ids)
        chosen = self.select(chars)
        log.info(
            "router: n=%d density=%.4f types=%d -> %s",
            chars.size, chars.graph_density, chars.distinct_types, chosen,
        )
        return chosen, chars

    async def cluster(self, item_ids: list[str], options: ClusteringOptions) -> ClusteringResult:
        name, chars = await self.route(item_ids, options)
        result = await self._algorithms[name].cluster(item_ids, options)
        result.metadata["selected_algorithm"] = name
        if chars is not None:
            result.metadata["characteristics"] = asdict(chars)
        return result
