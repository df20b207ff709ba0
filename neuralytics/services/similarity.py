"""Pairwise similarity over ids, vectors, text and raw payloads."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from neuralytics.domain.models import (
    Identifier,
    Raw,
    SimilarityInput,
    SimilarityResult,
    Text,
    VectorInput,
    classify_input,
)
from neuralytics.errors import SimilarityError, truncate
from neuralytics.ports.embedding import EmbeddingPort
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository

log = logging.getLogger(__name__)


def explain(score: float) -> str:
    if score > 0.9:
        return "Very high similarity"
    if score > 0.7:
        return "High similarity"
    if score > 0.5:
        return "Moderate similarity"
    if score > 0.3:
        return "Low similarity"
    return "Very low similarity"


def score_vectors(a: np.ndarray, b: np.ndarray, metric: str = "cosine", normalized: bool = True) -> float:
    """Convert a distance under *metric* into a similarity score."""
    if a.shape != b.shape:
        raise SimilarityError(
            f"Vector dimensions differ: {a.shape[0]} vs {b.shape[0]}",
            context={"metric": metric},
        )
    if metric == "cosine":
        score = 1.0 - dk.cosine_distance(a, b)
    elif metric in ("euclidean", "manhattan"):
        score = 1.0 / (1.0 + dk.distance(a, b, metric))
    else:
        raise SimilarityError(f"Unsupported metric: {metric}", context={"metric": metric})
    return dk.clamp(score) if normalized else score


class SimilarityEngine:
    """Resolve tagged inputs to vectors, then score them."""

    def __init__(
        self,
        items: ItemRepository,
        embedding: EmbeddingPort | None = None,
        default_metric: str = "cosine",
    ) -> None:
        self._items = items
        self._embedding = embedding
        self._default_metric = default_metric

    async def resolve(self, value: SimilarityInput) -> np.ndarray | None:
        """Turn one tagged input into a vector; ``None`` for an unknown id."""
        if isinstance(value, VectorInput):
            return np.asarray(value.values, dtype=np.float64)
        if isinstance(value, Identifier):
            record = await self._items.get(value.value)
            return None if record is None else np.asarray(record.vector, dtype=np.float64)
        if isinstance(value, Text):
            return await self._embed(value.value)
        if isinstance(value, Raw):
            payload = value.value
            if isinstance(payload, dict) and "vector" in payload:
                return np.asarray(payload["vector"], dtype=np.float64)
            if isinstance(payload, dict) and "text" in payload:
                return await self._embed(str(payload["text"]))
        raise SimilarityError(
            f"Cannot convert input to vector: {type(getattr(value, 'value', value)).__name__}",
            code="INVALID_INPUT",
            context={"input": truncate(value)},
        )

    async def _embed(self, text: str) -> np.ndarray:
        if self._embedding is None:
            raise SimilarityError(
                "Text similarity requires an embedding adapter",
                code="NO_EMBEDDING",
                context={"input": truncate(text)},
            )
        return np.asarray(await self._embedding.embed_text(text), dtype=np.float64)

    async def similarity(
        self,
        a: Any,
        b: Any,
        *,
        metric: str | None = None,
        normalized: bool = True,
        detailed: bool = False,
    ) -> float | SimilarityResult:
        metric = metric or self._default_metric
        if metric not in dk.METRICS:
            raise SimilarityError(f"Unsupported metric: {metric}", context={"metric": metric})

        left, right = classify_input(a), classify_input(b)
        va = await self.resolve(left)
        vb = await self.resolve(right)

        if va is None or vb is None:
            log.debug("similarity: unresolved id (%s, %s) scores 0", truncate(a), truncate(b))
            score = 0.0
        else:
            score = score_vectors(va, vb, metric, normalized)

        if not detailed:
            return score
        return SimilarityResult(
            score=score,
            confidence=dk.clamp(score + 0.1),
            explanation=explain(score),
            metric=metric,
        )
