"""Tests for pairwise similarity."""

import asyncio

import numpy as np
import pytest

from neuralytics.domain.models import Identifier, Raw, SimilarityResult, Text, VectorInput
from neuralytics.errors import SimilarityError
from neuralytics.services.similarity import SimilarityEngine, explain, score_vectors


class TestScoreVectors:
    def test_cosine_self_is_one(self):
        v = np.array([0.3, -1.2, 4.0])
        assert score_vectors(v, v) == 1.0

    def test_euclidean_and_manhattan(self):
        a, b = np.array([0.0, 0.0]), np.array([3.0, 4.0])
        assert score_vectors(a, b, "euclidean") == pytest.approx(1 / 6)
        assert score_vectors(a, b, "manhattan") == pytest.approx(1 / 8)

    def test_opposite_vectors_clamped(self):
        a, b = np.array([1.0, 0.0]), np.array([-1.0, 0.0])
        assert score_vectors(a, b) == 0.0
        assert score_vectors(a, b, normalized=False) == pytest.approx(-1.0)

    def test_dimension_mismatch(self):
        with pytest.raises(SimilarityError):
            score_vectors(np.ones(2), np.ones(3))

    def test_explanation_bands(self):
        assert explain(0.95) == "Very high similarity"
        assert explain(0.8) == "High similarity"
        assert explain(0.6) == "Moderate similarity"
        assert explain(0.4) == "Low similarity"
        assert explain(0.3) == "Very low similarity"


class TestSimilarityEngine:
    def test_vectors(self, items):
        engine = SimilarityEngine(items)
        assert asyncio.run(engine.similarity([1, 2, 3], [1, 2, 3])) == 1.0

    def test_identifiers(self, items):
        engine = SimilarityEngine(items)
        score = asyncio.run(engine.similarity(Identifier("a0"), Identifier("b0")))
        assert score == pytest.approx(0.0)

    def test_identifier_against_vector(self, items):
        engine = SimilarityEngine(items)
        score = asyncio.run(engine.similarity(Identifier("a0"), [2.0, 0.0, 0.0, 0.0]))
        assert score == pytest.approx(1.0)

    def test_unknown_identifier_scores_zero(self, items):
        engine = SimilarityEngine(items)
        assert asyncio.run(engine.similarity(Identifier("nope"), Identifier("a0"))) == 0.0

    def test_text_uses_embedding(self, items, mock_embedding):
        engine = SimilarityEngine(items, mock_embedding)
        assert asyncio.run(engine.similarity("graph databases", Text("graph databases"))) == pytest.approx(1.0)

    def test_text_without_embedding(self, items):
        engine = SimilarityEngine(items)
        with pytest.raises(SimilarityError) as exc:
            asyncio.run(engine.similarity("some words here", [1.0, 0.0]))
        assert exc.value.code == "NO_EMBEDDING"

    def test_raw_payloads(self, items, mock_embedding):
        engine = SimilarityEngine(items, mock_embedding)
        score = asyncio.run(engine.similarity(Raw({"vector": [1, 0]}), VectorInput((1.0, 0.0))))
        assert score == pytest.approx(1.0)
        with pytest.raises(SimilarityError) as exc:
            asyncio.run(engine.similarity(Raw(42), [1.0]))
        assert exc.value.code == "INVALID_INPUT"

    def test_detailed(self, items):
        engine = SimilarityEngine(items)
        result = asyncio.run(engine.similarity([1, 0], [1, 0], detailed=True))
        assert isinstance(result, SimilarityResult)
        assert result.score == 1.0
        assert result.confidence == 1.0
        assert result.explanation == "Very high similarity"
        assert result.metric == "cosine"

    def test_unsupported_metric(self, items):
        engine = SimilarityEngine(items)
        with pytest.raises(SimilarityError, match="Unsupported metric"):
            asyncio.run(engine.similarity([1], [1], metric="hamming"))
