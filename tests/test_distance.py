"""Tests for distance, centroid and coherence helpers."""

import numpy as np
import pytest

from neuralytics.services import distance as dk


class TestDistances:
    def test_cosine_self_similarity(self):
        assert dk.cosine_similarity([3.0, 4.0], [3.0, 4.0]) == pytest.approx(1.0)

    def test_cosine_zero_vector(self):
        """A zero-norm vector has no direction; similarity is 0."""
        assert dk.cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_cosine_shape_mismatch(self):
        assert dk.cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_euclidean_and_manhattan(self):
        assert dk.euclidean_distance([0, 0], [3, 4]) == pytest.approx(5.0)
        assert dk.manhattan_distance([0, 0], [3, 4]) == pytest.approx(7.0)

    def test_distance_dispatch(self):
        assert dk.distance([1, 0], [0, 1], "cosine") == pytest.approx(1.0)
        assert dk.distance([0, 0], [3, 4], "euclidean") == pytest.approx(5.0)

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown distance metric"):
            dk.distance([1], [1], "chebyshev")


class TestCentroid:
    def test_centroid_of_line(self):
        assert dk.centroid([[0, 0], [2, 0], [4, 0]]) == [2.0, 0.0]

    def test_centroid_empty(self):
        assert dk.centroid([]) == []

    def test_centroid_accepts_generator(self):
        assert dk.centroid(np.array(v) for v in ([1, 1], [3, 3])) == [2.0, 2.0]


class TestMatrixHelpers:
    def test_squared_distances_match_brute_force(self):
        rng = np.random.default_rng(0)
        pts = rng.normal(size=(7, 3))
        ctr = rng.normal(size=(2, 3))
        expected = ((pts[:, None, :] - ctr[None, :, :]) ** 2).sum(axis=2)
        np.testing.assert_allclose(dk.squared_distances(pts, ctr), expected, atol=1e-9)

    def test_normalize_rows_leaves_zero_rows(self):
        out = dk.normalize_rows(np.array([[3.0, 4.0], [0.0, 0.0]]))
        np.testing.assert_allclose(out, [[0.6, 0.8], [0.0, 0.0]])

    def test_coherence_identical_points(self):
        assert dk.coherence([[1, 2], [1, 2], [1, 2]]) == pytest.approx(1.0)

    def test_coherence_is_floored_at_zero(self):
        assert dk.coherence([[0.0], [100.0]]) == 0.0

    def test_clamp(self):
        assert dk.clamp(1.5) == 1.0
        assert dk.clamp(-0.2) == 0.0
        assert dk.clamp(5, 0.3, 0.9) == 0.9
