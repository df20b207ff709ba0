"""Distance and centroid helpers shared by every algorithm."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

Vectorish = Sequence[float] | np.ndarray

METRICS = ("cosine", "euclidean", "manhattan")


def as_array(v: Vectorish) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(-1)


def cosine_similarity(a: Vectorish, b: Vectorish) -> float:
    """Cosine similarity; 0.0 when either vector has zero norm."""
    a, b = as_array(a), as_array(b)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    na2, nb2 = float(np.dot(a, a)), float(np.dot(b, b))
    if na2 == 0 or nb2 == 0:
        return 0.0
    # sqrt(x * x) == x exactly, so a vector against itself scores exactly 1.0
    return max(-1.0, min(1.0, float(np.dot(a, b)) / np.sqrt(na2 * nb2)))


def cosine_distance(a: Vectorish, b: Vectorish) -> float:
    return 1.0 - cosine_similarity(a, b)


def euclidean_distance(a: Vectorish, b: Vectorish) -> float:
    return float(np.linalg.norm(as_array(a) - as_array(b)))


def manhattan_distance(a: Vectorish, b: Vectorish) -> float:
    return float(np.abs(as_array(a) - as_array(b)).sum())


def distance(a: Vectorish, b: Vectorish, metric: str = "cosine") -> float:
    if metric == "cosine":
        return cosine_distance(a, b)
    if metric == "euclidean":
        return euclidean_distance(a, b)
    if metric == "manhattan":
        return manhattan_distance(a, b)
    raise ValueError(f"Unknown distance metric: {metric}")


def centroid(vectors: Iterable[Vectorish]) -> list[float]:
    """Component-wise mean; empty input gives an empty centroid."""
    rows = [as_array(v) for v in vectors]
    if not rows:
        return []
    return np.mean(np.stack(rows), axis=0).tolist()


def normalize_rows(mat: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(mat, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return mat / norms


def squared_distances(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """(n, k) matrix of squared Euclidean distances."""
    pn = np.einsum("ij,ij->i", points, points)[:, None]
    cn = np.einsum("ij,ij->i", centers, centers)[None, :]
    return np.maximum(pn - 2.0 * points @ centers.T + cn, 0.0)


def coherence(vectors: Sequence[Vectorish], center: Vectorish | None = None) -> float:
    """``max(0, 1 - mean distance to centroid / sqrt(dim))``."""
    if not vectors:
        return 0.0
    mat = np.stack([as_array(v) for v in vectors])
    c = as_array(center) if center is not None and len(center) else mat.mean(axis=0)
    dim = mat.shape[1]
    if dim == 0:
        return 0.0
    mean_dist = float(np.linalg.norm(mat - c, axis=1).mean())
    return max(0.0, 1.0 - mean_dist / np.sqrt(dim))


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return float(min(hi, max(lo, value)))
