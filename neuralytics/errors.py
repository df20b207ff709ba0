"""Error types raised by the analytics layer.

Every error carries a machine-readable ``code`` and a ``context`` payload
echoing (truncated) inputs and options so failures can be diagnosed from
logs alone.
"""

from __future__ import annotations

from typing import Any

CONTEXT_TRUNCATE = 50


def truncate(value: Any, limit: int = CONTEXT_TRUNCATE) -> str:
    """Render *value* as a string of at most *limit* characters."""
    text = value if isinstance(value, str) else repr(value)
    return text[:limit]


class NeuralAnalyticsError(Exception):
    """Base exception for all analytics failures."""

    def __init__(
        self,
        message: str,
        code: str = "NEURAL_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ClusteringError(NeuralAnalyticsError):
    """A clustering operation failed or was given an unsupported algorithm."""

    def __init__(
        self,
        message: str,
        code: str = "CLUSTERING_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, context)


class SimilarityError(NeuralAnalyticsError):
    """Similarity inputs could not be resolved or compared."""

    def __init__(
        self,
        message: str,
        code: str = "SIMILARITY_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, context)
