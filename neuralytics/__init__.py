"""neuralytics: clustering, similarity and graph analytics over a vector index."""

from neuralytics.domain.models import (
    Cluster,
    ClusteringOptions,
    ClusteringResult,
    Identifier,
    Raw,
    Text,
    TimeWindow,
    VectorInput,
)
from neuralytics.errors import ClusteringError, NeuralAnalyticsError, SimilarityError
from neuralytics.services.neural import NeuralAnalytics

__all__ = [
    "Cluster",
    "ClusteringOptions",
    "ClusteringResult",
    "Identifier",
    "Raw",
    "Text",
    "TimeWindow",
    "VectorInput",
    "ClusteringError",
    "NeuralAnalyticsError",
    "SimilarityError",
    "NeuralAnalytics",
]
