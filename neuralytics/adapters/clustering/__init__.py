"""Clustering algorithm adapters."""

from neuralytics.adapters.clustering.dbscan import DBSCANClustering, dbscan
from neuralytics.adapters.clustering.hierarchical import HierarchicalClustering
from neuralytics.adapters.clustering.kmeans import KMeansClustering, kmeans
from neuralytics.adapters.clustering.louvain import GraphCommunityClustering, local_moving
from neuralytics.adapters.clustering.semantic import SemanticClustering

__all__ = [
    "DBSCANClustering",
    "dbscan",
    "HierarchicalClustering",
    "KMeansClustering",
    "kmeans",
    "GraphCommunityClustering",
    "local_moving",
    "SemanticClustering",
]
