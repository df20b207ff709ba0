"""Abstract collaborator contracts."""

from neuralytics.ports.clustering import ClusteringPort
from neuralytics.ports.embedding import EmbeddingPort
from neuralytics.ports.llm import LLMPort
from neuralytics.ports.relationship_store import (
    Relationship,
    RelationshipPage,
    RelationshipStorePort,
)
from neuralytics.ports.vector_index import IdPage, ItemRecord, SearchHit, VectorIndexPort

__all__ = [
    "ClusteringPort",
    "EmbeddingPort",
    "LLMPort",
    "Relationship",
    "RelationshipPage",
    "RelationshipStorePort",
    "IdPage",
    "ItemRecord",
    "SearchHit",
    "VectorIndexPort",
]
