"""Configuration loading and adapter factory.

Reads a YAML config file, overlays environment variables and instantiates
the correct adapter for each port, then wires them into NeuralAnalytics.

Env vars take precedence over YAML values.
Env var naming: NEURALYTICS__{section}__{key} (double underscore separator)
e.g., NEURALYTICS__CACHE__MAX_SIZE overrides cache.max_size
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Walk up from this file (neuralytics/config.py) to the project root and load .env
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from neuralytics.ports.embedding import EmbeddingPort
from neuralytics.ports.llm import LLMPort
from neuralytics.ports.relationship_store import RelationshipStorePort
from neuralytics.ports.vector_index import VectorIndexPort
from neuralytics.services.neural import NeuralAnalytics

log = logging.getLogger(__name__)

ENV_PREFIX = "NEURALYTICS__"


@dataclass
class NeuralConfig:
    similarity_metric: str = "cosine"
    streaming_batch_size: int = 100
    seed: int = 42


@dataclass
class ClusteringConfig:
    default_algorithm: str = "auto"


@dataclass
class RouterConfig:
    density_threshold: float = 0.05
    type_threshold: int = 3
    large_dataset: int = 10_000
    medium_dataset: int = 1_000
    analysis_sample: int = 100
    density_sample: int = 50


@dataclass
class SamplingConfig:
    chunk_size: int = 512


@dataclass
class CacheConfig:
    max_size: int = 1000
    cleanup_interval: float = 300.0


@dataclass
class EmbeddingConfig:
    adapter: str = "none"
    model: str = "nomic-embed-text-v1.5"
    dimension: int = 768
    base_url: str = "http://localhost:11434"
    device: str = "cpu"


@dataclass
class LLMConfig:
    adapter: str = "none"
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.0


@dataclass
class IndexConfig:
    vector_index: str = "numpy"
    relationship_store: str = "in_memory"
    M: int = 16
    max_levels: int = 4


@dataclass
class Settings:
    neural: NeuralConfig = field(default_factory=NeuralConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    index: IndexConfig = field(default_factory=IndexConfig)


def load_settings(config_path: str | None = "config.yaml") -> Settings:
    """Load settings from YAML file with env var overlay.

    A missing file is not an error: defaults plus environment apply.
    """
    settings = Settings()
    if config_path is not None:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file) as f:
                yaml_config = yaml.safe_load(f) or {}
            _apply_yaml(settings, yaml_config)
    _apply_env_vars(settings)
    return settings


def _apply_yaml(settings: Settings, yaml_config: dict[str, Any]) -> None:
    """Apply YAML config values to settings; unknown sections/keys are ignored."""
    for section in fields(settings):
        values = yaml_config.get(section.name)
        if not isinstance(values, dict):
            continue
        section_obj = getattr(settings, section.name)
        for key, value in values.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)


def _apply_env_vars(settings: Settings) -> None:
    """Apply environment variable overrides. Format: NEURALYTICS__SECTION__KEY."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX):].split("__")
        if len(parts) != 2:
            continue
        section, field_name = parts[0].lower(), parts[1]
        _set_field(settings, section, field_name, value)


def _set_field(settings: Settings, section: str, field_name: str, value: str) -> None:
    """Set a field on the settings object from an env var value."""
    section_obj = getattr(settings, section, None)
    if section_obj is None:
        return
    # field names are lowercase except IndexConfig.M
    if not hasattr(section_obj, field_name):
        field_name = field_name.lower()
    if not hasattr(section_obj, field_name):
        return

    current_value = getattr(section_obj, field_name)

    # Type coercion based on current type
    if isinstance(current_value, bool):
        setattr(section_obj, field_name, value.lower() in ("true", "1", "yes"))
    elif isinstance(current_value, int):
        setattr(section_obj, field_name, int(value))
    elif isinstance(current_value, float):
        setattr(section_obj, field_name, float(value))
    else:
        setattr(section_obj, field_name, value)


# ── Adapter factories ──


def build_vector_index(cfg: IndexConfig) -> VectorIndexPort:
    adapter = cfg.vector_index

    if adapter == "numpy":
        from neuralytics.adapters.indexes.numpy_vector import NumpyVectorIndex
        return NumpyVectorIndex(M=cfg.M, max_levels=cfg.max_levels)

    raise ValueError(f"Unknown vector_index adapter: {adapter}")


def build_relationship_store(cfg: IndexConfig) -> RelationshipStorePort | None:
    adapter = cfg.relationship_store

    if adapter == "in_memory":
        from neuralytics.adapters.stores.in_memory_relationships import InMemoryRelationshipStore
        return InMemoryRelationshipStore()

    elif adapter == "none":
        return None

    raise ValueError(f"Unknown relationship_store adapter: {adapter}")


def build_embedding(cfg: EmbeddingConfig) -> EmbeddingPort | None:
    adapter = cfg.adapter

    if adapter == "sentence_transformer":
        from neuralytics.adapters.embeddings.sentence_transformer import (
            SentenceTransformerEmbedding,
        )
        return SentenceTransformerEmbedding(model_name=cfg.model, device=cfg.device)

    elif adapter == "ollama":
        from neuralytics.adapters.embeddings.ollama_embedding import OllamaEmbedding
        return OllamaEmbedding(model=cfg.model, base_url=cfg.base_url, dimension=cfg.dimension)

    elif adapter == "none":
        return None

    raise ValueError(f"Unknown embedding adapter: {adapter}")


def build_llm(cfg: LLMConfig) -> LLMPort | None:
    adapter = cfg.adapter

    if adapter == "ollama":
        from neuralytics.adapters.llms.ollama_llm import OllamaLLM
        return OllamaLLM(model=cfg.model, base_url=cfg.base_url, temperature=cfg.temperature)

    elif adapter == "none":
        return None

    raise ValueError(f"Unknown LLM adapter: {adapter}")


# ── Top-level builder ──


def build_engine(
    config_path: str | None = "config.yaml",
    *,
    vector_index: VectorIndexPort | None = None,
    relationship_store: RelationshipStorePort | None = None,
) -> NeuralAnalytics:
    """Load config and wire all adapters into NeuralAnalytics.

    Pass *vector_index* / *relationship_store* to analyse an existing store
    instead of building empty in-memory ones.
    """
    settings = load_settings(config_path)

    log.info("  → building vector index …")
    if vector_index is None:
        vector_index = build_vector_index(settings.index)
        relationship_store = relationship_store or build_relationship_store(settings.index)
    log.info("  ✓ vector index ready")

    log.info("  → building embedding adapter (%s) …", settings.embedding.adapter)
    embedding = build_embedding(settings.embedding)
    log.info("  → building LLM adapter (%s) …", settings.llm.adapter)
    llm = build_llm(settings.llm)

    router = settings.router
    return NeuralAnalytics(
        vector_index,
        relationship_store,
        embedding,
        llm,
        cache_size=settings.cache.max_size,
        cleanup_interval=settings.cache.cleanup_interval,
        streaming_batch_size=settings.neural.streaming_batch_size,
        similarity_metric=settings.neural.similarity_metric,
        default_algorithm=settings.clustering.default_algorithm,
        sampling_chunk_size=settings.sampling.chunk_size,
        seed=settings.neural.seed,
        router_thresholds={f.name: getattr(router, f.name) for f in fields(router)},
    )
