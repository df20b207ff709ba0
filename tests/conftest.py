"""Shared test fixtures: mock ports and sample data."""

from __future__ import annotations

import zlib

import numpy as np
import pytest

from neuralytics.adapters.indexes.numpy_vector import NumpyVectorIndex
from neuralytics.adapters.stores.in_memory_relationships import InMemoryRelationshipStore
from neuralytics.ports.embedding import EmbeddingPort
from neuralytics.ports.llm import LLMPort
from neuralytics.services.items import ItemRepository
from neuralytics.services.neural import NeuralAnalytics


# ── Mock Embedding ──


class MockEmbedding(EmbeddingPort):
    """Returns deterministic embeddings based on a checksum of the text."""

    DIM = 4

    async def embed_text(self, text: str) -> list[float]:
        rng = np.random.RandomState(zlib.crc32(text.encode("utf-8")) % 2**31)
        return rng.randn(self.DIM).tolist()

    def dimension(self) -> int:
        return self.DIM

    def model_name(self) -> str:
        return "mock-embedding"


# ── Mock LLM ──


class MockLLM(LLMPort):
    """Returns canned responses for testing."""

    def __init__(self) -> None:
        self.prompts: list[str] = []

    def generate(self, prompt: str, *, system: str = "") -> str:
        self.prompts.append(prompt)
        return 'Label: "Research Team"\nThese items are people.'


class FailingLLM(LLMPort):
    def generate(self, prompt: str, *, system: str = "") -> str:
        raise RuntimeError("model unavailable")


# ── Failing collaborators ──


class FailingIndex(NumpyVectorIndex):
    """Lists ids but fails every item lookup."""

    async def get_item(self, item_id: str):
        raise RuntimeError("index offline")


# ── Sample data ──
#
# Two well-separated groups in 4-d space:
#   a0..a5  "person"    near (1, 0, 0, 0), created_at 1000..1005
#   b0..b5  "document"  near (0, 0, 1, 0), created_at 2000..2005
# a0 and b0 are the only level-1 representatives.

A_IDS = [f"a{i}" for i in range(6)]
B_IDS = [f"b{i}" for i in range(6)]


def fill_index(index: NumpyVectorIndex) -> NumpyVectorIndex:
    for i, item_id in enumerate(A_IDS):
        index.add(
            item_id,
            [1.0, 0.05 * i, 0.0, 0.0],
            noun_type="person",
            created_at=1000.0 + i,
            metadata={"label": f"Alice {i}", "team": "research"},
            level=1 if i == 0 else 0,
        )
    for i, item_id in enumerate(B_IDS):
        index.add(
            item_id,
            [0.0, 0.0, 1.0, 0.05 * i],
            noun_type="document",
            created_at=2000.0 + i,
            metadata={"label": f"Doc {i}", "team": "docs"},
            level=1 if i == 0 else 0,
        )
    return index


def fill_store(store: InMemoryRelationshipStore) -> InMemoryRelationshipStore:
    # two triangles per group joined by a bridge (x2 - x3)
    for prefix, rel_type in (("a", "worksWith"), ("b", "references")):
        pairs = [(0, 1), (1, 2), (2, 0), (3, 4), (4, 5), (5, 3), (2, 3)]
        for s, t in pairs:
            store.connect(f"{prefix}{s}", f"{prefix}{t}", rel_type, confidence=0.9)
    return store


# ── Fixtures ──


@pytest.fixture
def mock_embedding():
    return MockEmbedding()


@pytest.fixture
def mock_llm():
    return MockLLM()


@pytest.fixture
def failing_llm():
    return FailingLLM()


@pytest.fixture
def numpy_index():
    return NumpyVectorIndex()


@pytest.fixture
def populated_index():
    return fill_index(NumpyVectorIndex())


@pytest.fixture
def relationship_store():
    return fill_store(InMemoryRelationshipStore())


@pytest.fixture
def items(populated_index, relationship_store):
    return ItemRepository(populated_index, relationship_store)


@pytest.fixture
def failing_index():
    return fill_index(FailingIndex())


@pytest.fixture
def engine(populated_index, relationship_store, mock_embedding):
    eng = NeuralAnalytics(
        populated_index,
        relationship_store,
        mock_embedding,
        cleanup_interval=3600.0,
    )
    yield eng
    eng.shutdown()


@pytest.fixture
def failing_engine(failing_index, relationship_store):
    eng = NeuralAnalytics(failing_index, relationship_store, cleanup_interval=3600.0)
    yield eng
    eng.shutdown()
