"""Embedding adapter: sentence-transformers (default: nomic-embed-text)."""

from __future__ import annotations

import asyncio

from neuralytics.ports.embedding import EmbeddingPort


class SentenceTransformerEmbedding(EmbeddingPort):
    """Uses the ``sentence-transformers`` library."""

    def __init__(self, model_name: str = "nomic-embed-text-v1.5", device: str = "cpu"):
        from sentence_transformers import SentenceTransformer  # lazy import

        self._model_name = model_name
        self._model = SentenceTransformer(model_name, trust_remote_code=True)
        self._model.to(device)
        self._dim: int = self._model.get_sentence_embedding_dimension()  # type: ignore[assignment]

    async def embed_text(self, text: str) -> list[float]:
        vec = await asyncio.to_thread(self._model.encode, text, convert_to_numpy=True)
        return vec.tolist()

    def dimension(self) -> int:
        return self._dim

    def model_name(self) -> str:
        return self._model_name
