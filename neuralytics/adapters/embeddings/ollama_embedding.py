"""Embedding adapter: Ollama local server."""

from __future__ import annotations

from neuralytics.ports.embedding import EmbeddingPort


class OllamaEmbedding(EmbeddingPort):
    """Calls the Ollama /api/embed endpoint."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        dimension: int = 768,
    ):
        from ollama import AsyncClient  # lazy

        self._client = AsyncClient(host=base_url)
        self._model = model
        self._dim = dimension

    async def embed_text(self, text: str) -> list[float]:
        resp = await self._client.embed(model=self._model, input=text)
        return list(resp["embeddings"][0])

    def dimension(self) -> int:
        return self._dim

    def model_name(self) -> str:
        return self._model
