"""Port: text embedding."""

from __future__ import annotations

from abc import ABC, abstractmethod


class EmbeddingPort(ABC):
    """Convert text to dense vectors."""

    @abstractmethod
    async def embed_text(self, text: str) -> list[float]:
        """Embed a single piece of text."""

    @abstractmethod
    def dimension(self) -> int:
        """Return the dimensionality of the embedding space."""

    def model_name(self) -> str:
        """Return the name/identifier of the embedding model.

        Default implementation returns empty string. Adapters should override.
        """
        return ""
