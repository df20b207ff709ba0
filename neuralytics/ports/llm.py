"""Port: large language model inference (optional cluster labelling)."""

from __future__ import annotations

from abc import ABC, abstractmethod


class LLMPort(ABC):
    """Generate text completions from prompts."""

    @abstractmethod
    def generate(self, prompt: str, *, system: str = "") -> str:
        """Return a free-form text completion."""
