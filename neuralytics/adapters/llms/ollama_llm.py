"""LLM adapter: Ollama local server."""

from __future__ import annotations

from neuralytics.ports.llm import LLMPort


class OllamaLLM(LLMPort):
    """Calls the Ollama /api/chat endpoint."""

    def __init__(
        self,
        model: str = "llama3.1:8b",
        base_url: str = "http://localhost:11434",
        temperature: float = 0.0,
    ):
        from ollama import Client  # lazy

        self._client = Client(host=base_url)
        self._model = model
        self._temperature = temperature

    def generate(self, prompt: str, *, system: str = "") -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        resp = self._client.chat(
            model=self._model,
            messages=messages,
            options={"temperature": self._temperature},
        )
        return resp["message"]["content"]
