"""Adapter for a locally hosted Ollama server."""

from __future__ import annotations

from .base import DescriptionRequest, Provider


class OllamaProvider(Provider):
    """Calls ``POST {base_url}/api/generate`` with streaming disabled."""

    name = "ollama"
    DEFAULT_MODEL = "mannix/gemma2-2b"
    DEFAULT_BASE_URL = "http://localhost:11434"

    def _endpoint(self) -> str:
        return f"{self.base_url}/api/generate"

    def _build_payload(self, request: DescriptionRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": self.model,
            "prompt": request.prompt,
            "stream": False,
        }
        if request.system:
            payload["system"] = request.system
        options: dict[str, object] = {}
        if self.temperature is not None:
            options["temperature"] = self.temperature
        if self.max_tokens is not None:
            options["num_predict"] = self.max_tokens
        if options:
            payload["options"] = options
        return payload

    def _extract_content(self, payload: dict[str, object]) -> str:
        response = payload.get("response")
        if isinstance(response, str):
            return response
        return ""


__all__ = ["OllamaProvider"]
