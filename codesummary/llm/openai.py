"""Adapter for the OpenAI chat-completions API and compatible servers."""

from __future__ import annotations

from .base import DescriptionRequest, PermanentProviderError, Provider


class OpenAIProvider(Provider):
    """Calls ``POST {base_url}/chat/completions``.

    A custom ``base_url`` points the provider at any server that speaks the same
    protocol; an API key is only mandatory for the hosted default endpoint.
    """

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def _check_ready(self) -> None:
        if not self.api_key and self.base_url == self.DEFAULT_BASE_URL:
            raise PermanentProviderError(
                "OpenAI API key is not configured; set OPENAI_API_KEY or llm.api_key."
            )

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_payload(self, request: DescriptionRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": self.model,
            "messages": self._build_messages(request.system, request.prompt),
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload

    @staticmethod
    def _build_messages(system: str | None, prompt: str) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _extract_content(self, payload: dict[str, object]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""


__all__ = ["OpenAIProvider"]
