"""Adapter for the Gemini ``generateContent`` API."""

from __future__ import annotations

from urllib.parse import quote

from .base import DescriptionRequest, PermanentProviderError, Provider


class GeminiProvider(Provider):
    name = "gemini"
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def _check_ready(self) -> None:
        if not self.api_key:
            raise PermanentProviderError(
                "Gemini API key is not configured; set GEMINI_API_KEY or llm.api_key."
            )

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key or ""}

    def _endpoint(self) -> str:
        return f"{self.base_url}/models/{quote(self.model, safe='')}:generateContent"

    def _build_payload(self, request: DescriptionRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
        }
        if request.system:
            payload["systemInstruction"] = {"parts": [{"text": request.system}]}
        generation: dict[str, object] = {}
        if self.temperature is not None:
            generation["temperature"] = self.temperature
        if self.max_tokens is not None:
            generation["maxOutputTokens"] = self.max_tokens
        if generation:
            payload["generationConfig"] = generation
        return payload

    def _extract_content(self, payload: dict[str, object]) -> str:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""
        first = candidates[0]
        if not isinstance(first, dict):
            return ""
        content = first.get("content")
        if not isinstance(content, dict):
            return ""
        parts = content.get("parts")
        if not isinstance(parts, list):
            return ""
        texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
        return "".join(texts)


__all__ = ["GeminiProvider"]
