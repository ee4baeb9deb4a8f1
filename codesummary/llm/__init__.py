"""Description providers and the factory that selects one."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional, Type

from .base import (
    DescriptionRequest,
    PermanentProviderError,
    Provider,
    ProviderError,
    TransientProviderError,
)
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

if TYPE_CHECKING:  # pragma: no cover
    from ..config import LLMConfig

PROVIDERS: Dict[str, Type[Provider]] = {
    OllamaProvider.name: OllamaProvider,
    OpenAIProvider.name: OpenAIProvider,
    GeminiProvider.name: GeminiProvider,
}

DISABLED = "none"


def create_provider(config: "LLMConfig") -> Optional[Provider]:
    """Instantiate the configured provider, or None when descriptions are off."""
    key = (config.provider or "").strip().lower()
    if key == DISABLED:
        return None
    factory = PROVIDERS.get(key)
    if factory is None:
        known = ", ".join(sorted([*PROVIDERS, DISABLED]))
        raise ValueError(f"Unknown LLM provider '{config.provider}'. Expected one of: {known}")
    return factory(
        config.model,
        base_url=config.base_url,
        api_key=config.api_key,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        request_timeout=config.request_timeout,
    )


__all__ = [
    "DISABLED",
    "DescriptionRequest",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "PermanentProviderError",
    "Provider",
    "ProviderError",
    "TransientProviderError",
    "create_provider",
]
