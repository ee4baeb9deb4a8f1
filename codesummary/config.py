"""Configuration loading for codesummary (.codesummary.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .analyzers.language import SUPPORTED_LANGUAGES, Language, parse_language_names
from .llm.prompts import validate_template

CONFIG_FILENAME = ".codesummary.yml"
DEFAULT_PROVIDER = "ollama"
KNOWN_PROVIDERS = ("ollama", "openai", "gemini", "none")

_ENV_PROVIDER_KEYS = ("CODESUMMARY_PROVIDER", "LLM_PROVIDER")
_ENV_MODEL_KEYS = {
    "ollama": ("OLLAMA_MODEL",),
    "openai": ("OPENAI_MODEL",),
    "gemini": ("GEMINI_MODEL",),
}
_ENV_API_KEY_KEYS = {
    "openai": ("OPENAI_API_KEY",),
    "gemini": ("GEMINI_API_KEY",),
}
_ENV_BASE_URL_KEYS = {
    "ollama": ("OLLAMA_HOST",),
    "openai": ("CUSTOM_OPENAI_URL",),
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """Provider settings; ``model`` and ``base_url`` fall back to provider defaults."""

    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: Optional[float] = 0.2
    max_tokens: Optional[int] = None
    request_timeout: Optional[float] = 60.0
    prompt: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self.provider != "none"


@dataclass
class PipelineConfig:
    concurrency: int = 4
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    min_lines: int = 0
    max_body_lines: int = 200


@dataclass
class CacheConfig:
    enabled: bool = True
    path: Optional[Path] = None


@dataclass
class OutputConfig:
    path: str = "summary.md"
    filename_format: Optional[str] = None


@dataclass
class CodeSummaryConfig:
    """Represents the settings defined in .codesummary.yml plus environment overrides."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    exclude_paths: List[str] = field(default_factory=list)
    languages: List[Language] = field(default_factory=lambda: list(SUPPORTED_LANGUAGES))

    @property
    def cache_path(self) -> Path:
        if self.cache.path is not None:
            return self.cache.path
        return self.root / ".codesummary" / "descriptions.json"


def load_config(
    root: Path,
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> CodeSummaryConfig:
    """Load configuration for ``root``.

    ``config_path`` defaults to ``.codesummary.yml`` inside the root; a missing
    default file yields the built-in defaults, a missing explicit file is an error.
    """
    root = root.expanduser().resolve()
    env = os.environ if environ is None else environ
    if config_path is None:
        config_file = root / CONFIG_FILENAME
        data: Dict[str, Any] = _read_config(config_file) if config_file.is_file() else {}
    else:
        config_file = config_path.expanduser().resolve()
        if not config_file.is_file():
            raise ConfigError(f"Configuration file not found: {config_file}")
        data = _read_config(config_file)

    llm = _load_llm(_as_dict(data.get("llm")), env)

    pipeline_data = _as_dict(data.get("pipeline"))
    defaults = PipelineConfig()
    pipeline = PipelineConfig(
        concurrency=_positive(_as_int(pipeline_data.get("concurrency")), defaults.concurrency),
        max_attempts=_positive(_as_int(pipeline_data.get("max_attempts")), defaults.max_attempts),
        backoff_seconds=_non_negative(_as_float(pipeline_data.get("backoff_seconds")), defaults.backoff_seconds),
        backoff_max_seconds=_non_negative(
            _as_float(pipeline_data.get("backoff_max_seconds")), defaults.backoff_max_seconds
        ),
        min_lines=_non_negative(_as_int(pipeline_data.get("min_lines")), defaults.min_lines),
        max_body_lines=_positive(_as_int(pipeline_data.get("max_body_lines")), defaults.max_body_lines),
    )

    cache_data = _as_dict(data.get("cache"))
    cache_path = _as_str(cache_data.get("path"))
    enabled = _as_bool(cache_data.get("enabled"))
    cache = CacheConfig(
        enabled=True if enabled is None else enabled,
        path=(root / cache_path) if cache_path else None,
    )

    output_data = _as_dict(data.get("output"))
    output = OutputConfig(
        path=_as_str(output_data.get("path")) or "summary.md",
        filename_format=_as_str(output_data.get("filename_format")),
    )

    language_names = _as_str_list(data.get("languages"))
    try:
        languages = parse_language_names(language_names) if language_names else list(SUPPORTED_LANGUAGES)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return CodeSummaryConfig(
        root=root,
        llm=llm,
        pipeline=pipeline,
        cache=cache,
        output=output,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        languages=languages,
    )


def _load_llm(llm_data: Dict[str, Any], env: Mapping[str, str]) -> LLMConfig:
    provider = (
        _first_env_value(env, _ENV_PROVIDER_KEYS)
        or _as_str(llm_data.get("provider"))
        or DEFAULT_PROVIDER
    ).strip().lower()
    if provider not in KNOWN_PROVIDERS:
        raise ConfigError(
            f"Unknown LLM provider '{provider}'. Expected one of: {', '.join(KNOWN_PROVIDERS)}"
        )

    prompt = _as_str(llm_data.get("prompt"))
    if prompt:
        try:
            validate_template(prompt)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    defaults = LLMConfig()
    temperature = _as_float(llm_data.get("temperature"))
    timeout = _as_float(llm_data.get("request_timeout"))
    return LLMConfig(
        provider=provider,
        model=_first_env_value(env, _ENV_MODEL_KEYS.get(provider, ()))
        or _as_str(llm_data.get("model")),
        api_key=_first_env_value(env, _ENV_API_KEY_KEYS.get(provider, ()))
        or _as_str(llm_data.get("api_key")),
        base_url=_first_env_value(env, _ENV_BASE_URL_KEYS.get(provider, ()))
        or _as_str(llm_data.get("base_url")),
        temperature=defaults.temperature if temperature is None else temperature,
        max_tokens=_as_int(llm_data.get("max_tokens")),
        request_timeout=defaults.request_timeout if timeout is None else timeout,
        prompt=prompt or None,
    )


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _positive(value: Optional[int], default: int) -> int:
    return value if value is not None and value > 0 else default


def _non_negative(value: Any, default: Any) -> Any:
    return value if value is not None and value >= 0 else default


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CacheConfig",
    "CodeSummaryConfig",
    "ConfigError",
    "KNOWN_PROVIDERS",
    "LLMConfig",
    "OutputConfig",
    "PipelineConfig",
    "load_config",
]
