"""Maps file paths to the grammar used to summarise them."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Iterable, Optional


class Language(str, Enum):
    """Closed set of grammars the extractor understands."""

    RUST = "rust"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    UNSUPPORTED = "unsupported"


_LANGUAGE_BY_SUFFIX = {
    ".rs": Language.RUST,
    ".js": Language.TYPESCRIPT,
    ".jsx": Language.TYPESCRIPT,
    ".mjs": Language.TYPESCRIPT,
    ".cjs": Language.TYPESCRIPT,
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
}

_ALIASES = {
    "rs": Language.RUST,
    "rust": Language.RUST,
    "js": Language.TYPESCRIPT,
    "javascript": Language.TYPESCRIPT,
    "ts": Language.TYPESCRIPT,
    "typescript": Language.TYPESCRIPT,
    "py": Language.PYTHON,
    "python": Language.PYTHON,
}

SUPPORTED_LANGUAGES: tuple[Language, ...] = (
    Language.RUST,
    Language.TYPESCRIPT,
    Language.PYTHON,
)


def classify(path: str | PurePath, enabled: Optional[Iterable[Language]] = None) -> Language:
    """Return the grammar for ``path``; unknown or disabled suffixes are unsupported."""
    suffix = PurePath(path).suffix.lower()
    language = _LANGUAGE_BY_SUFFIX.get(suffix, Language.UNSUPPORTED)
    if enabled is not None and language not in set(enabled):
        return Language.UNSUPPORTED
    return language


def parse_language_names(names: Iterable[str]) -> list[Language]:
    """Translate configured language names (``rust``, ``js``...) into grammars."""
    languages: list[Language] = []
    unknown: list[str] = []
    for raw in names:
        key = raw.strip().lower()
        if not key:
            continue
        language = _ALIASES.get(key)
        if language is None:
            unknown.append(raw)
            continue
        if language not in languages:
            languages.append(language)
    if unknown:
        raise ValueError(f"Unknown languages requested: {', '.join(sorted(unknown))}")
    return languages


__all__ = ["Language", "SUPPORTED_LANGUAGES", "classify", "parse_language_names"]
