"""Persistence helpers for codesummary."""

from .description_cache import DescriptionCache

__all__ = ["DescriptionCache"]
