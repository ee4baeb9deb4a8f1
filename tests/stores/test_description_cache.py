"""Tests for the description cache store."""

from __future__ import annotations

import json
from pathlib import Path

from codesummary.stores import DescriptionCache


def test_description_cache_round_trip(tmp_path: Path) -> None:
    cache_path = tmp_path / "cache" / "descriptions.json"
    cache = DescriptionCache(cache_path)
    cache.store("ollama:m:abc", "Adds two numbers.")
    cache.persist()

    loaded = DescriptionCache(cache_path)

    assert loaded.get("ollama:m:abc") == "Adds two numbers."
    assert "ollama:m:abc" in loaded
    assert len(loaded) == 1
    payload = json.loads(cache_path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert payload["entries"]["ollama:m:abc"]["updated_at"].endswith("Z")


def test_description_cache_misses_return_none(tmp_path: Path) -> None:
    cache = DescriptionCache(tmp_path / "cache.json")

    assert cache.get("missing") is None
    assert len(cache) == 0


def test_description_cache_prune_removes_unused(tmp_path: Path) -> None:
    cache = DescriptionCache(tmp_path / "cache.json")
    cache.store("a", "First.")
    cache.store("b", "Second.")

    removed = cache.prune(["a"])
    cache.persist()

    reloaded = DescriptionCache(tmp_path / "cache.json")
    assert removed == 1
    assert reloaded.get("a") == "First."
    assert reloaded.get("b") is None


def test_description_cache_persist_skips_clean_state(tmp_path: Path) -> None:
    cache_path = tmp_path / "cache.json"
    cache = DescriptionCache(cache_path)

    cache.persist()

    assert not cache_path.exists()


def test_description_cache_ignores_corrupt_or_outdated_files(tmp_path: Path) -> None:
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json", encoding="utf-8")
    outdated = tmp_path / "outdated.json"
    outdated.write_text(
        json.dumps({"version": 0, "entries": {"k": {"description": "Old."}}}),
        encoding="utf-8",
    )

    assert len(DescriptionCache(corrupt)) == 0
    assert DescriptionCache(outdated).get("k") is None


def test_description_cache_clear_persists_empty_payload(tmp_path: Path) -> None:
    cache_path = tmp_path / "cache.json"
    cache = DescriptionCache(cache_path)
    cache.store("k", "Value.")
    cache.persist()

    cache.clear()
    cache.persist()

    assert len(DescriptionCache(cache_path)) == 0


def test_in_memory_cache_never_writes(tmp_path: Path) -> None:
    cache = DescriptionCache(None)
    cache.store("k", "Value.")
    cache.persist()

    assert cache.path is None
    assert cache.get("k") == "Value."
    assert list(tmp_path.iterdir()) == []
