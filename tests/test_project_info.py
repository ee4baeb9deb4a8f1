"""Tests for codesummary.project_info."""

from __future__ import annotations

import json
from pathlib import Path

from codesummary.project_info import load_project_info


def test_project_info_reads_all_manifests(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "engine"\nversion = "0.3.1"\n', encoding="utf-8")
    (tmp_path / "package.json").write_text(json.dumps({"name": "web-ui", "version": "2.0.0"}), encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text(
        '[tool.poetry]\nname = "bindings"\nversion = "1.1.0"\n', encoding="utf-8"
    )

    info = load_project_info(tmp_path)

    assert info.name == "engine"
    assert info.packages == [("engine", "0.3.1"), ("web-ui", "2.0.0"), ("bindings", "1.1.0")]


def test_project_info_falls_back_to_directory_name(tmp_path: Path) -> None:
    root = tmp_path / "my-project"
    root.mkdir()
    (root / "package.json").write_text("{broken", encoding="utf-8")

    info = load_project_info(root)

    assert info.name == "my-project"
    assert info.packages == []


def test_project_info_uses_pep621_metadata(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "tool"\n', encoding="utf-8")

    info = load_project_info(tmp_path)

    assert info.name == "tool"
    assert info.packages == []
