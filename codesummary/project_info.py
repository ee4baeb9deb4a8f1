"""Project name and package metadata read from manifest files."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class ProjectInfo:
    """Name of the analysed project plus ``(package, version)`` pairs."""

    name: str
    packages: List[Tuple[str, str]] = field(default_factory=list)


def load_project_info(root: Path) -> ProjectInfo:
    """Inspect ``Cargo.toml``, ``package.json`` and ``pyproject.toml`` under ``root``.

    The project name is taken from the first manifest that declares one, in that
    order, and falls back to the directory name.
    """
    manifests = [
        _cargo_package(root / "Cargo.toml"),
        _node_package(root / "package.json"),
        _python_package(root / "pyproject.toml"),
    ]
    packages: List[Tuple[str, str]] = []
    name: Optional[str] = None
    for manifest in manifests:
        if manifest is None:
            continue
        package_name, version = manifest
        if name is None and package_name:
            name = package_name
        if package_name and version:
            packages.append((package_name, version))
    return ProjectInfo(name=name or root.name or "unknown", packages=packages)


def _cargo_package(path: Path) -> Optional[Tuple[Optional[str], Optional[str]]]:
    data = _read_toml(path)
    return _name_version(data.get("package")) if data else None


def _python_package(path: Path) -> Optional[Tuple[Optional[str], Optional[str]]]:
    data = _read_toml(path)
    if not data:
        return None
    project = data.get("project")
    if isinstance(project, dict):
        return _name_version(project)
    tool = data.get("tool")
    poetry = tool.get("poetry") if isinstance(tool, dict) else None
    return _name_version(poetry)


def _node_package(path: Path) -> Optional[Tuple[Optional[str], Optional[str]]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return _name_version(data)


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return {}


def _name_version(section: Any) -> Optional[Tuple[Optional[str], Optional[str]]]:
    if not isinstance(section, dict):
        return None
    name = section.get("name")
    version = section.get("version")
    return (
        name if isinstance(name, str) and name else None,
        version if isinstance(version, str) and version else None,
    )


__all__ = ["ProjectInfo", "load_project_info"]
