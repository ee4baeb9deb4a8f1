"""Repository walking and ignore-rule handling."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .analyzers.language import Language, classify
from .logging import get_logger
from .models import Diagnostic, RepoManifest, SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "target",
    "dist",
    "build",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    ".codesummary",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_DOC_SUFFIXES = (".md", ".rst", ".txt")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or exclude_paths."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return fnmatchcase(rel_path, f"{self.pattern}/*") and self.directory_only

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None

    negate = pattern.startswith("!")
    if negate:
        pattern = pattern[1:]

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    if not pattern:
        return None
    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []
    return _rules_from(text.splitlines())


def _rules_from(patterns: Iterable[str]) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


class RepoScanner:
    """Walks a directory tree and selects files for summarising."""

    def __init__(
        self,
        exclude_paths: Sequence[str] = (),
        languages: Optional[Iterable[Language]] = None,
    ) -> None:
        self.exclude_paths = list(exclude_paths)
        self.languages = list(languages) if languages is not None else None
        self.logger = get_logger("scanner")

    def scan(self, root: str | Path) -> RepoManifest:
        """Return the supported source files and documentation under ``root``.

        Paths are relative, POSIX style and sorted so downstream order never
        depends on the filesystem.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")
        # Raises PermissionError when the root itself cannot be listed.
        os.listdir(root_path)

        rules = _parse_gitignore(root_path / ".gitignore")
        rules.extend(_rules_from(self.exclude_paths))

        manifest = RepoManifest(root=str(root_path))
        sources: List[SourceFile] = []
        docs: List[str] = []
        for rel_path in self._iter_files(root_path, rules, manifest.diagnostics):
            language = classify(rel_path, self.languages)
            if language is not Language.UNSUPPORTED:
                sources.append(SourceFile(path=rel_path, language=language.value))
            elif rel_path.lower().endswith(_DOC_SUFFIXES):
                docs.append(rel_path)

        manifest.files = sorted(sources, key=lambda item: item.path)
        manifest.docs = sorted(docs)
        self.logger.debug(
            "Scanned %s: %d source file(s), %d doc file(s)",
            root_path,
            len(manifest.files),
            len(manifest.docs),
        )
        return manifest

    def _iter_files(
        self, root: Path, rules: Sequence[IgnoreRule], diagnostics: List[Diagnostic]
    ) -> Iterator[str]:
        def _on_error(exc: OSError) -> None:
            rel = Path(exc.filename).relative_to(root).as_posix() if exc.filename else "."
            self.logger.warning("Skipping unreadable directory %s: %s", rel, exc.strerror or exc)
            diagnostics.append(
                Diagnostic(stage="scan", path=rel, message=f"Directory could not be listed: {exc.strerror or exc}")
            )

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            kept_dirs = []
            for name in dirnames:
                if name in _EXCLUDED_DIRS:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if should_ignore(rel_path, True, rules):
                    continue
                kept_dirs.append(name)
            dirnames[:] = sorted(kept_dirs)

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if should_ignore(rel_path, False, rules):
                    continue
                yield rel_path


__all__ = ["IgnoreRule", "RepoScanner", "build_ignore_rule", "should_ignore"]
