"""Core data models shared across codesummary components."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

_MODULE_PATH = re.compile(r"^[A-Za-z_]\w*(?:\.\w+)*$")


@dataclass
class ImportDecl:
    """A single import statement; ``names`` is empty for whole-module imports."""

    source: str
    names: List[str] = field(default_factory=list)

    def bound_names(self) -> List[str]:
        """Return the identifiers this import introduces into the file scope."""
        bound: List[str] = []
        for name in self.names:
            if " as " in name:
                bound.append(name.rsplit(" as ", 1)[1].strip())
            elif name not in {"*", "self"}:
                bound.append(name)
        if not self.names and _MODULE_PATH.match(self.source):
            bound.append(self.source.split(".", 1)[0])
        return bound


@dataclass
class TypeDecl:
    """A type-like declaration (struct, enum, class, interface or alias)."""

    name: str
    kind: str


@dataclass
class FunctionEntry:
    """Metadata for one function or method found in a file."""

    name: str
    signature: str
    return_points: int
    body_hash: str
    parent: Optional[str] = None
    line: int = 0
    lines_of_code: int = 0
    complexity: int = 1
    parameters: int = 0
    body: str = ""
    description: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        if self.parent:
            return f"{self.parent}.{self.name}"
        return self.name


@dataclass
class FileModel:
    """Structural summary of one source file."""

    path: str
    language: str
    imports: List[ImportDecl] = field(default_factory=list)
    functions: List[FunctionEntry] = field(default_factory=list)
    types: List[TypeDecl] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    declarations: List[str] = field(default_factory=list)

    def top_level_names(self) -> Set[str]:
        """Names bound at file scope: functions, types, declarations and imports."""
        names: Set[str] = {func.name for func in self.functions if func.parent is None}
        names.update(decl.name for decl in self.types)
        names.update(self.declarations)
        for item in self.imports:
            names.update(item.bound_names())
        return names


@dataclass
class Diagnostic:
    """A non-fatal problem recorded during a run."""

    stage: str
    path: str
    message: str
    level: str = "warning"
    function: Optional[str] = None


@dataclass
class SourceFile:
    """A candidate source file relative to the scanned root."""

    path: str
    language: str


@dataclass
class RepoManifest:
    """Files selected for summarising, plus documentation files and scan problems."""

    root: str
    files: List[SourceFile] = field(default_factory=list)
    docs: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


class ProjectModel:
    """Ordered mapping from file path to FileModel plus run diagnostics."""

    def __init__(
        self,
        files: Dict[str, FileModel] | None = None,
        diagnostics: List[Diagnostic] | None = None,
    ) -> None:
        self.files: Dict[str, FileModel] = dict(files or {})
        self.diagnostics: List[Diagnostic] = list(diagnostics or [])

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __getitem__(self, path: str) -> FileModel:
        return self.files[path]

    def __iter__(self) -> Iterator[FileModel]:
        return iter(self.files.values())

    def paths(self) -> List[str]:
        return list(self.files)

    def functions(self) -> Iterator[Tuple[FileModel, FunctionEntry]]:
        """Yield every function entry in file order, then declaration order."""
        for model in self.files.values():
            for func in model.functions:
                yield model, func

    def diagnostics_for(self, stage: str) -> List[Diagnostic]:
        return [diag for diag in self.diagnostics if diag.stage == stage]


__all__ = [
    "Diagnostic",
    "FileModel",
    "FunctionEntry",
    "ImportDecl",
    "ProjectModel",
    "RepoManifest",
    "SourceFile",
    "TypeDecl",
]
