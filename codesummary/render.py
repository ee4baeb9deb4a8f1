"""Markdown report rendering."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Dict, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .config import OutputConfig
from .models import Diagnostic, FileModel, FunctionEntry, ImportDecl, ProjectModel
from .project_info import ProjectInfo

NO_DESCRIPTION = "_No description available._"
_FILE_STAGES = {"scan", "extract", "aggregate"}
_BACKTICK_RUN = re.compile(r"`+")


class ReportRenderer:
    """Renders a :class:`ProjectModel` with the ``summary.md.j2`` template."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        loader = FileSystemLoader(directories)
        self._env = Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)
        self._env.filters["code"] = code_span

    def render(
        self,
        project: ProjectModel,
        *,
        info: ProjectInfo,
        docs: Sequence[str] = (),
    ) -> str:
        template = self._env.get_template("summary.md.j2")
        text = template.render(
            title=f"{info.name} code summary",
            packages=info.packages,
            docs=list(docs),
            files=[_file_view(model) for model in project],
            skipped=[diag for diag in project.diagnostics if _is_file_level(diag)],
        )
        return re.sub(r"\n{3,}", "\n\n", text).strip() + "\n"

    def write(self, content: str, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path


def resolve_output_path(
    output: OutputConfig,
    *,
    folder: str,
    base_dir: Path | None = None,
    today: Optional[date] = None,
) -> Path:
    """Return where the report goes.

    ``filename_format`` replaces the file name of ``output.path`` and may use the
    ``{folder}`` and ``{date}`` placeholders. Relative paths are resolved against
    ``base_dir`` (the working directory by default).
    """
    target = Path(output.path).expanduser()
    if output.filename_format:
        stamp = (today or date.today()).isoformat()
        filename = output.filename_format.replace("{folder}", folder).replace("{date}", stamp)
        target = target.parent / filename
    if not target.is_absolute():
        target = (base_dir or Path.cwd()) / target
    return target


def code_span(text: str) -> str:
    """Wrap ``text`` in an inline code span that survives embedded backticks."""
    longest = max((len(run) for run in _BACKTICK_RUN.findall(text)), default=0)
    fence = "`" * (longest + 1)
    if text.startswith("`") or text.endswith("`"):
        text = f" {text} "
    return f"{fence}{text}{fence}"


def _is_file_level(diagnostic: Diagnostic) -> bool:
    return diagnostic.stage in _FILE_STAGES and diagnostic.function is None


def _file_view(model: FileModel) -> Dict[str, object]:
    return {
        "path": model.path,
        "language": model.language,
        "imports": [_import_line(item) for item in model.imports],
        "exports": list(model.exports),
        "types": [f"{decl.name} ({decl.kind})" for decl in model.types],
        "functions": [_function_view(entry) for entry in model.functions],
    }


def _import_line(item: ImportDecl) -> str:
    if item.names:
        return f"{code_span(item.source)}: {', '.join(item.names)}"
    return code_span(item.source)


def _function_view(entry: FunctionEntry) -> Dict[str, object]:
    return {
        "title": entry.qualified_name,
        "signature": entry.signature,
        "return_points": entry.return_points,
        "lines": entry.lines_of_code,
        "complexity": entry.complexity,
        "parameters": entry.parameters,
        "description": entry.description or NO_DESCRIPTION,
    }


__all__ = ["NO_DESCRIPTION", "ReportRenderer", "code_span", "resolve_output_path"]
