"""Tests for codesummary.render."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from codesummary.config import OutputConfig
from codesummary.models import Diagnostic, FileModel, FunctionEntry, ImportDecl, ProjectModel, TypeDecl
from codesummary.project_info import ProjectInfo
from codesummary.render import NO_DESCRIPTION, ReportRenderer, code_span, resolve_output_path


def _project() -> ProjectModel:
    described = FunctionEntry(
        name="area",
        signature="pub fn area(&self) -> f64",
        return_points=1,
        body_hash="h1",
        parent="Rect",
        lines_of_code=3,
        complexity=1,
        description="Returns the rectangle area.",
    )
    bare = FunctionEntry(name="helper", signature="fn helper()", return_points=0, body_hash="h2")
    model = FileModel(
        path="src/shapes.rs",
        language="rust",
        imports=[ImportDecl(source="std::fmt", names=["Display"]), ImportDecl(source="serde")],
        functions=[described, bare],
        types=[TypeDecl(name="Rect", kind="struct")],
        exports=["Rect"],
    )
    return ProjectModel(
        files={model.path: model},
        diagnostics=[
            Diagnostic(stage="extract", path="src/bad.rs", message="File is not valid UTF-8"),
            Diagnostic(stage="describe", path="src/shapes.rs", message="failed", function="helper"),
        ],
    )


def test_render_includes_file_sections() -> None:
    content = ReportRenderer().render(
        _project(),
        info=ProjectInfo(name="shapes", packages=[("shapes", "0.1.0")]),
        docs=["README.md"],
    )

    assert content.startswith("# shapes code summary\n")
    assert "## Project information" in content
    assert "- shapes: 0.1.0" in content
    assert "## Documentation files" in content
    assert "- README.md" in content
    assert "### src/shapes.rs" in content
    assert "Language: rust" in content
    assert "- `std::fmt`: Display" in content
    assert "- `serde`" in content
    assert "**Exports:** Rect" in content
    assert "- Rect (struct)" in content
    assert "#### Rect.area" in content
    assert "`pub fn area(&self) -> f64`" in content
    assert "- Returns: 1" in content
    assert "Returns the rectangle area." in content
    assert "#### helper" in content
    assert NO_DESCRIPTION in content
    assert "\n\n\n" not in content


def test_code_span_grows_its_fence_around_backticks() -> None:
    assert code_span("fn helper()") == "`fn helper()`"
    assert code_span("function greet(s = `hi`)") == "``function greet(s = `hi`)``"
    assert code_span("x = ``y``") == "``` x = ``y`` ```"


def test_render_keeps_signatures_with_backticks_intact() -> None:
    entry = FunctionEntry(
        name="greet",
        signature="export function greet(name = `world`)",
        return_points=1,
        body_hash="h3",
    )
    model = FileModel(path="src/greet.ts", language="typescript", functions=[entry])

    content = ReportRenderer().render(
        ProjectModel(files={model.path: model}), info=ProjectInfo(name="greet")
    )

    assert "``export function greet(name = `world`)``" in content


def test_render_lists_only_file_level_problems_as_skipped() -> None:
    content = ReportRenderer().render(_project(), info=ProjectInfo(name="shapes"))

    assert "## Skipped files" in content
    assert "- src/bad.rs (extract): File is not valid UTF-8" in content
    assert "(describe)" not in content
    assert "## Project information" not in content


def test_render_empty_project() -> None:
    content = ReportRenderer().render(ProjectModel(), info=ProjectInfo(name="empty"))

    assert "_No supported source files found._" in content
    assert "## Skipped files" not in content


def test_render_uses_template_override(tmp_path: Path) -> None:
    (tmp_path / "summary.md.j2").write_text("Custom {{ title }} ({{ files | length }})\n", encoding="utf-8")

    content = ReportRenderer(templates_dir=tmp_path).render(_project(), info=ProjectInfo(name="shapes"))

    assert content == "Custom shapes code summary (1)\n"


def test_write_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "out" / "summary.md"

    ReportRenderer().write("# Report\n", target)

    assert target.read_text(encoding="utf-8") == "# Report\n"


def test_resolve_output_path_formats_filename(tmp_path: Path) -> None:
    output = OutputConfig(path="reports/summary.md", filename_format="{folder}-{date}.md")

    path = resolve_output_path(output, folder="engine", base_dir=tmp_path, today=date(2024, 5, 17))

    assert path == tmp_path / "reports" / "engine-2024-05-17.md"


def test_resolve_output_path_keeps_absolute_paths(tmp_path: Path) -> None:
    target = tmp_path / "summary.md"

    assert resolve_output_path(OutputConfig(path=str(target)), folder="x", base_dir=Path("/elsewhere")) == target
