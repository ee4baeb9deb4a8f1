"""Tests for comment and literal masking."""

from __future__ import annotations

import textwrap

from codesummary.analyzers import Language, extract
from codesummary.analyzers.grammars import PYTHON, RUST, TYPESCRIPT
from codesummary.analyzers.masking import mask_source


def _source(text: str) -> str:
    return textwrap.dedent(text).lstrip("\n")


def test_masking_preserves_offsets_and_newlines() -> None:
    text = 'let s = "a { b"; // trailing }\nlet t = 1;\n'
    masked = mask_source(text, RUST.lexical)

    assert len(masked.code) == len(text)
    assert len(masked.stripped) == len(text)
    assert masked.code.count("\n") == text.count("\n")
    assert "{" not in masked.code
    assert '"a { b"' in masked.stripped
    assert "trailing" not in masked.stripped
    assert masked.line_of(text.index("let t")) == 1


def test_rust_char_literal_is_masked_but_lifetime_is_not() -> None:
    text = _source(
        """
        fn brace() -> char {
            '{'
        }

        fn longest<'a>(a: &'a str, b: &'a str) -> &'a str {
            if a.len() > b.len() { a } else { b }
        }
        """
    )

    model = extract("src/text.rs", text, Language.RUST)

    assert [func.name for func in model.functions] == ["brace", "longest"]
    brace, longest = model.functions
    assert brace.lines_of_code == 3
    assert longest.parameters == 2
    assert longest.complexity == 2


def test_template_literal_contents_are_not_scanned() -> None:
    text = _source(
        """
        const banner = `
        function fake() {
          return 1;
        }
        `;
        function real() {
          return banner;
        }
        """
    )

    model = extract("src/banner.js", text, Language.TYPESCRIPT)

    assert [func.name for func in model.functions] == ["real"]
    assert model.functions[0].return_points == 1
    assert model.declarations == ["banner"]


def test_python_triple_quoted_strings_are_not_scanned() -> None:
    text = _source(
        '''
        TEMPLATE = """
        def fake():
            return 1
        """


        def real():
            return TEMPLATE
        '''
    )

    model = extract("pkg/template.py", text, Language.PYTHON)

    assert [func.name for func in model.functions] == ["real"]
    assert model.declarations == ["TEMPLATE"]
    assert mask_source(text, PYTHON.lexical).literal_lines == frozenset({1, 2, 3})


def test_javascript_regex_literals_are_masked() -> None:
    text = 'const re = /\\{(\\w+)\\}/g;\nconst half = total / 2 / 3;\nconst cls = /[/{]/;\n'
    masked = mask_source(text, TYPESCRIPT.lexical)

    lines = masked.code.split("\n")
    assert lines[0] == "const re = /          /g;"
    assert lines[1] == "const half = total / 2 / 3;"
    assert lines[2] == "const cls = /    /;"
    assert "{" not in masked.code


def test_regex_braces_do_not_swallow_following_functions() -> None:
    text = _source(
        """
        export function a(s) { return s.replace(/\\{/g, ""); }
        export function b() { return 1; }
        """
    )

    model = extract("src/escape.js", text, Language.TYPESCRIPT)

    assert [(func.name, func.parent) for func in model.functions] == [("a", None), ("b", None)]
    assert model.exports == ["a", "b"]
