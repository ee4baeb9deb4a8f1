"""Tests for Python structural extraction."""

from __future__ import annotations

import textwrap

from codesummary.analyzers import Language, extract
from codesummary.analyzers.grammars import parse_python_import
from codesummary.models import ImportDecl
from tests._fixtures.sources import PYTHON_SOURCE


def _source(text: str) -> str:
    return textwrap.dedent(text).lstrip("\n")


def _model():
    return extract("pkg/greet.py", _source(PYTHON_SOURCE), Language.PYTHON)


def test_python_imports_cover_aliases_and_parenthesised_lists() -> None:
    model = _model()

    assert model.imports == [
        ImportDecl(source="os", names=[]),
        ImportDecl(source="numpy", names=["numpy as np"]),
        ImportDecl(source="typing", names=["Dict", "List as L"]),
    ]


def test_python_types_and_declarations() -> None:
    model = _model()

    assert [(decl.name, decl.kind) for decl in model.types] == [("Greeter", "class")]
    assert model.declarations == ["DEFAULT_NAME", "_PRIVATE"]


def test_python_methods_and_nested_functions_get_parents() -> None:
    model = _model()

    assert [func.qualified_name for func in model.functions] == [
        "Greeter.__init__",
        "Greeter.greet",
        "Greeter.default",
        "make_greeter",
        "make_greeter.inner",
        "fetch",
    ]


def test_python_parameters_exclude_receivers_and_bare_star() -> None:
    functions = {func.qualified_name: func for func in _model().functions}

    assert functions["Greeter.__init__"].parameters == 1
    assert functions["Greeter.greet"].parameters == 1
    assert functions["Greeter.default"].parameters == 0
    assert functions["make_greeter"].parameters == 2
    assert functions["fetch"].parameters == 1


def test_python_return_points_exclude_nested_functions() -> None:
    functions = {func.qualified_name: func for func in _model().functions}

    assert functions["Greeter.greet"].return_points == 2
    assert functions["Greeter.greet"].complexity == 2
    assert functions["make_greeter"].return_points == 2
    assert functions["make_greeter"].complexity == 2
    assert functions["make_greeter.inner"].return_points == 1
    assert functions["fetch"].return_points == 1
    assert functions["fetch"].lines_of_code == 1
    assert functions["fetch"].signature == "def fetch(url)"


def test_python_exports_follow_dunder_all() -> None:
    assert _model().exports == ["Greeter", "make_greeter", "os"]


def test_python_exports_default_to_public_top_level_names() -> None:
    text = _source(
        """
        import os

        VALUE = 1
        _hidden = 2

        class Store:
            pass

        def load():
            return VALUE

        def _private():
            return None
        """
    )

    model = extract("pkg/store.py", text, Language.PYTHON)

    assert model.exports == ["VALUE", "Store", "load"]


def test_python_exports_drop_undeclared_names() -> None:
    text = '__all__ = ["present", "missing"]\n\n\ndef present():\n    return 1\n'

    model = extract("pkg/partial.py", text, Language.PYTHON)

    assert model.exports == ["present"]


def test_identical_bodies_share_a_hash_regardless_of_indentation() -> None:
    text = _source(
        """
        class Box:
            def size(value):
                return value

        def size(value):
            return value
        """
    )

    method, function = extract("pkg/box.py", text, Language.PYTHON).functions

    assert method.parent == "Box"
    assert function.parent is None
    assert method.body_hash == function.body_hash
    assert method.body == function.body


def test_parse_python_import_splits_multiple_modules() -> None:
    assert parse_python_import("import os, sys as system") == [
        ImportDecl(source="os", names=[]),
        ImportDecl(source="sys", names=["sys as system"]),
    ]
    assert parse_python_import("from . import sibling") == [ImportDecl(source=".", names=["sibling"])]
