"""Per-grammar configuration records consumed by the shared extractor."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Pattern, Tuple, Union

from ..models import ImportDecl
from .language import Language
from .masking import LexicalRules


class BlockStyle(str, Enum):
    BRACES = "braces"
    INDENT = "indent"


class ExportRule(str, Enum):
    MARKER = "marker"
    DUNDER_ALL = "dunder_all"


@dataclass(frozen=True)
class FunctionPattern:
    """Recognises the start of a function definition.

    The regex runs against the masked line and must provide a ``name`` group
    (optional for anonymous functions). The header is read forward until one of
    ``terminators`` at bracket depth zero.
    """

    regex: Pattern[str]
    terminators: Tuple[str, ...]
    stop_at_newline: bool = False
    methods_only: bool = False


@dataclass(frozen=True)
class TypePattern:
    regex: Pattern[str]
    kind: Union[str, Callable[["re.Match[str]"], str]]

    def kind_for(self, match: "re.Match[str]") -> str:
        if callable(self.kind):
            return self.kind(match)
        return self.kind


@dataclass(frozen=True)
class Grammar:
    """Everything that differs between the supported languages."""

    language: Language
    lexical: LexicalRules
    block_style: BlockStyle
    export_rule: ExportRule
    import_starts: Tuple[Pattern[str], ...]
    parse_import: Callable[[str], List[ImportDecl]]
    import_ends_at_newline: bool
    functions: Tuple[FunctionPattern, ...]
    types: Tuple[TypePattern, ...]
    containers: Tuple[Pattern[str], ...]
    declarations: Tuple[Pattern[str], ...]
    export_marker: Optional[Pattern[str]]
    export_lists: Tuple[Pattern[str], ...]
    return_keyword: Pattern[str]
    complexity_keywords: Pattern[str]
    receivers: FrozenSet[str] = field(default_factory=frozenset)
    continuation_brackets: str = "(["


def _split_top_level(text: str, separator: str = ",") -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(depth - 1, 0)
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def _normalise(statement: str) -> str:
    return " ".join(statement.split())


# Rust ----------------------------------------------------------------------

_RUST_VIS = r"(?:pub(?:\s*\([^)\n]*\))?\s+)?"
_RUST_USE = re.compile(r"^\s*" + _RUST_VIS + r"use\s+(?P<path>.+?);?\s*$", re.DOTALL)
_RUST_EXTERN_CRATE = re.compile(r"^\s*extern\s+crate\s+(?P<name>\w+)(?:\s+as\s+(?P<alias>\w+))?")


def parse_rust_import(statement: str) -> List[ImportDecl]:
    text = _normalise(statement)
    crate = _RUST_EXTERN_CRATE.match(text)
    if crate:
        alias = crate.group("alias")
        names = [f"{crate.group('name')} as {alias}"] if alias else []
        return [ImportDecl(source=crate.group("name"), names=names)]
    match = _RUST_USE.match(text)
    if not match:
        return []
    path = match.group("path").strip().rstrip(";").strip()
    if path.endswith("}") and "{" in path:
        prefix, group = path.split("{", 1)
        source = prefix.rstrip(":").strip() or "crate"
        names = [_normalise(item) for item in _split_top_level(group[:-1])]
        return [ImportDecl(source=source, names=names)]
    if "::" in path:
        source, last = path.rsplit("::", 1)
        return [ImportDecl(source=source.strip(), names=[last.strip()])]
    return [ImportDecl(source=path, names=[])]


RUST = Grammar(
    language=Language.RUST,
    lexical=LexicalRules(
        line_comment="//",
        block_comment=("/*", "*/"),
        string_delimiters=('"',),
        multiline_strings=frozenset({'"'}),
        char_literals=True,
    ),
    block_style=BlockStyle.BRACES,
    export_rule=ExportRule.MARKER,
    import_starts=(
        re.compile(r"^\s*" + _RUST_VIS + r"use\s"),
        re.compile(r"^\s*extern\s+crate\s"),
    ),
    parse_import=parse_rust_import,
    import_ends_at_newline=False,
    functions=(
        FunctionPattern(
            regex=re.compile(
                r"^\s*" + _RUST_VIS + r"(?:default\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?"
                r"(?:extern\s+(?:\"[^\"\n]*\"\s+)?)?fn\s+(?P<name>[A-Za-z_]\w*)"
            ),
            terminators=("{", ";"),
        ),
    ),
    types=(
        TypePattern(re.compile(r"^\s*" + _RUST_VIS + r"struct\s+(?P<name>[A-Za-z_]\w*)"), "struct"),
        TypePattern(re.compile(r"^\s*" + _RUST_VIS + r"union\s+(?P<name>[A-Za-z_]\w*)"), "struct"),
        TypePattern(re.compile(r"^\s*" + _RUST_VIS + r"enum\s+(?P<name>[A-Za-z_]\w*)"), "enum"),
        TypePattern(
            re.compile(r"^\s*" + _RUST_VIS + r"(?:unsafe\s+)?(?:auto\s+)?trait\s+(?P<name>[A-Za-z_]\w*)"),
            "interface",
        ),
        TypePattern(re.compile(r"^\s*" + _RUST_VIS + r"type\s+(?P<name>[A-Za-z_]\w*)[^;\n]*="), "alias"),
    ),
    containers=(
        re.compile(
            r"^\s*(?:unsafe\s+)?impl(?:\s*<.*?>)?\s+(?:.*?\bfor\s+)?(?:&\s*)?(?:\w+::)*(?P<name>[A-Za-z_]\w*)"
        ),
        re.compile(r"^\s*" + _RUST_VIS + r"(?:unsafe\s+)?trait\s+(?P<name>[A-Za-z_]\w*)"),
        re.compile(r"^\s*" + _RUST_VIS + r"mod\s+(?P<name>[A-Za-z_]\w*)\s*\{"),
    ),
    declarations=(
        re.compile(r"^\s*" + _RUST_VIS + r"(?:const|static)\s+(?:mut\s+)?(?P<name>[A-Za-z_]\w*)\s*:"),
        re.compile(r"^\s*" + _RUST_VIS + r"mod\s+(?P<name>[A-Za-z_]\w*)"),
    ),
    export_marker=re.compile(r"^\s*pub\s"),
    export_lists=(),
    return_keyword=re.compile(r"\breturn\b"),
    complexity_keywords=re.compile(r"\b(?:if|while|for|loop)\b|=>|&&|\|\|"),
    receivers=frozenset({"self"}),
)


# JavaScript / TypeScript -----------------------------------------------------

_JS_IDENT = r"[A-Za-z_$][\w$]*"
_JS_FROM = re.compile(
    r"^import\s+(?:type\s+)?(?P<clause>.+?)\s+from\s+['\"](?P<source>[^'\"]+)['\"]", re.DOTALL
)
_JS_BARE = re.compile(r"^import\s+['\"](?P<source>[^'\"]+)['\"]")
_JS_REQUIRE = re.compile(
    r"^(?:const|let|var)\s+(?P<target>\{[^}]*\}|" + _JS_IDENT + r")\s*=\s*require\s*\(\s*['\"](?P<source>[^'\"]+)['\"]",
    re.DOTALL,
)


def _js_clause_names(clause: str) -> List[str]:
    names: List[str] = []
    clause = clause.strip()
    braces = re.search(r"\{(?P<items>[^}]*)\}", clause)
    remainder = clause
    if braces:
        remainder = (clause[: braces.start()] + clause[braces.end():]).strip()
    for part in _split_top_level(remainder):
        part = _normalise(part)
        if part.startswith("*"):
            names.append(part)
        elif part:
            names.append(part)
    if braces:
        for item in _split_top_level(braces.group("items")):
            item = _normalise(item)
            if item.startswith("type "):
                item = item[5:].strip()
            if item:
                names.append(item)
    return names


def parse_js_import(statement: str) -> List[ImportDecl]:
    text = _normalise(statement).rstrip(";").strip()
    match = _JS_FROM.match(text)
    if match:
        return [ImportDecl(source=match.group("source"), names=_js_clause_names(match.group("clause")))]
    match = _JS_BARE.match(text)
    if match:
        return [ImportDecl(source=match.group("source"), names=[])]
    match = _JS_REQUIRE.match(text)
    if match:
        target = match.group("target")
        if target.startswith("{"):
            names = []
            for item in _split_top_level(target[1:-1]):
                if ":" in item:
                    original, alias = item.split(":", 1)
                    names.append(f"{original.strip()} as {alias.strip()}")
                else:
                    names.append(item.strip())
        else:
            names = [target]
        return [ImportDecl(source=match.group("source"), names=names)]
    return []


_JS_MODIFIERS = r"(?:(?:public|private|protected|static|async|readonly|override|abstract|declare|get|set)\s+)*"
_JS_NOT_KEYWORD = r"(?!(?:if|for|while|switch|catch|return|with|new|function|typeof|await|yield|else|do)\b)"

TYPESCRIPT = Grammar(
    language=Language.TYPESCRIPT,
    lexical=LexicalRules(
        line_comment="//",
        block_comment=("/*", "*/"),
        string_delimiters=("`", '"', "'"),
        multiline_strings=frozenset({"`"}),
        regex_literals=True,
    ),
    block_style=BlockStyle.BRACES,
    export_rule=ExportRule.MARKER,
    import_starts=(
        re.compile(r"^\s*import\b(?!\s*[(.])"),
        re.compile(r"^\s*(?:const|let|var)\s+[^=\n]+=\s*require\s*\("),
    ),
    parse_import=parse_js_import,
    import_ends_at_newline=True,
    functions=(
        FunctionPattern(
            regex=re.compile(
                r"^\s*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:async\s+)?function\b\s*\*?\s*(?P<name>"
                + _JS_IDENT
                + r")?\s*(?=[(<])"
            ),
            terminators=("{", ";"),
        ),
        FunctionPattern(
            regex=re.compile(
                r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>"
                + _JS_IDENT
                + r")\s*(?::[^=\n]+)?=\s*(?:async\s+)?function\b"
            ),
            terminators=("{", ";"),
        ),
        FunctionPattern(
            regex=re.compile(
                r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>"
                + _JS_IDENT
                + r")\s*(?::[^=\n]+)?=\s*(?:async\s+)?(?=\(|<|"
                + _JS_IDENT
                + r"\s*=>)"
            ),
            terminators=("=>", ";"),
            stop_at_newline=True,
        ),
        FunctionPattern(
            regex=re.compile(
                r"^\s*" + _JS_MODIFIERS + r"\*?\s*" + _JS_NOT_KEYWORD + r"(?P<name>#?" + _JS_IDENT + r")\s*\??\s*(?:<[^>\n]*>)?\s*(?=\()"
            ),
            terminators=("{", ";"),
            methods_only=True,
        ),
        FunctionPattern(
            regex=re.compile(
                r"^\s*"
                + _JS_MODIFIERS
                + _JS_NOT_KEYWORD
                + r"(?P<name>#?"
                + _JS_IDENT
                + r")\s*(?::[^=\n]+)?=\s*(?:async\s+)?(?=\(|"
                + _JS_IDENT
                + r"\s*=>)"
            ),
            terminators=("=>", ";"),
            stop_at_newline=True,
            methods_only=True,
        ),
    ),
    types=(
        TypePattern(
            re.compile(
                r"^\s*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?class\s+(?P<name>" + _JS_IDENT + r")"
            ),
            "class",
        ),
        TypePattern(
            re.compile(r"^\s*(?:export\s+)?(?:declare\s+)?interface\s+(?P<name>" + _JS_IDENT + r")"),
            "interface",
        ),
        TypePattern(
            re.compile(r"^\s*(?:export\s+)?(?:declare\s+)?type\s+(?P<name>" + _JS_IDENT + r")\s*(?:<[^=\n]*>)?\s*="),
            "alias",
        ),
        TypePattern(
            re.compile(r"^\s*(?:export\s+)?(?:declare\s+)?(?:const\s+)?enum\s+(?P<name>" + _JS_IDENT + r")"),
            "enum",
        ),
    ),
    containers=(
        re.compile(
            r"^\s*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?class\s+(?P<name>" + _JS_IDENT + r")"
        ),
    ),
    declarations=(
        re.compile(r"^\s*(?:export\s+)?(?:declare\s+)?(?:const|let|var)\s+(?P<name>" + _JS_IDENT + r")"),
    ),
    export_marker=re.compile(r"^\s*export\s"),
    export_lists=(
        re.compile(r"^\s*export\s*\{(?P<names>[^}]*)\}(?!\s*from)", re.MULTILINE),
        re.compile(r"^\s*export\s+default\s+(?P<names>" + _JS_IDENT + r")\s*;?[ \t]*$", re.MULTILINE),
        re.compile(r"^\s*module\.exports\s*=\s*\{(?P<names>[^}]*)\}", re.MULTILINE),
        re.compile(r"^\s*module\.exports\s*=\s*(?P<names>" + _JS_IDENT + r")\s*;?[ \t]*$", re.MULTILINE),
        re.compile(r"^\s*(?:module\.)?exports\.(?P<names>" + _JS_IDENT + r")\s*=", re.MULTILINE),
    ),
    return_keyword=re.compile(r"\breturn\b"),
    complexity_keywords=re.compile(r"\b(?:if|for|while|do|case|catch)\b|&&|\|\|"),
    receivers=frozenset({"this"}),
)


# Python ----------------------------------------------------------------------

_PY_FROM = re.compile(r"^from\s+(?P<source>\S+)\s+import\s+(?P<names>.+)$", re.DOTALL)
_PY_IMPORT = re.compile(r"^import\s+(?P<modules>.+)$", re.DOTALL)
_PY_NOT_KEYWORD = (
    r"(?!(?:if|elif|else|for|while|with|try|except|finally|return|class|def|lambda|assert|del"
    r"|global|nonlocal|raise|yield|async|await|match|case|print)\b)"
)


def parse_python_import(statement: str) -> List[ImportDecl]:
    text = _normalise(statement.replace("\\\n", " "))
    match = _PY_FROM.match(text)
    if match:
        names_text = match.group("names").strip()
        if names_text.startswith("(") and names_text.endswith(")"):
            names_text = names_text[1:-1]
        names = [_normalise(item) for item in _split_top_level(names_text)]
        return [ImportDecl(source=match.group("source"), names=names)]
    match = _PY_IMPORT.match(text)
    if not match:
        return []
    decls: List[ImportDecl] = []
    for item in _split_top_level(match.group("modules")):
        item = _normalise(item)
        if " as " in item:
            module = item.split(" as ", 1)[0].strip()
            decls.append(ImportDecl(source=module, names=[item]))
        else:
            decls.append(ImportDecl(source=item, names=[]))
    return decls


def _python_class_kind(match: "re.Match[str]") -> str:
    bases = match.group("bases") or ""
    if re.search(r"\b\w*Enum\b|\bFlag\b", bases):
        return "enum"
    if re.search(r"\bProtocol\b|\bABC\b", bases):
        return "interface"
    if re.search(r"\bTypedDict\b|\bNamedTuple\b", bases):
        return "struct"
    return "class"


PYTHON = Grammar(
    language=Language.PYTHON,
    lexical=LexicalRules(
        line_comment="#",
        string_delimiters=('"""', "'''", '"', "'"),
        multiline_strings=frozenset({'"""', "'''"}),
    ),
    block_style=BlockStyle.INDENT,
    export_rule=ExportRule.DUNDER_ALL,
    import_starts=(
        re.compile(r"^\s*import\s"),
        re.compile(r"^\s*from\s+\S+\s+import\b"),
    ),
    parse_import=parse_python_import,
    import_ends_at_newline=True,
    functions=(
        FunctionPattern(
            regex=re.compile(r"^\s*(?:async\s+)?def\s+(?P<name>[A-Za-z_]\w*)"),
            terminators=(":",),
            stop_at_newline=True,
        ),
    ),
    types=(
        TypePattern(
            re.compile(r"^\s*class\s+(?P<name>[A-Za-z_]\w*)\s*(?:\[[^\]\n]*\])?\s*(?:\((?P<bases>[^)]*)\))?"),
            _python_class_kind,
        ),
        TypePattern(re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*:\s*(?:typing\.)?TypeAlias\s*="), "alias"),
        TypePattern(re.compile(r"^type\s+(?P<name>[A-Za-z_]\w*)\s*(?:\[[^\]\n]*\])?\s*="), "alias"),
    ),
    containers=(re.compile(r"^\s*class\s+(?P<name>[A-Za-z_]\w*)"),),
    declarations=(re.compile(r"^" + _PY_NOT_KEYWORD + r"(?P<name>[A-Za-z_]\w*)\s*(?::[^=\n]*)?=(?!=)"),),
    export_marker=None,
    export_lists=(
        re.compile(r"^__all__\s*(?::[^=\n]*)?\+?=\s*[\[(](?P<names>[^\])]*)[\])]", re.MULTILINE),
    ),
    return_keyword=re.compile(r"\breturn\b"),
    complexity_keywords=re.compile(r"\b(?:if|elif|for|while|except|and|or)\b"),
    receivers=frozenset({"self", "cls"}),
    continuation_brackets="([{",
)


GRAMMARS: Dict[Language, Grammar] = {
    Language.RUST: RUST,
    Language.TYPESCRIPT: TYPESCRIPT,
    Language.PYTHON: PYTHON,
}


def grammar_for(language: Language) -> Grammar:
    try:
        return GRAMMARS[language]
    except KeyError:
        raise ValueError(f"No grammar registered for {language.value}") from None


__all__ = [
    "BlockStyle",
    "ExportRule",
    "FunctionPattern",
    "GRAMMARS",
    "Grammar",
    "TypePattern",
    "grammar_for",
    "parse_js_import",
    "parse_python_import",
    "parse_rust_import",
]
