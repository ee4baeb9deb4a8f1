"""Single-pass structural scanner shared by every grammar.

The scanner walks the masked view of a file line by line. Each line is tested
against the grammar tables in a fixed order (imports, types, containers,
functions, declarations) and the block structure is tracked with a stack of
open scopes so that methods and nested functions get a parent.
"""

from __future__ import annotations

import hashlib
import re
import textwrap
from dataclasses import dataclass
from logging import Logger
from typing import Iterable, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import FileModel, FunctionEntry, TypeDecl
from .grammars import BlockStyle, ExportRule, FunctionPattern, Grammar, grammar_for
from .language import Language
from .masking import MaskedSource, mask_source

ANONYMOUS = "<anonymous>"

_MAX_HEADER = 4000
_CLOSERS = {"(": ")", "[": "]", "{": "}"}


@dataclass
class _Scope:
    kind: str
    name: str
    end: int
    indent: int


@dataclass
class _FunctionSpan:
    entry: FunctionEntry
    start: int
    end: int


class Extractor:
    """Turns source text into a :class:`FileModel`."""

    def __init__(self) -> None:
        self.logger = get_logger("extractor")

    def extract(self, path: str, text: str, language: Language) -> FileModel:
        grammar = grammar_for(language)
        return _FileScan(path, text, grammar, self.logger).run()


def extract(path: str, text: str, language: Language) -> FileModel:
    """Convenience wrapper around :meth:`Extractor.extract`."""
    return Extractor().extract(path, text, language)


class _FileScan:
    def __init__(self, path: str, text: str, grammar: Grammar, logger: Logger) -> None:
        self.path = path
        self.grammar = grammar
        self.logger = logger
        self.source: MaskedSource = mask_source(text, grammar.lexical)
        self.model = FileModel(path=path, language=grammar.language.value)
        self.scopes: List[_Scope] = []
        self.spans: List[_FunctionSpan] = []
        self.top_names: List[Tuple[int, str]] = []
        self.marked: List[Tuple[int, str]] = []
        self.brace_depths, self.bracket_depths = self._line_depths()

    # -- driver ----------------------------------------------------------

    def run(self) -> FileModel:
        index = 0
        while index < self.source.line_count:
            index = self._scan_line(index)
        self._finish_functions()
        self._resolve_exports()
        return self.model

    def _scan_line(self, index: int) -> int:
        if self._is_continuation(index):
            return index + 1
        line = self.source.code_line(index)
        if not line.strip():
            return index + 1
        start, _ = self.source.line_span(index)
        self._close_scopes(start, line)
        top_level = self._is_top_level(index, line)

        if not any(scope.kind == "function" for scope in self.scopes):
            resume = self._scan_import(start, line)
            if resume is not None:
                return resume

        typed = self._scan_types(start, line, top_level)
        if self._scan_containers(start, line):
            return index + 1
        if self._scan_function(index, start, line, top_level):
            return index + 1
        if top_level and not typed:
            self._scan_declaration(start, line)
        return index + 1

    # -- structure -------------------------------------------------------

    def _line_depths(self) -> Tuple[List[int], List[int]]:
        openers = self.grammar.continuation_brackets
        closers = "".join(_CLOSERS[char] for char in openers)
        braces_count = self.grammar.block_style is BlockStyle.BRACES
        brace_depths = [0] * self.source.line_count
        bracket_depths = [0] * self.source.line_count
        # Open brackets per enclosing block; a block opened inside a call
        # starts a fresh count so its statements are scanned again.
        open_brackets = [0]
        line = 0
        for char in self.source.code:
            if char == "\n":
                line += 1
                brace_depths[line] = len(open_brackets) - 1
                bracket_depths[line] = open_brackets[-1]
            elif char in openers:
                open_brackets[-1] += 1
            elif char in closers:
                open_brackets[-1] = max(open_brackets[-1] - 1, 0)
            elif braces_count and char == "{":
                open_brackets.append(0)
            elif braces_count and char == "}" and len(open_brackets) > 1:
                open_brackets.pop()
        return brace_depths, bracket_depths

    def _is_continuation(self, index: int) -> bool:
        if index in self.source.literal_lines or self.bracket_depths[index] > 0:
            return True
        if index == 0:
            return False
        return self.source.code_line(index - 1).rstrip().endswith("\\")

    def _is_top_level(self, index: int, line: str) -> bool:
        if self.grammar.block_style is BlockStyle.BRACES:
            return self.brace_depths[index] == 0
        return _indent(line) == 0

    def _close_scopes(self, start: int, line: str) -> None:
        if self.grammar.block_style is BlockStyle.BRACES:
            while self.scopes and self.scopes[-1].end <= start:
                self.scopes.pop()
            return
        indent = _indent(line)
        while self.scopes and self.scopes[-1].indent >= indent:
            self.scopes.pop()

    def _match_brace(self, open_at: int) -> int:
        code = self.source.code
        depth = 0
        for position in range(open_at, len(code)):
            char = code[position]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return position + 1
        self.logger.debug("Unbalanced block in %s at offset %d", self.path, open_at)
        return len(code)

    def _find_block(self, position: int) -> Optional[int]:
        code = self.source.code
        limit = min(len(code), position + _MAX_HEADER)
        depth = 0
        for index in range(position, limit):
            char = code[index]
            if char in "([":
                depth += 1
            elif char in ")]":
                depth = max(depth - 1, 0)
            elif depth == 0 and char == "{":
                return index
            elif depth == 0 and char == ";":
                return None
        return None

    # -- imports ---------------------------------------------------------

    def _scan_import(self, start: int, line: str) -> Optional[int]:
        if not any(pattern.match(line) for pattern in self.grammar.import_starts):
            return None
        end = self._statement_end(start)
        statement = self.source.stripped[start:end].strip()
        decls = self.grammar.parse_import(statement)
        if not decls:
            self.logger.debug("Unrecognised import in %s: %s", self.path, statement[:80])
        self.model.imports.extend(decls)
        return self.source.line_of(max(end - 1, start)) + 1

    def _statement_end(self, start: int) -> int:
        code = self.source.code
        limit = min(len(code), start + _MAX_HEADER)
        depth = 0
        for position in range(start, limit):
            char = code[position]
            if char in "([{":
                depth += 1
            elif char in ")]}":
                depth = max(depth - 1, 0)
            elif char == ";" and depth == 0:
                return position + 1
            elif (
                char == "\n"
                and depth == 0
                and self.grammar.import_ends_at_newline
                and not code[start:position].rstrip().endswith("\\")
            ):
                return position
        return limit

    # -- declarations ----------------------------------------------------

    def _scan_types(self, start: int, line: str, top_level: bool) -> bool:
        for pattern in self.grammar.types:
            match = pattern.regex.match(line)
            if not match:
                continue
            name = match.group("name")
            self.model.types.append(TypeDecl(name=name, kind=pattern.kind_for(match)))
            if top_level and not self._inside_function():
                self._record_top_level(start, name, line)
            return True
        return False

    def _scan_containers(self, start: int, line: str) -> bool:
        for regex in self.grammar.containers:
            match = regex.match(line)
            if not match:
                continue
            name = match.group("name")
            if self.grammar.block_style is BlockStyle.INDENT:
                self.scopes.append(_Scope("type", name, -1, _indent(line)))
                return True
            open_at = self._find_block(start + match.end())
            if open_at is None:
                return False
            self.scopes.append(_Scope("type", name, self._match_brace(open_at), _indent(line)))
            return True
        return False

    def _scan_declaration(self, start: int, line: str) -> None:
        for regex in self.grammar.declarations:
            match = regex.match(line)
            if not match:
                continue
            name = match.group("name")
            if name.startswith("__") and name.endswith("__"):
                return
            if name not in self.model.declarations:
                self.model.declarations.append(name)
            self._record_top_level(start, name, line)
            return

    def _record_top_level(self, start: int, name: str, line: str) -> None:
        self.top_names.append((start, name))
        marker = self.grammar.export_marker
        if marker is not None and marker.match(line):
            self.marked.append((start, name))

    def _inside_function(self) -> bool:
        return any(scope.kind == "function" for scope in self.scopes)

    # -- functions -------------------------------------------------------

    def _scan_function(self, index: int, start: int, line: str, top_level: bool) -> bool:
        for pattern in self.grammar.functions:
            if pattern.methods_only and not (self.scopes and self.scopes[-1].kind == "type"):
                continue
            match = pattern.regex.match(line)
            if not match:
                continue
            is_arrow = "=>" in pattern.terminators
            header = self._read_header(start + match.end(), pattern)
            if header is None or header[0] == ";":
                if is_arrow:
                    continue
                self.logger.debug(
                    "Skipping bodiless function on line %d of %s", index + 1, self.path
                )
                return True
            terminator, term_at = header
            body_end = self._body_end(index, line, terminator, term_at)
            name = match.group("name") or ANONYMOUS
            self._add_function(
                index=index,
                start=start,
                line=line,
                name=name,
                params_text=self.source.code[start + match.end():term_at],
                signature_end=term_at + (len(terminator) if terminator == "=>" else 0),
                body_end=body_end,
                top_level=top_level,
            )
            return True
        return False

    def _read_header(self, position: int, pattern: FunctionPattern) -> Optional[Tuple[str, int]]:
        code = self.source.code
        limit = min(len(code), position + _MAX_HEADER)
        depth = 0
        for index in range(position, limit):
            char = code[index]
            if char in "([":
                depth += 1
            elif char in ")]":
                depth = max(depth - 1, 0)
            elif depth == 0:
                if char == "\n" and pattern.stop_at_newline and not code[:index].rstrip(" \t").endswith("\\"):
                    return None
                for terminator in pattern.terminators:
                    if code.startswith(terminator, index):
                        return terminator, index
        return None

    def _body_end(self, index: int, line: str, terminator: str, term_at: int) -> int:
        if terminator == "{":
            return self._match_brace(term_at)
        if terminator == "=>":
            return self._expression_end(term_at + 2)
        return self._indented_body_end(term_at, _indent(line))

    def _expression_end(self, position: int) -> int:
        code = self.source.code
        length = len(code)
        while position < length and code[position] in " \t\r\n":
            position += 1
        if position < length and code[position] == "{":
            return self._match_brace(position)
        depth = 0
        while position < length:
            char = code[position]
            if char in "([{":
                depth += 1
            elif char in ")]}":
                if depth == 0:
                    return position
                depth -= 1
            elif char == ";" and depth == 0:
                return position + 1
            elif char == "\n" and depth == 0:
                return position
            position += 1
        return length

    def _indented_body_end(self, term_at: int, header_indent: int) -> int:
        header_line = self.source.line_of(term_at)
        _, end = self.source.line_span(header_line)
        if self.source.code[term_at + 1:end].strip():
            return end
        for index in range(header_line + 1, self.source.line_count):
            text = self.source.code_line(index)
            if self._is_continuation(index):
                end = self.source.line_span(index)[1]
                continue
            if not text.strip():
                continue
            if _indent(text) <= header_indent:
                break
            end = self.source.line_span(index)[1]
        return end

    def _add_function(
        self,
        *,
        index: int,
        start: int,
        line: str,
        name: str,
        params_text: str,
        signature_end: int,
        body_end: int,
        top_level: bool,
    ) -> None:
        statement_start = start + _indent_width(line)
        signature = " ".join(self.source.stripped[statement_start:signature_end].split())
        body = _normalise_body(self.source.raw[start:body_end])
        parent = self.scopes[-1].name if self.scopes else None
        language = self.grammar.language.value
        entry = FunctionEntry(
            name=name,
            signature=signature,
            return_points=0,
            body_hash=hashlib.sha256(f"{language}\n{body}".encode("utf-8")).hexdigest(),
            parent=parent,
            line=index + 1,
            lines_of_code=len(body.splitlines()),
            parameters=_count_parameters(params_text, self.grammar.receivers),
            body=body,
        )
        self.model.functions.append(entry)
        self.spans.append(_FunctionSpan(entry, start, body_end))
        if top_level and parent is None and name != ANONYMOUS:
            self._record_top_level(start, name, line)
        self.scopes.append(_Scope("function", name, body_end, _indent(line)))

    def _finish_functions(self) -> None:
        code = self.source.code
        for span in self.spans:
            holes = _merge(
                (other.start, other.end)
                for other in self.spans
                if other is not span and span.start <= other.start and other.end <= span.end
                and (other.start, other.end) != (span.start, span.end)
            )
            returns = self.grammar.return_keyword.finditer(code, span.start, span.end)
            branches = self.grammar.complexity_keywords.finditer(code, span.start, span.end)
            span.entry.return_points = _count_outside(returns, holes)
            span.entry.complexity = 1 + _count_outside(branches, holes)

    # -- exports ---------------------------------------------------------

    def _resolve_exports(self) -> None:
        declared = self.model.top_level_names()
        listed = self._listed_exports()
        if self.grammar.export_rule is ExportRule.DUNDER_ALL:
            if listed is None:
                candidates = [(offset, name) for offset, name in self.top_names if not name.startswith("_")]
            else:
                candidates = listed
        else:
            candidates = sorted(self.marked + (listed or []), key=lambda item: item[0])
        exports: List[str] = []
        for _, name in candidates:
            if name in declared and name not in exports:
                exports.append(name)
            elif name not in declared:
                self.logger.debug("Ignoring export of undeclared name %s in %s", name, self.path)
        self.model.exports = exports

    def _listed_exports(self) -> Optional[List[Tuple[int, str]]]:
        found: Optional[List[Tuple[int, str]]] = None
        for regex in self.grammar.export_lists:
            for match in regex.finditer(self.source.stripped):
                if found is None:
                    found = []
                for item in match.group("names").split(","):
                    name = item.strip().strip("'\"").strip()
                    if name.startswith("type "):
                        name = name[5:].strip()
                    name = name.split(" as ", 1)[0].split(":", 1)[0].strip()
                    if name:
                        found.append((match.start(), name))
        return found


def _indent(line: str) -> int:
    expanded = line.expandtabs(8)
    return len(expanded) - len(expanded.lstrip())


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip())


def _normalise_body(text: str) -> str:
    lines = [line.rstrip() for line in textwrap.dedent(text).splitlines()]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


def _merge(spans: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start < merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _count_outside(matches: Iterable["re.Match[str]"], holes: Sequence[Tuple[int, int]]) -> int:
    return sum(1 for match in matches if not any(lo <= match.start() < hi for lo, hi in holes))


def _count_parameters(header: str, receivers: Sequence[str]) -> int:
    text = header.strip()
    if text.startswith("<"):
        depth = 0
        for position, char in enumerate(text):
            if char == "<":
                depth += 1
            elif char == ">":
                depth -= 1
                if depth == 0:
                    text = text[position + 1:]
                    break
    open_at = text.find("(")
    if open_at == -1:
        # single-parameter arrow function such as ``x => x * 2``
        return 1 if text.strip() else 0
    depth = 0
    close_at = len(text)
    for position in range(open_at, len(text)):
        char = text[position]
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
            if depth == 0:
                close_at = position
                break
    params: List[str] = []
    current: List[str] = []
    depth = 0
    for char in text[open_at + 1:close_at]:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(depth - 1, 0)
        if char == "," and depth == 0:
            params.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    params.append("".join(current).strip())
    params = [param for param in params if param and param not in {"*", "/"}]
    if params:
        first = params[0].split(":", 1)[0].replace("&", " ").split()
        if first and first[-1] in receivers:
            params = params[1:]
    return len(params)


__all__ = ["ANONYMOUS", "Extractor", "extract"]
