"""Blanks comments and string literals while keeping source offsets intact."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class LexicalRules:
    """Comment and string syntax for one grammar."""

    line_comment: str
    block_comment: Optional[Tuple[str, str]] = None
    string_delimiters: Tuple[str, ...] = ('"', "'")
    multiline_strings: FrozenSet[str] = frozenset()
    char_literals: bool = False
    regex_literals: bool = False


# A slash after one of these starts a regex literal rather than a division.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};")
_REGEX_KEYWORDS = frozenset({"return", "typeof", "case", "delete", "void", "throw", "yield", "await", "in", "of"})


@dataclass
class MaskedSource:
    """Three views of the same text with identical offsets.

    ``code`` has comments and string contents replaced by spaces, ``stripped``
    only has comments removed. Newlines survive in every view so line numbers
    agree with ``raw``.
    """

    raw: str
    code: str
    stripped: str
    line_starts: List[int]
    literal_lines: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def line_count(self) -> int:
        return len(self.line_starts)

    def line_of(self, offset: int) -> int:
        return bisect_right(self.line_starts, offset) - 1

    def line_span(self, index: int) -> Tuple[int, int]:
        start = self.line_starts[index]
        end = self.raw.find("\n", start)
        if end == -1:
            end = len(self.raw)
        return start, end

    def code_line(self, index: int) -> str:
        start, end = self.line_span(index)
        return self.code[start:end]


def mask_source(text: str, rules: LexicalRules) -> MaskedSource:
    """Return the masked views of ``text`` for the given lexical rules."""
    code = list(text)
    stripped = list(text)
    literal_spans: List[Tuple[int, int]] = []
    length = len(text)
    index = 0

    while index < length:
        char = text[index]
        if rules.line_comment and text.startswith(rules.line_comment, index):
            end = text.find("\n", index)
            if end == -1:
                end = length
            _blank(code, index, end)
            _blank(stripped, index, end)
            index = end
            continue
        if rules.block_comment and text.startswith(rules.block_comment[0], index):
            opener, closer = rules.block_comment
            close_at = text.find(closer, index + len(opener))
            end = length if close_at == -1 else close_at + len(closer)
            _blank(code, index, end)
            _blank(stripped, index, end)
            literal_spans.append((index, end))
            index = end
            continue
        if rules.char_literals and char == "'":
            end = _char_literal_end(text, index)
            if end is not None:
                _blank(code, index + 1, end - 1)
                index = end
            else:
                # lifetime or label such as 'a
                index += 1
            continue
        if rules.regex_literals and char == "/" and _regex_allowed(code, index):
            end = _regex_end(text, index)
            if end is not None:
                _blank(code, index + 1, end - 1)
                index = end
                continue
        delimiter =_match_delimiter(text, index, rules.string_delimiters)
        if delimiter is not None:
            content_start = index + len(delimiter)
            end, closed = _string_end(
                text, content_start, delimiter, delimiter in rules.multiline_strings
            )
            content_end = end - len(delimiter) if closed else end
            _blank(code, content_start, content_end)
            literal_spans.append((index, end))
            index = end
            continue
        index += 1

    line_starts = [0]
    for position, char in enumerate(text):
        if char == "\n":
            line_starts.append(position + 1)

    return MaskedSource(
        raw=text,
        code="".join(code),
        stripped="".join(stripped),
        line_starts=line_starts,
        literal_lines=_lines_inside(literal_spans, line_starts),
    )


def _blank(chars: List[str], start: int, end: int) -> None:
    for position in range(start, min(end, len(chars))):
        if chars[position] != "\n":
            chars[position] = " "


def _match_delimiter(text: str, index: int, delimiters: Sequence[str]) -> Optional[str]:
    for delimiter in delimiters:
        if text.startswith(delimiter, index):
            return delimiter
    return None


def _string_end(text: str, start: int, delimiter: str, multiline: bool) -> Tuple[int, bool]:
    index = start
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if text.startswith(delimiter, index):
            return index + len(delimiter), True
        if char == "\n" and not multiline:
            return index, False
        index += 1
    return length, False


def _char_literal_end(text: str, index: int) -> Optional[int]:
    if index + 2 >= len(text):
        return None
    if text[index + 1] == "\\":
        close_at = text.find("'", index + 3)
        if close_at != -1 and close_at - index <= 12 and "\n" not in text[index:close_at]:
            return close_at + 1
        return None
    if text[index + 1] != "\n" and text[index + 2] == "'":
        return index + 3
    return None


def _regex_allowed(code: Sequence[str], index: int) -> bool:
    position = index - 1
    while position >= 0 and code[position] in " \t\r":
        position -= 1
    if position < 0 or code[position] == "\n":
        return True
    previous = code[position]
    if previous in _REGEX_PRECEDERS:
        return True
    if not (previous.isalnum() or previous in "_$"):
        return False
    word_end = position + 1
    while position >= 0 and (code[position].isalnum() or code[position] in "_$"):
        position -= 1
    return "".join(code[position + 1:word_end]) in _REGEX_KEYWORDS


def _regex_end(text: str, index: int) -> Optional[int]:
    """Offset just past the closing slash of the regex opened at ``index``."""
    position = index + 1
    in_class = False
    while position < len(text):
        char = text[position]
        if char == "\\":
            position += 2
            continue
        if char == "\n":
            return None
        if char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "/" and not in_class:
            return position + 1
        position += 1
    return None


def _lines_inside(spans: Sequence[Tuple[int, int]], line_starts: Sequence[int]) -> FrozenSet[int]:
    inside = set()
    for start, end in spans:
        first = bisect_right(line_starts, start)
        for line_index in range(first, len(line_starts)):
            if line_starts[line_index] >= end:
                break
            inside.add(line_index)
    return frozenset(inside)


__all__ = ["LexicalRules", "MaskedSource", "mask_source"]
