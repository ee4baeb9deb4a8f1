"""Prompt construction for function descriptions."""

from __future__ import annotations

from string import Formatter
from typing import Optional

from ..models import FunctionEntry
from .base import DescriptionRequest

SYSTEM_PROMPT = (
    "You summarize source code functions in one or two sentences. "
    "Describe what the function does and what it returns. "
    "Answer with plain prose, without markdown, code or a preamble."
)

DEFAULT_TEMPLATE = (
    "Language: {language}\n"
    "Function: {name}\n"
    "Signature: {signature}\n"
    "\n"
    "Body:\n"
    "{body}\n"
    "\n"
    "Summarize this function."
)

_TEMPLATE_FIELDS = frozenset({"language", "name", "signature", "body"})
_TRUNCATION_MARKER = "... ({count} more lines truncated)"


def validate_template(template: str) -> None:
    """Raise ValueError when ``template`` uses unknown or malformed placeholders."""
    try:
        fields = {field for _, field, _, _ in Formatter().parse(template) if field is not None}
    except ValueError as exc:
        raise ValueError(f"Malformed prompt template: {exc}") from exc
    unknown = sorted(fields - _TEMPLATE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown prompt placeholders: {', '.join(unknown)}")


def truncate_body(body: str, max_lines: int) -> str:
    lines = body.splitlines()
    if max_lines <= 0 or len(lines) <= max_lines:
        return body
    kept = lines[:max_lines]
    kept.append(_TRUNCATION_MARKER.format(count=len(lines) - max_lines))
    return "\n".join(kept)


def build_request(
    entry: FunctionEntry,
    language: str,
    *,
    max_body_lines: int = 200,
    template: Optional[str] = None,
) -> DescriptionRequest:
    body = truncate_body(entry.body, max_body_lines)
    prompt = (template or DEFAULT_TEMPLATE).format(
        language=language,
        name=entry.qualified_name,
        signature=entry.signature,
        body=body,
    )
    return DescriptionRequest(
        language=language,
        name=entry.qualified_name,
        signature=entry.signature,
        body=body,
        system=SYSTEM_PROMPT,
        prompt=prompt,
    )


__all__ = ["DEFAULT_TEMPLATE", "SYSTEM_PROMPT", "build_request", "truncate_body", "validate_template"]
