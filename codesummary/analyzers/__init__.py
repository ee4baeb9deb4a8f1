"""Language classification and structural extraction."""

from .extractor import ANONYMOUS, Extractor, extract
from .grammars import GRAMMARS, Grammar, grammar_for
from .language import SUPPORTED_LANGUAGES, Language, classify, parse_language_names

__all__ = [
    "ANONYMOUS",
    "Extractor",
    "GRAMMARS",
    "Grammar",
    "Language",
    "SUPPORTED_LANGUAGES",
    "classify",
    "extract",
    "grammar_for",
    "parse_language_names",
]
