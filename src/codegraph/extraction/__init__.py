"""Entity extraction: per-language patterns and syntax backends."""

from codegraph.extraction.adapter import ExtractionAdapter, FileExtraction
from codegraph.extraction.backends import (
    PythonAstBackend,
    RawEntity,
    RegexBackend,
    find_block_end,
    parse_params,
    split_params,
)
from codegraph.extraction.patterns import (
    EntityPattern,
    LanguagePatterns,
    PatternRegistry,
)

__all__ = [
    "EntityPattern",
    "ExtractionAdapter",
    "FileExtraction",
    "LanguagePatterns",
    "PatternRegistry",
    "PythonAstBackend",
    "RawEntity",
    "RegexBackend",
    "find_block_end",
    "parse_params",
    "split_params",
]
