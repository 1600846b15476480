"""Rough token accounting for export payloads."""

from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"\w+|[^\w\s]")


def naive_token_count(text: str) -> int:
    """Count word runs and individual punctuation characters.

    Close enough to a subword tokenizer to compare two encodings of the
    same data.
    """
    return sum(1 for _ in _TOKEN_RE.finditer(text))


def reduction(structured: str, tabular: str) -> float:
    """Fraction of structured tokens saved by the tabular text (0..1)."""
    base = naive_token_count(structured)
    if base == 0:
        return 0.0
    return 1.0 - naive_token_count(tabular) / base
