"""Filter predicates over relation columns.

Grammar::

    filter     := "ALL" | condition (("," | "AND") condition)*
    condition  := column op value
    op         := "=" | "==" | "!=" | "~"
    value      := 'quoted' | "quoted" | integer | true | false | null | word

``~`` is a substring match. ``=`` and ``!=`` treat null like any other
value (``future_action = null`` selects unchanged entities), and compile
to SQLite's null-safe ``IS`` / ``IS NOT`` so the SQL and in-memory
evaluations agree. In-memory equality also follows SQLite column
affinity: an unquoted integer equals the same digits in a TEXT column
(``file_path = 10``), and a numeric string equals an INTEGER column.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from codegraph.config import ALL
from codegraph.errors import ConfigurationError

ENTITY_COLUMNS: tuple[str, ...] = (
    "key",
    "current_code",
    "future_code",
    "interface_signature",
    "tdd_classification",
    "lsp_metadata",
    "current_ind",
    "future_ind",
    "future_action",
    "file_path",
    "language",
    "last_modified",
    "entity_type",
    "entity_class",
)
EDGE_COLUMNS: tuple[str, ...] = (
    "from_key",
    "to_key",
    "edge_type",
    "source_location",
)

_CONDITION_RE = re.compile(
    r"""\s*(?P<col>[A-Za-z_][A-Za-z0-9_]*)\s*
        (?P<op>==|!=|=|~)\s*
        (?P<val>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|[^,\s]+)\s*""",
    re.VERBOSE,
)
_SEPARATOR_RE = re.compile(r"\s*(?:,|\bAND\b)\s*", re.IGNORECASE)
_ESCAPE_RE = re.compile(r"\\(.)")
_INT_RE = re.compile(r"^-?\d+$")


def _affine(actual: Any, value: Any) -> Any:
    """Coerce value to the type SQLite would compare it as."""
    if isinstance(value, bool) or isinstance(actual, bool):
        return value
    if isinstance(actual, str) and isinstance(value, int):
        return str(value)
    if (
        isinstance(actual, int)
        and isinstance(value, str)
        and _INT_RE.match(value)
    ):
        return int(value)
    return value


@dataclass(frozen=True)
class Condition:
    column: str
    op: str
    value: Any

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.column)
        if self.op == "~":
            return actual is not None and str(self.value) in str(actual)
        equal = actual == _affine(actual, self.value)
        return equal if self.op == "=" else not equal

    def to_sql(self) -> tuple[str, Any]:
        if self.op == "~":
            return f"instr({self.column}, ?) > 0", str(self.value)
        sql_op = "IS" if self.op == "=" else "IS NOT"
        return f"{self.column} {sql_op} ?", self.value


@dataclass(frozen=True)
class Filter:
    """A parsed filter; an empty condition tuple selects everything."""

    text: str
    conditions: tuple[Condition, ...] = ()

    @property
    def is_all(self) -> bool:
        return not self.conditions

    def matches(self, row: Mapping[str, Any]) -> bool:
        return all(c.matches(row) for c in self.conditions)

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render as a WHERE clause body plus bound parameters."""
        if self.is_all:
            return "1", []
        clauses: list[str] = []
        params: list[Any] = []
        for cond in self.conditions:
            clause, param = cond.to_sql()
            clauses.append(clause)
            params.append(param)
        return " AND ".join(clauses), params


def _convert(raw: str) -> Any:
    if raw[0] in ("'", '"') and raw[-1] == raw[0] and len(raw) >= 2:
        return _ESCAPE_RE.sub(r"\1", raw[1:-1])
    lowered = raw.lower()
    if lowered == "null":
        return None
    if lowered == "true":
        return 1
    if lowered == "false":
        return 0
    if _INT_RE.match(raw):
        return int(raw)
    return raw


def parse_filter(text: str | None, columns: Sequence[str]) -> Filter:
    """Parse a filter string against the given relation columns.

    Raises:
        ConfigurationError: the filter is missing, malformed or names an
            unknown column.
    """
    if text is None or not text.strip():
        raise ConfigurationError(
            f"a filter is required; use {ALL!r} to select everything"
        )
    stripped = text.strip()
    if stripped.upper() == ALL:
        return Filter(text=ALL)

    conditions: list[Condition] = []
    pos = 0
    while True:
        m = _CONDITION_RE.match(stripped, pos)
        if not m:
            raise ConfigurationError(
                f"malformed filter {text!r} at position {pos}"
            )
        column = m["col"]
        if column not in columns:
            raise ConfigurationError(
                f"unknown column {column!r} in filter; "
                f"expected one of: {', '.join(columns)}"
            )
        op = "=" if m["op"] == "==" else m["op"]
        conditions.append(Condition(column, op, _convert(m["val"])))
        pos = m.end()
        if pos >= len(stripped):
            break
        sep = _SEPARATOR_RE.match(stripped, pos)
        if not sep or sep.end() == pos:
            raise ConfigurationError(
                f"malformed filter {text!r} at position {pos}"
            )
        pos = sep.end()

    return Filter(text=stripped, conditions=tuple(conditions))


def entity_filter(text: str | None) -> Filter:
    return parse_filter(text, ENTITY_COLUMNS)


def edge_filter(text: str | None) -> Filter:
    return parse_filter(text, EDGE_COLUMNS)
