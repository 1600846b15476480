"""Tabular encoding: one header row of field names, one line per record.

Values are written bare whenever that is unambiguous:

- None -> null, booleans -> true/false, numbers as-is
- lists and dicts -> compact JSON
- strings raw, unless empty, containing the delimiter, a quote, a
  control character or surrounding whitespace, starting with ``[`` or
  ``{``, or reading as null/true/false/a number; those are JSON-quoted

The decoder reverses this exactly, so a record list survives a round
trip unchanged whatever delimiter is chosen.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from codegraph.errors import CodeGraphError, ConfigurationError

DELIMITERS = (",", "\t", "|")

_NUMBER_RE = re.compile(r"^-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?$")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_LITERALS = {"null": None, "true": True, "false": False}


class TabularDecodeError(CodeGraphError, ValueError):
    """Tabular text does not match the header or cell grammar."""


def _check_delimiter(delimiter: str) -> None:
    if delimiter not in DELIMITERS:
        raise ConfigurationError(
            f"unsupported delimiter {delimiter!r}; use one of {DELIMITERS!r}"
        )


def needs_quotes(value: str, delimiter: str) -> bool:
    if not value or value != value.strip():
        return True
    if delimiter in value or '"' in value or _CONTROL_RE.search(value):
        return True
    if value[0] in "[{":
        return True
    return value in _LITERALS or _NUMBER_RE.match(value) is not None


def encode_value(value: Any, delimiter: str) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    text = str(value)
    if needs_quotes(text, delimiter):
        return json.dumps(text, ensure_ascii=False)
    return text


def encode_records(
    records: Sequence[Mapping[str, Any]],
    fields: Sequence[str] | None = None,
    delimiter: str = ",",
) -> str:
    """Encode records as a header row plus one row per record.

    ``fields`` fixes the column order; by default it is the union of the
    record keys in first-seen order. Missing values encode as null.
    """
    _check_delimiter(delimiter)
    if fields is None:
        fields = list(dict.fromkeys(k for r in records for k in r))
    lines = [delimiter.join(fields)]
    for record in records:
        lines.append(
            delimiter.join(
                encode_value(record.get(f), delimiter) for f in fields
            )
        )
    return "\n".join(lines)


def _scan_json(line: str, i: int) -> int:
    """Index just past the JSON string or container starting at i."""
    if line[i] == '"':
        j = i + 1
        while j < len(line):
            if line[j] == "\\":
                j += 2
                continue
            if line[j] == '"':
                return j + 1
            j += 1
        raise TabularDecodeError(f"unterminated string at column {i}")

    depth = 0
    in_string = False
    j = i
    while j < len(line):
        c = line[j]
        if in_string:
            if c == "\\":
                j += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c in "[{":
            depth += 1
        elif c in "]}":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    raise TabularDecodeError(f"unterminated container at column {i}")


def split_row(line: str, delimiter: str) -> list[str]:
    """Split a row into raw cells, keeping quoted/JSON cells intact."""
    cells: list[str] = []
    i = 0
    n = len(line)
    while True:
        if i < n and line[i] in '"[{':
            end = _scan_json(line, i)
        else:
            end = line.find(delimiter, i)
            if end == -1:
                end = n
        cells.append(line[i:end])
        if end >= n:
            return cells
        if line[end] != delimiter:
            raise TabularDecodeError(
                f"expected delimiter at column {end}, got {line[end]!r}"
            )
        i = end + 1
        if i == n:
            cells.append("")
            return cells


def decode_value(cell: str) -> Any:
    if not cell:
        return ""
    if cell[0] in '"[{':
        try:
            return json.loads(cell)
        except json.JSONDecodeError as e:
            raise TabularDecodeError(f"bad JSON cell {cell!r}: {e}") from e
    if cell in _LITERALS:
        return _LITERALS[cell]
    if _NUMBER_RE.match(cell):
        return json.loads(cell)
    return cell


def decode_records(text: str, delimiter: str = ",") -> list[dict[str, Any]]:
    """Inverse of encode_records."""
    _check_delimiter(delimiter)
    lines = text.rstrip("\n").split("\n")
    if not lines or not lines[0]:
        raise TabularDecodeError("missing header row")
    fields = lines[0].split(delimiter)
    return decode_rows(fields, lines[1:], delimiter)


def decode_rows(
    fields: Sequence[str], rows: Iterable[str], delimiter: str
) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for lineno, line in enumerate(rows, start=2):
        cells = split_row(line, delimiter)
        if len(cells) != len(fields):
            raise TabularDecodeError(
                f"row {lineno}: expected {len(fields)} cells, "
                f"got {len(cells)}"
            )
        records.append(
            {f: decode_value(c) for f, c in zip(fields, cells, strict=True)}
        )
    return records
