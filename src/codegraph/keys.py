"""Entity addressing: stable keys for code entities.

Two key formats exist:
- line keys (entity exists on disk):
  {language}:{kind}:{name}:{sanitized_path}:{start}-{end}
- hash keys (proposed create, no location yet):
  {sanitized_path}-{description}-{kind}-{short_hash}

Sanitized paths replace separators and dots with underscores
(src/lib.rs -> src_lib_rs). Desanitizing looks for a known extension
suffix at the end, restores its dot and turns the remaining underscores
back into separators.
"""

from __future__ import annotations

import hashlib
import re
import struct
from dataclasses import dataclass

from codegraph.entities import LineRange
from codegraph.errors import AddressingError

DEFAULT_PERSON = b"codegraph"

KIND_ABBREVIATIONS: dict[str, str] = {
    "function": "fn",
    "method": "method",
    "struct": "struct",
    "class": "class",
    "enum": "enum",
    "trait": "trait",
    "interface": "interface",
    "impl": "impl",
    "module": "mod",
    "macro": "macro",
    "proc_macro": "proc_macro",
    "test": "test",
    "variable": "var",
    "constant": "const",
    "type_alias": "type",
    "field": "field",
}
_KIND_EXPANSIONS = {v: k for k, v in KIND_ABBREVIATIONS.items()}

# matched against the sanitized path's tail, longest first
KNOWN_EXTENSIONS: tuple[str, ...] = tuple(
    sorted(
        {
            "rs",
            "py",
            "pyi",
            "js",
            "jsx",
            "mjs",
            "cjs",
            "ts",
            "tsx",
            "go",
            "java",
            "kt",
            "cpp",
            "cc",
            "hpp",
            "c",
            "h",
            "cs",
            "rb",
            "php",
            "swift",
            "scala",
        },
        key=lambda ext: (-len(ext), ext),
    )
)

_LINE_KEY_RE = re.compile(
    r"^(?P<language>[^:]+):(?P<kind>[^:]+):(?P<name>.+)"
    r":(?P<path>[^:]+):(?P<start>\d+)-(?P<end>\d+)$"
)
_HASH_RE = re.compile(r"^[0-9A-Za-z]+$")
_DESCRIPTION_RE = re.compile(r"[^0-9A-Za-z_]+")


def hash64(key: str, person: bytes = DEFAULT_PERSON) -> int:
    """Compute a 64-bit BLAKE2b hash of a key string."""
    h = hashlib.blake2b(
        key.encode("utf-8"),
        digest_size=8,
        person=person.ljust(16, b"\x00"),
    )
    return struct.unpack("<Q", h.digest())[0]


def kind_abbrev(kind: str) -> str:
    """Short kind tag used inside keys (function -> fn)."""
    kind = kind.strip().lower()
    return KIND_ABBREVIATIONS.get(kind, kind)


def expand_kind(abbrev: str) -> str:
    """Inverse of kind_abbrev (fn -> function); unknown tags pass through."""
    return _KIND_EXPANSIONS.get(abbrev, abbrev)


def sanitize_path(path: str) -> str:
    return path.replace("/", "_").replace("\\", "_").replace(".", "_")


def desanitize_path(sanitized: str) -> str:
    """Reverse sanitize_path for paths ending in a known extension."""
    for ext in KNOWN_EXTENSIONS:
        suffix = f"_{ext}"
        if sanitized.endswith(suffix) and len(sanitized) > len(suffix):
            base = sanitized[: -len(suffix)]
            return f"{base.replace('_', '/')}.{ext}"
    return sanitized.replace("_", "/")


def line_key(
    language: str,
    kind: str,
    name: str,
    file_path: str,
    line_range: LineRange | tuple[int, int],
) -> str:
    """Construct a line-based entity key.

    Format: {language}:{kind}:{name}:{sanitized_path}:{start}-{end}
    """
    if not name:
        raise AddressingError(name, "entity name is empty")
    if not language or ":" in language:
        raise AddressingError(language, "language tag is empty or has ':'")
    if not isinstance(line_range, LineRange):
        try:
            line_range = LineRange(*line_range)
        except ValueError as e:
            raise AddressingError(f"{name}@{file_path}", str(e)) from e
    return (
        f"{language.lower()}:{kind_abbrev(kind)}:{name}:"
        f"{sanitize_path(file_path)}:{line_range.start}-{line_range.end}"
    )


def short_description(name: str) -> str:
    desc = _DESCRIPTION_RE.sub("_", name).strip("_")
    return desc or "entity"


def hash_key(
    file_path: str,
    name: str,
    kind: str,
    salt: str | None = None,
) -> str:
    """Construct a hash-based key for an entity with no location yet.

    Format: {sanitized_path}-{description}-{kind}-{short_hash}

    Without a salt the key is a pure function of its inputs, so proposing
    the same entity twice yields the same key.
    """
    if not name:
        raise AddressingError(name, "entity name is empty")
    digest = hash64("\x00".join((file_path, name, kind, salt or "")))
    short_hash = f"{digest:016x}"[:8]
    return (
        f"{sanitize_path(file_path)}-{short_description(name)}"
        f"-{kind_abbrev(kind)}-{short_hash}"
    )


@dataclass(frozen=True)
class ParsedKey:
    """Components recovered from an entity key."""

    key: str
    format: str  # "line" or "hash"
    sanitized_path: str
    file_path: str
    name: str
    kind: str
    language: str | None = None
    line_range: LineRange | None = None
    short_hash: str | None = None


def is_line_key(key: str) -> bool:
    return _LINE_KEY_RE.match(key) is not None


def parse_key(key: str) -> ParsedKey:
    """Parse a line or hash key back into its components.

    Raises:
        AddressingError: if the key matches neither format.
    """
    if not key:
        raise AddressingError(key, "key is empty")

    m = _LINE_KEY_RE.match(key)
    if m:
        start, end = int(m["start"]), int(m["end"])
        try:
            line_range = LineRange(start, end)
        except ValueError as e:
            raise AddressingError(key, str(e)) from e
        return ParsedKey(
            key=key,
            format="line",
            sanitized_path=m["path"],
            file_path=desanitize_path(m["path"]),
            name=m["name"],
            kind=m["kind"],
            language=m["language"],
            line_range=line_range,
        )

    if ":" in key:
        raise AddressingError(
            key, "expected {language}:{kind}:{name}:{path}:{start}-{end}"
        )

    parts = key.rsplit("-", 3)
    if len(parts) != 4 or not all(parts):
        raise AddressingError(
            key, "expected {path}-{description}-{kind}-{hash}"
        )
    sanitized, desc, kind, short_hash = parts
    if not _HASH_RE.match(short_hash):
        raise AddressingError(key, f"bad hash segment {short_hash!r}")
    return ParsedKey(
        key=key,
        format="hash",
        sanitized_path=sanitized,
        file_path=desanitize_path(sanitized),
        name=desc,
        kind=kind,
        short_hash=short_hash,
    )
