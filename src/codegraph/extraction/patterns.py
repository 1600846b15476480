"""Per-language extraction patterns.

A PatternRegistry maps a language tag to its LanguagePatterns. The
registry is plain configuration: build it once (built-ins, optionally
overlaid with a YAML file) and pass it to the adapter that needs it.

Entity patterns are regular expressions run in MULTILINE mode over a
whole file. Named groups the regex backend understands:

    name      entity name (required)
    vis       visibility keyword(s)
    async     present when the entity is async
    unsafe    present when the entity is unsafe
    generics  generic parameter list
    params    raw parameter list
    ret       return type
    receiver  Go method receiver
    trait     trait being implemented (Rust impl blocks)
    bases     superclass / extended interfaces
    impls     implemented interfaces
    test_call JS/TS test block function (describe, it, test)
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from codegraph.errors import ConfigurationError

logger = structlog.get_logger(__name__)

CONTAINER_KINDS = frozenset({"class", "impl", "trait", "interface"})

_COMMON_KEYWORDS = frozenset(
    {"if", "else", "for", "while", "switch", "match", "return", "catch"}
)


@dataclass
class EntityPattern:
    kind: str
    pattern: str
    # "container": only kept when nested inside a class/impl/trait
    scope: str | None = None
    compiled: re.Pattern[str] | None = field(default=None, repr=False)

    def regex(self) -> re.Pattern[str]:
        if self.compiled is None:
            try:
                self.compiled = re.compile(self.pattern, re.MULTILINE)
            except re.error as e:
                raise ConfigurationError(
                    f"bad {self.kind} pattern {self.pattern!r}: {e}"
                ) from e
        return self.compiled


@dataclass
class LanguagePatterns:
    language: str
    extensions: list[str]
    entities: list[EntityPattern] = field(default_factory=list)
    # "colon" (name: Type), "space_after" (name Type),
    # "space_before" (Type name), "bare" (name)
    param_style: str = "colon"
    attribute_prefixes: list[str] = field(default_factory=list)
    doc_prefixes: list[str] = field(default_factory=list)
    keywords: frozenset[str] = _COMMON_KEYWORDS
    default_visibility: str = "public"
    public_keywords: list[str] = field(default_factory=lambda: ["public"])
    exported_by_case: bool = False
    # Python has no regex patterns; its backend walks the ast instead
    backend: str = "regex"

    def visibility(self, name: str, vis: str | None) -> str:
        if self.exported_by_case:
            return "public" if name[:1].isupper() else "private"
        if vis:
            vis = vis.strip()
            if any(vis.startswith(k) for k in self.public_keywords):
                return "crate" if "crate" in vis else "public"
            return vis.split()[0]
        return self.default_visibility


def _p(kind: str, pattern: str, scope: str | None = None) -> EntityPattern:
    return EntityPattern(kind=kind, pattern=pattern, scope=scope)


_RUST_VIS = r"(?P<vis>pub(?:\([^)]*\))?\s+)?"

RUST = LanguagePatterns(
    language="rust",
    extensions=[".rs"],
    entities=[
        _p(
            "function",
            rf"^[ \t]*{_RUST_VIS}(?:default\s+)?(?:const\s+)?"
            r"(?P<async>async\s+)?(?P<unsafe>unsafe\s+)?"
            r'(?:extern\s+"[^"]*"\s+)?fn\s+(?P<name>\w+)'
            r"(?P<generics><[^(]*>)?\s*\((?P<params>[^)]*)\)"
            r"(?:\s*->\s*(?P<ret>[^{;]+?))?\s*(?:where\s[^{;]*)?[{;]",
        ),
        _p("struct", rf"^[ \t]*{_RUST_VIS}struct\s+(?P<name>\w+)"),
        _p("enum", rf"^[ \t]*{_RUST_VIS}enum\s+(?P<name>\w+)"),
        _p(
            "trait",
            rf"^[ \t]*{_RUST_VIS}(?P<unsafe>unsafe\s+)?trait\s+"
            r"(?P<name>\w+)",
        ),
        _p(
            "impl",
            r"^[ \t]*(?P<unsafe>unsafe\s+)?impl(?P<generics><[^>]*>)?\s+"
            r"(?:(?P<trait>[\w:]+)(?:<[^>]*>)?\s+for\s+)?"
            r"(?P<name>[\w:]+)",
        ),
        _p("module", rf"^[ \t]*{_RUST_VIS}mod\s+(?P<name>\w+)\s*\{{"),
        _p("macro", r"^[ \t]*macro_rules!\s*(?P<name>\w+)"),
        _p(
            "constant",
            rf"^[ \t]*{_RUST_VIS}(?:const|static)\s+(?:mut\s+)?"
            r"(?P<name>[A-Z_][A-Z0-9_]*)\s*:",
        ),
    ],
    param_style="colon",
    attribute_prefixes=["#["],
    doc_prefixes=["///", "//!"],
    keywords=_COMMON_KEYWORDS
    | {"fn", "loop", "Some", "Ok", "Err", "Box", "Vec", "String"},
    default_visibility="private",
    public_keywords=["pub"],
)

_TS_FUNCTION = _p(
    "function",
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?P<async>async\s+)?"
    r"function\s*\*?\s*(?P<name>\w+)\s*(?P<generics><[^>(]*>)?\s*"
    r"\((?P<params>[^)]*)\)(?:\s*:\s*(?P<ret>[^{]+?))?\s*\{",
)
_TS_ARROW = _p(
    "function",
    r"^[ \t]*(?:export\s+)?(?:const|let)\s+(?P<name>\w+)\s*"
    r"(?::[^=\n]+)?=\s*(?P<async>async\s+)?"
    r"\((?P<params>[^)]*)\)\s*(?::\s*(?P<ret>[^=\n]+?))?\s*=>",
)
_TS_CLASS = _p(
    "class",
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+"
    r"(?P<name>\w+)(?P<generics><[^>]*>)?"
    r"(?:\s+extends\s+(?P<bases>[\w.]+)(?:<[^>]*>)?)?"
    r"(?:\s+implements\s+(?P<impls>[\w.,\s]+?))?\s*\{",
)
_TS_METHOD = _p(
    "method",
    r"^[ \t]+(?P<vis>(?:public|private|protected)\s+)?"
    r"(?:static\s+|readonly\s+|override\s+)*(?P<async>async\s+)?"
    r"(?P<name>\w+)\s*(?P<generics><[^>(]*>)?\s*\((?P<params>[^)]*)\)"
    r"(?:\s*:\s*(?P<ret>[^{;]+?))?\s*\{",
    scope="container",
)
_TS_TEST = _p(
    "test",
    r"^[ \t]*(?P<test_call>describe|it|test)(?:\.\w+)?\s*\(\s*"
    r"(?P<quote>['\"`])(?P<name>.+?)(?P=quote)",
)

JAVASCRIPT = LanguagePatterns(
    language="javascript",
    extensions=[".js", ".jsx", ".mjs", ".cjs"],
    entities=[_TS_FUNCTION, _TS_ARROW, _TS_CLASS, _TS_METHOD, _TS_TEST],
    param_style="colon",
    doc_prefixes=["//", "/**", "*"],
    keywords=_COMMON_KEYWORDS | {"function", "super", "new"},
)

TYPESCRIPT = LanguagePatterns(
    language="typescript",
    extensions=[".ts", ".tsx"],
    entities=[
        _TS_FUNCTION,
        _TS_ARROW,
        _TS_CLASS,
        _TS_METHOD,
        _TS_TEST,
        _p(
            "interface",
            r"^[ \t]*(?:export\s+)?interface\s+(?P<name>\w+)"
            r"(?P<generics><[^>]*>)?(?:\s+extends\s+(?P<bases>[^{]+?))?"
            r"\s*\{",
        ),
        _p(
            "enum",
            r"^[ \t]*(?:export\s+)?(?:const\s+)?enum\s+(?P<name>\w+)",
        ),
    ],
    param_style="colon",
    attribute_prefixes=["@"],
    doc_prefixes=["//", "/**", "*"],
    keywords=_COMMON_KEYWORDS | {"function", "super", "new"},
)

GO = LanguagePatterns(
    language="go",
    extensions=[".go"],
    entities=[
        _p(
            "function",
            r"^func\s+(?P<name>\w+)\s*(?P<generics>\[[^\]]*\])?\s*"
            r"\((?P<params>[^)]*)\)\s*(?P<ret>[^{\n]*?)\s*\{",
        ),
        _p(
            "method",
            r"^func\s*\((?P<receiver>[^)]*)\)\s*(?P<name>\w+)\s*"
            r"\((?P<params>[^)]*)\)\s*(?P<ret>[^{\n]*?)\s*\{",
        ),
        _p("struct", r"^type\s+(?P<name>\w+)(?:\[[^\]]*\])?\s+struct\b"),
        _p("interface", r"^type\s+(?P<name>\w+)\s+interface\b"),
    ],
    param_style="space_after",
    doc_prefixes=["//"],
    keywords=_COMMON_KEYWORDS | {"func", "make", "len", "append", "go"},
    exported_by_case=True,
)

_JAVA_MODS = r"(?:(?:abstract|final|static|sealed|strictfp)\s+)*"

JAVA = LanguagePatterns(
    language="java",
    extensions=[".java"],
    entities=[
        _p(
            "class",
            r"^[ \t]*(?P<vis>(?:public|private|protected)\s+)?"
            rf"{_JAVA_MODS}class\s+(?P<name>\w+)(?P<generics><[^>]*>)?"
            r"(?:\s+extends\s+(?P<bases>[\w.]+)(?:<[^>]*>)?)?"
            r"(?:\s+implements\s+(?P<impls>[^{]+?))?\s*\{",
        ),
        _p(
            "interface",
            r"^[ \t]*(?P<vis>(?:public|private|protected)\s+)?"
            rf"{_JAVA_MODS}interface\s+(?P<name>\w+)"
            r"(?P<generics><[^>]*>)?(?:\s+extends\s+(?P<bases>[^{]+?))?"
            r"\s*\{",
        ),
        _p(
            "enum",
            r"^[ \t]*(?P<vis>(?:public|private|protected)\s+)?"
            rf"{_JAVA_MODS}enum\s+(?P<name>\w+)",
        ),
        _p(
            "method",
            r"^[ \t]+(?P<vis>(?:public|private|protected)\s+)?"
            r"(?:(?:static|final|abstract|synchronized|native|default)\s+)*"
            r"(?P<generics><[^>]*>\s+)?(?P<ret>[\w.<>\[\]]+(?:<[^>]*>)?)\s+"
            r"(?P<name>\w+)\s*\((?P<params>[^)]*)\)\s*"
            r"(?:throws\s+[\w.,\s]+)?\{",
            scope="container",
        ),
    ],
    param_style="space_before",
    attribute_prefixes=["@"],
    doc_prefixes=["//", "/**", "*"],
    keywords=_COMMON_KEYWORDS | {"new", "super", "this", "throw"},
    default_visibility="package",
)

PYTHON = LanguagePatterns(
    language="python",
    extensions=[".py", ".pyi"],
    backend="python_ast",
)

BUILTIN_LANGUAGES = (PYTHON, RUST, GO, JAVA, JAVASCRIPT, TYPESCRIPT)

_LIST_FIELDS = ("extensions", "attribute_prefixes", "doc_prefixes")
_SCALAR_FIELDS = ("param_style", "default_visibility", "exported_by_case")


class PatternRegistry:
    """Language tag -> LanguagePatterns, plus extension lookup."""

    def __init__(
        self, languages: Mapping[str, LanguagePatterns] | None = None
    ):
        self._languages: dict[str, LanguagePatterns] = dict(languages or {})

    @classmethod
    def default(cls) -> PatternRegistry:
        registry = cls()
        for lang in BUILTIN_LANGUAGES:
            registry.register(lang)
        return registry

    @classmethod
    def from_yaml(
        cls, path: Path, base: PatternRegistry | None = None
    ) -> PatternRegistry:
        """Overlay language definitions from a YAML file.

        The file maps language tags to definitions::

            languages:
              kotlin:
                extensions: [".kt"]
                param_style: colon
                entities:
                  - kind: function
                    pattern: '^\\s*fun\\s+(?P<name>\\w+)'

        Languages already in ``base`` (the built-ins by default) keep any
        field the file does not set.
        """
        registry = base if base is not None else cls.default()
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"cannot load patterns from {path}: {e}"
            ) from e
        languages = data.get("languages")
        if not isinstance(languages, dict):
            raise ConfigurationError(
                f"{path}: expected a top-level 'languages' mapping"
            )
        for tag, definition in languages.items():
            registry.load(tag, definition or {})
        logger.debug(
            "loaded pattern file", path=str(path), count=len(languages)
        )
        return registry

    def load(
        self, tag: str, definition: Mapping[str, Any]
    ) -> LanguagePatterns:
        """Register a language from a mapping, inheriting unset fields."""
        base = self._languages.get(tag) or LanguagePatterns(
            language=tag, extensions=[]
        )
        overrides: dict[str, Any] = {}
        for name in _LIST_FIELDS:
            if name in definition:
                overrides[name] = list(definition[name])
        for name in _SCALAR_FIELDS:
            if name in definition:
                overrides[name] = definition[name]
        if "keywords" in definition:
            overrides["keywords"] = (
                frozenset(definition["keywords"]) | _COMMON_KEYWORDS
            )
        if "entities" in definition:
            try:
                overrides["entities"] = [
                    EntityPattern(
                        kind=e["kind"],
                        pattern=e["pattern"],
                        scope=e.get("scope"),
                    )
                    for e in definition["entities"]
                ]
            except (KeyError, TypeError) as e:
                raise ConfigurationError(
                    f"language {tag!r}: each entity needs kind and pattern"
                ) from e

        lang = replace(base, **overrides)
        if not lang.extensions:
            raise ConfigurationError(f"language {tag!r} has no extensions")
        for pattern in lang.entities:
            pattern.regex()
        self.register(lang)
        return lang

    def register(self, lang: LanguagePatterns) -> None:
        self._languages[lang.language] = lang

    def get(self, tag: str) -> LanguagePatterns | None:
        return self._languages.get(tag)

    def for_path(self, path: str | Path) -> LanguagePatterns | None:
        suffix = Path(path).suffix.lower()
        for lang in self._languages.values():
            if suffix in lang.extensions:
                return lang
        return None

    @property
    def extensions(self) -> set[str]:
        return {ext for lang in self for ext in lang.extensions}

    def __iter__(self) -> Iterator[LanguagePatterns]:
        return iter(self._languages.values())

    def __contains__(self, tag: object) -> bool:
        return tag in self._languages

    def __len__(self) -> int:
        return len(self._languages)
