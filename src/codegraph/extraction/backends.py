"""Syntax backends: turn one source file into raw entity records.

The python_ast backend walks the standard library ast. The regex backend
runs a language's EntityPatterns over the whole file and finds each
entity's extent by bracket matching, which is enough for the brace
languages the built-in patterns cover.
"""

from __future__ import annotations

import ast
import bisect
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from codegraph.extraction.patterns import (
    CONTAINER_KINDS,
    EntityPattern,
    LanguagePatterns,
)
from codegraph.keys import short_description


@dataclass
class RawEntity:
    """An entity as found in source, before addressing and classification."""

    name: str
    kind: str
    line_start: int
    line_end: int
    code: str
    visibility: str = "public"
    signature: dict[str, Any] = field(default_factory=dict)
    # (edge_type, target name) pairs, resolved to keys during ingestion
    references: list[tuple[str, str]] = field(default_factory=list)


class SyntaxBackend(Protocol):
    def extract(
        self, source: str, patterns: LanguagePatterns
    ) -> list[RawEntity]: ...


# --- python ---------------------------------------------------------------


def _py_visibility(name: str) -> str:
    if name.startswith("__") and name.endswith("__"):
        return "public"
    return "private" if name.startswith("_") else "public"


def _py_calls(node: ast.AST) -> list[str]:
    calls: list[str] = []
    for child in ast.walk(node):
        if not isinstance(child, ast.Call):
            continue
        func = child.func
        if isinstance(func, ast.Name):
            calls.append(func.id)
        elif isinstance(func, ast.Attribute):
            calls.append(func.attr)
    return list(dict.fromkeys(calls))


def _unparse(node: ast.AST | None) -> str | None:
    return ast.unparse(node) if node is not None else None


class PythonAstBackend:
    """Top-level functions, classes, their methods and module constants."""

    def extract(
        self, source: str, patterns: LanguagePatterns
    ) -> list[RawEntity]:
        tree = ast.parse(source)
        lines = source.splitlines()
        entities: list[RawEntity] = []
        for node in tree.body:
            self._visit(node, lines, entities, container=None)
        return entities

    def _visit(
        self,
        node: ast.stmt,
        lines: list[str],
        out: list[RawEntity],
        container: str | None,
    ) -> None:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            out.append(self._function(node, lines, container))
        elif isinstance(node, ast.ClassDef):
            out.append(self._class(node, lines))
            for child in node.body:
                self._visit(child, lines, out, container=node.name)
        elif container is None and isinstance(
            node, (ast.Assign, ast.AnnAssign)
        ):
            if isinstance(node, ast.Assign):
                target = node.targets[0]
            else:
                target = node.target
            if isinstance(target, ast.Name) and target.id.isupper():
                out.append(
                    RawEntity(
                        name=target.id,
                        kind="constant",
                        line_start=node.lineno,
                        line_end=node.end_lineno or node.lineno,
                        code=_slice(lines, node.lineno, node.end_lineno),
                        visibility=_py_visibility(target.id),
                    )
                )

    def _function(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        lines: list[str],
        container: str | None,
    ) -> RawEntity:
        args = node.args
        positional = [*args.posonlyargs, *args.args]
        if container and positional and positional[0].arg in ("self", "cls"):
            positional = positional[1:]
        params = [*positional, *args.kwonlyargs]
        names = [a.arg for a in params]
        types = [_unparse(a.annotation) for a in params]
        if args.vararg:
            names.append(f"*{args.vararg.arg}")
            types.append(_unparse(args.vararg.annotation))
        if args.kwarg:
            names.append(f"**{args.kwarg.arg}")
            types.append(_unparse(args.kwarg.annotation))

        signature: dict[str, Any] = {
            "params": names,
            "param_types": types,
            "return_type": _unparse(node.returns),
            "is_async": isinstance(node, ast.AsyncFunctionDef),
            "decorators": [ast.unparse(d) for d in node.decorator_list],
        }
        if container:
            signature["container"] = container
        doc = ast.get_docstring(node)
        if doc:
            signature["doc"] = doc

        return RawEntity(
            name=node.name,
            kind="method" if container else "function",
            line_start=node.lineno,
            line_end=node.end_lineno or node.lineno,
            code=_slice(lines, node.lineno, node.end_lineno),
            visibility=_py_visibility(node.name),
            signature=signature,
            references=[("calls", c) for c in _py_calls(node)],
        )

    def _class(self, node: ast.ClassDef, lines: list[str]) -> RawEntity:
        bases = [ast.unparse(b) for b in node.bases]
        signature: dict[str, Any] = {
            "bases": bases,
            "trait_impls": bases,
            "decorators": [ast.unparse(d) for d in node.decorator_list],
        }
        doc = ast.get_docstring(node)
        if doc:
            signature["doc"] = doc
        return RawEntity(
            name=node.name,
            kind="class",
            line_start=node.lineno,
            line_end=node.end_lineno or node.lineno,
            code=_slice(lines, node.lineno, node.end_lineno),
            visibility=_py_visibility(node.name),
            signature=signature,
            references=[("inherits", b.rsplit(".", 1)[-1]) for b in bases],
        )


def _slice(lines: list[str], start: int, end: int | None) -> str:
    return "\n".join(lines[start - 1 : end or start])


# --- regex ----------------------------------------------------------------

_CALL_RE = re.compile(r"(?<![\w!])([A-Za-z_]\w*)\s*(?:::<[^>]*>)?\s*\(")
_PARAM_COLON_RE = re.compile(
    r"^(?P<name>[^:]+?)\s*\??\s*:(?!:)\s*(?P<type>.+)$"
)
_RUST_SELF = frozenset({"self", "&self", "&mut self", "mut self"})
_BRACKETS = {"(": ")", "[": "]"}


def find_block_end(text: str, start: int, char_literals: bool = False) -> int:
    """Offset of the character that closes the item starting at ``start``.

    The item ends at the brace matching its first ``{``, or at a ``;``
    seen before any brace outside parentheses. String literals and
    comments are skipped.
    """
    n = len(text)
    depth = 0
    nesting = 0
    opened = False
    i = start
    while i < n:
        c = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if c == "/" and nxt == "/":
            j = text.find("\n", i)
            if j == -1:
                break
            i = j
            continue
        if c == "/" and nxt == "*":
            j = text.find("*/", i + 2)
            i = j + 2 if j != -1 else n
            continue
        if c in "\"`" or (c == "'" and not char_literals):
            i = _skip_string(text, i, c)
            continue
        if c == "'" and char_literals:
            # Rust: 'x' and '\n' are chars, anything else is a lifetime
            if i + 2 < n and text[i + 2] == "'":
                i += 3
                continue
            if nxt == "\\" and i + 3 < n and text[i + 3] == "'":
                i += 4
                continue
        if c in _BRACKETS:
            nesting += 1
        elif c in ")]":
            nesting = max(0, nesting - 1)
        elif c == "{":
            depth += 1
            opened = True
        elif c == "}":
            depth -= 1
            if opened and depth == 0:
                return i
        elif c == ";" and not opened and nesting == 0:
            return i
        i += 1
    return max(start, n - 1)


def _skip_string(text: str, i: int, quote: str) -> int:
    j = i + 1
    n = len(text)
    while j < n:
        if text[j] == "\\":
            j += 2
            continue
        if text[j] == quote:
            return j + 1
        if text[j] == "\n" and quote != "`":
            return j
        j += 1
    return n


def split_params(raw: str) -> list[str]:
    """Split a parameter list on top-level commas."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for c in raw:
        if c in "(<[{":
            depth += 1
        elif c in ")>]}":
            depth -= 1
        if c == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(c)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def parse_params(
    raw: str, style: str
) -> tuple[list[str], list[str | None]]:
    names: list[str] = []
    types: list[str | None] = []
    for param in split_params(raw):
        param = " ".join(param.split())
        if param in _RUST_SELF:
            continue
        name: str
        ptype: str | None = None
        if style == "colon":
            param = param.split("=", 1)[0].strip()
            m = _PARAM_COLON_RE.match(param)
            if m:
                name, ptype = m["name"], m["type"].strip()
            else:
                name = param
            name = name.removeprefix("mut ").removeprefix("readonly ")
        elif style == "space_after":
            head, _, rest = param.partition(" ")
            name, ptype = head, rest or None
        elif style == "space_before":
            tokens = [t for t in param.split(" ") if not t.startswith("@")]
            tokens = [t for t in tokens if t != "final"]
            if len(tokens) >= 2:
                ptype, name = " ".join(tokens[:-1]), tokens[-1]
            else:
                name = tokens[0] if tokens else param
        else:
            name = param
        names.append(name.strip())
        types.append(ptype)

    if style == "space_after":
        # Go groups parameters: (a, b int) gives both a and b type int
        for i in range(len(types) - 2, -1, -1):
            if types[i] is None:
                types[i] = types[i + 1]
    return names, types


def _group(m: re.Match[str], name: str) -> str | None:
    if name not in m.re.groupindex:
        return None
    value = m.group(name)
    return value.strip() if value else None


class RegexBackend:
    """Pattern-driven extraction for brace-delimited languages."""

    def extract(
        self, source: str, patterns: LanguagePatterns
    ) -> list[RawEntity]:
        lines = source.splitlines()
        line_starts = [0]
        for m in re.finditer("\n", source):
            line_starts.append(m.end())

        def line_of(offset: int) -> int:
            return bisect.bisect_right(line_starts, offset)

        found: list[tuple[int, RawEntity, EntityPattern]] = []
        seen: set[tuple[int, str]] = set()
        char_literals = patterns.language == "rust"
        for pattern in patterns.entities:
            for m in pattern.regex().finditer(source):
                name = m.group("name")
                if pattern.kind == "test":
                    name = short_description(name)
                if name in patterns.keywords:
                    continue
                if _group(m, "ret") in patterns.keywords:
                    continue
                start_line = line_of(m.start() + _indent(m.group(0)))
                if (start_line, name) in seen:
                    continue
                seen.add((start_line, name))

                end = find_block_end(source, m.start(), char_literals)
                end_line = max(start_line, line_of(end))
                entity = RawEntity(
                    name=name,
                    kind=pattern.kind,
                    line_start=start_line,
                    line_end=end_line,
                    code="\n".join(lines[start_line - 1 : end_line]),
                    visibility=patterns.visibility(name, _group(m, "vis")),
                    signature=self._signature(m, patterns),
                )
                if pattern.kind in ("function", "method", "test"):
                    body = source[m.end() : end + 1]
                    entity.references = [
                        ("calls", c)
                        for c in _calls(body, patterns.keywords)
                    ]
                entity.references.extend(self._type_references(entity))
                found.append((m.start(), entity, pattern))

        found.sort(key=lambda item: item[0])
        entities = self._scope(found)
        for entity in entities:
            entity.signature.update(
                self._annotations(lines, entity.line_start, patterns)
            )
        self._attach_trait_impls(entities)
        return entities

    def _signature(
        self, m: re.Match[str], patterns: LanguagePatterns
    ) -> dict[str, Any]:
        sig: dict[str, Any] = {}
        params = _group(m, "params")
        if "params" in m.re.groupindex:
            names, types = parse_params(params or "", patterns.param_style)
            sig["params"] = names
            sig["param_types"] = types
            sig["return_type"] = _group(m, "ret")
        if "async" in m.re.groupindex:
            sig["is_async"] = bool(m.group("async"))
        if "unsafe" in m.re.groupindex:
            sig["is_unsafe"] = bool(m.group("unsafe"))
        for group in ("generics", "receiver", "trait", "test_call"):
            value = _group(m, group)
            if value:
                sig[group] = value
        if sig.get("receiver"):
            receiver_type = sig["receiver"].split()[-1].split("[", 1)[0]
            sig["container"] = receiver_type.lstrip("*")
        bases = _group(m, "bases")
        if bases:
            sig["bases"] = [b.strip() for b in split_params(bases)]
        impls = _group(m, "impls")
        if impls:
            sig["trait_impls"] = [i.strip() for i in split_params(impls)]
        elif sig.get("trait"):
            sig["trait_impls"] = [sig["trait"]]
        return sig

    @staticmethod
    def _type_references(entity: RawEntity) -> list[tuple[str, str]]:
        sig = entity.signature
        refs = [("inherits", _last_segment(b)) for b in sig.get("bases", [])]
        refs.extend(
            ("implements", _last_segment(t))
            for t in sig.get("trait_impls", [])
        )
        return refs

    @staticmethod
    def _scope(
        found: list[tuple[int, RawEntity, EntityPattern]],
    ) -> list[RawEntity]:
        """Turn functions nested in containers into methods.

        Container-scoped patterns (e.g. class methods) are dropped when
        they match outside any container.
        """
        containers = [
            e for _, e, _ in found if e.kind in CONTAINER_KINDS
        ]
        result: list[RawEntity] = []
        for _, entity, pattern in found:
            owner = None
            for c in containers:
                if c is entity:
                    continue
                if c.line_start < entity.line_start <= c.line_end:
                    owner = c
            if pattern.scope == "container" and owner is None:
                continue
            if owner is not None and entity.kind == "function":
                entity.kind = "method"
            if owner is not None and entity.kind == "method":
                entity.signature.setdefault("container", owner.name)
            result.append(entity)
        return result

    @staticmethod
    def _annotations(
        lines: list[str], line_start: int, patterns: LanguagePatterns
    ) -> dict[str, Any]:
        """Collect attribute and doc-comment lines directly above an item."""
        attributes: list[str] = []
        docs: list[str] = []
        i = line_start - 2
        while i >= 0:
            text = lines[i].strip()
            if not text:
                break
            if any(text.startswith(p) for p in patterns.attribute_prefixes):
                attributes.append(text)
            elif any(text.startswith(p) for p in patterns.doc_prefixes) or (
                text.endswith("*/")
            ):
                docs.append(_strip_doc(text))
            else:
                break
            i -= 1

        result: dict[str, Any] = {}
        if attributes:
            field_name = (
                "attributes" if patterns.language == "rust" else "annotations"
            )
            result[field_name] = attributes[::-1]
        doc = "\n".join(d for d in docs[::-1] if d)
        if doc:
            result["doc"] = doc
        return result

    @staticmethod
    def _attach_trait_impls(entities: list[RawEntity]) -> None:
        """Record `impl Trait for Type` on the Type entity as well."""
        by_name = {
            e.name: e for e in entities if e.kind in ("struct", "enum")
        }
        for entity in entities:
            trait = entity.signature.get("trait")
            target = by_name.get(entity.name)
            if entity.kind != "impl" or not trait or target is None:
                continue
            impls = target.signature.setdefault("trait_impls", [])
            if trait not in impls:
                impls.append(trait)


def _indent(text: str) -> int:
    return len(text) - len(text.lstrip(" \t\n"))


def _last_segment(path: str) -> str:
    path = path.split("<", 1)[0]
    return re.split(r"::|\.", path)[-1].strip()


def _strip_doc(text: str) -> str:
    for prefix in ("///", "//!", "//", "/**", "*/", "*"):
        if text.startswith(prefix):
            text = text[len(prefix) :]
            break
    return text.removesuffix("*/").strip()


def _calls(body: str, keywords: frozenset[str]) -> list[str]:
    names = (m.group(1) for m in _CALL_RE.finditer(body))
    return list(dict.fromkeys(n for n in names if n not in keywords))


BACKENDS: dict[str, SyntaxBackend] = {
    "python_ast": PythonAstBackend(),
    "regex": RegexBackend(),
}
