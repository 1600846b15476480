"""TDD classifier: label entities as CODE or TEST.

Decision order:
1. a language-level test marker on the entity itself -> TEST
2. otherwise a conventional test location in the file path -> TEST
3. otherwise -> CODE

The marker check runs first so a test function in an oddly named file is
still recognized, and a helper in tests/ that carries no marker only
becomes TEST through its path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from pathlib import PurePosixPath
from typing import Any

from codegraph.entities import Entity, EntityClass

RUST_TEST_ATTRIBUTES = frozenset(
    {
        "test",
        "tokio::test",
        "async_std::test",
        "async_test",
        "rstest",
        "test_case",
        "wasm_bindgen_test",
    }
)
JAVA_TEST_ANNOTATIONS = frozenset(
    {"Test", "ParameterizedTest", "RepeatedTest", "TestFactory"}
)
PYTHON_TEST_BASES = frozenset(
    {
        "TestCase",
        "unittest.TestCase",
        "IsolatedAsyncioTestCase",
        "unittest.IsolatedAsyncioTestCase",
    }
)
PYTHON_TEST_DECORATORS = frozenset(
    {"pytest.mark.parametrize", "pytest.mark.asyncio", "pytest.mark.anyio"}
)
GO_TEST_PREFIXES = ("Test", "Benchmark", "Example", "Fuzz")
JS_TEST_CALLS = frozenset({"describe", "it", "test"})

TEST_DIR_NAMES = frozenset({"tests", "test", "__tests__", "spec", "specs"})
TEST_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^test_.+\.py$"),
    re.compile(r"^.+_test\.(py|go|rs)$"),
    re.compile(r"^.+\.(test|spec)\.[A-Za-z]+$"),
    re.compile(r"^.+Tests?\.(java|kt)$"),
)

_MARKER_ARGS_RE = re.compile(r"\(.*\)$", re.DOTALL)


def normalize_marker(marker: str) -> str:
    """Strip attribute/decorator syntax.

    '#[tokio::test(flavor = "multi_thread")]' -> 'tokio::test'
    """
    m = marker.strip()
    if m.startswith("#[") and m.endswith("]"):
        m = m[2:-1]
    m = m.lstrip("@").strip()
    return _MARKER_ARGS_RE.sub("", m).strip()


def _markers(signature: Mapping[str, Any]) -> list[str]:
    raw: list[str] = []
    for field_name in ("attributes", "decorators", "annotations"):
        raw.extend(signature.get(field_name) or [])
    return [normalize_marker(m) for m in raw]


class TddClassifier:
    """Classify entities with per-language marker rules.

    Extra markers can be supplied per language tag, e.g.
    ``{"rust": {"serial_test::serial"}}``.
    """

    def __init__(
        self,
        extra_markers: Mapping[str, Iterable[str]] | None = None,
        test_dir_names: Iterable[str] = TEST_DIR_NAMES,
    ):
        self.extra_markers = {
            lang: frozenset(markers)
            for lang, markers in (extra_markers or {}).items()
        }
        self.test_dir_names = frozenset(test_dir_names)

    def has_test_marker(
        self,
        name: str,
        kind: str,
        language: str,
        file_path: str,
        signature: Mapping[str, Any] | None = None,
    ) -> bool:
        signature = signature or {}
        markers = _markers(signature)
        extra = self.extra_markers.get(language, frozenset())
        if any(m in extra for m in markers):
            return True

        if language == "rust":
            return any(m in RUST_TEST_ATTRIBUTES for m in markers)

        if language == "python":
            if kind == "class":
                bases = signature.get("bases") or []
                return any(b in PYTHON_TEST_BASES for b in bases)
            if kind in ("function", "method"):
                if name == "test" or name.startswith("test_"):
                    return True
                return any(m in PYTHON_TEST_DECORATORS for m in markers)
            return False

        if language in ("java", "kotlin"):
            return any(m in JAVA_TEST_ANNOTATIONS for m in markers)

        if language == "go":
            if not file_path.endswith("_test.go") or kind != "function":
                return False
            for prefix in GO_TEST_PREFIXES:
                rest = name[len(prefix) :]
                if name.startswith(prefix) and (not rest or rest[0].isupper()):
                    return True
            return False

        if language in ("javascript", "typescript"):
            return signature.get("test_call") in JS_TEST_CALLS

        return False

    def matches_test_path(self, file_path: str) -> bool:
        path = PurePosixPath(file_path.replace("\\", "/"))
        if any(part in self.test_dir_names for part in path.parts[:-1]):
            return True
        return any(p.match(path.name) for p in TEST_FILE_PATTERNS)

    def classify(
        self,
        name: str,
        kind: str,
        language: str,
        file_path: str,
        signature: Mapping[str, Any] | None = None,
    ) -> EntityClass:
        if self.has_test_marker(name, kind, language, file_path, signature):
            return EntityClass.TEST
        if self.matches_test_path(file_path):
            return EntityClass.TEST
        return EntityClass.CODE

    def classify_entity(self, entity: Entity) -> EntityClass:
        return self.classify(
            entity.name,
            entity.kind,
            entity.language,
            entity.file_path,
            entity.language_signature,
        )
