"""Tests for pattern-driven and ast-based entity extraction."""

from textwrap import dedent

import pytest

from codegraph.errors import ConfigurationError
from codegraph.extraction import (
    ExtractionAdapter,
    PatternRegistry,
    find_block_end,
    parse_params,
    split_params,
)

PYTHON_SOURCE = dedent(
    '''\
    import os

    MAX_SIZE = 10


    def add(a: int, b: int) -> int:
        return a + b


    async def fetch(url, *args, **kwargs):
        return await get(url)


    class Calculator(Base):
        """Adds things."""

        def total(self, values: list[int]) -> int:
            return sum(add(v, 0) for v in values)


    class TestCalculator(unittest.TestCase):
        def test_total(self):
            self.assertEqual(Calculator().total([1]), 1)
    '''
)

RUST_SOURCE = dedent(
    """\
    use std::fmt;

    /// Sums two numbers.
    pub fn add(a: i32, b: i32) -> i32 {
        a + b
    }

    pub struct Calculator {
        total: i32,
    }

    impl Calculator {
        pub fn new() -> Self {
            Calculator { total: 0 }
        }

        pub async fn push(&mut self, value: i32) {
            self.total = add(self.total, value);
        }
    }

    impl fmt::Display for Calculator {
        fn fmt(&self, f: &mut fmt::Formatter<'_>) -> fmt::Result {
            write!(f, "{}", self.total)
        }
    }

    #[cfg(test)]
    mod tests {
        use super::*;

        #[test]
        fn adds() {
            assert_eq!(add(1, 2), 3);
        }
    }
    """
)

GO_SOURCE = dedent(
    """\
    package server

    // Server handles requests.
    type Server struct {
    \taddr string
    }

    type Handler interface {
    \tServe() error
    }

    func NewServer(addr string, port, timeout int) *Server {
    \treturn &Server{addr: addr}
    }

    func (s *Server) Start() error {
    \treturn listen(s.addr)
    }

    func listen(addr string) error {
    \treturn nil
    }
    """
)

TS_SOURCE = dedent(
    """\
    export interface Shape {
      area(): number;
    }

    export class Circle extends Base implements Shape {
      constructor(private radius: number) {
        super();
      }

      public area(): number {
        return Math.PI * square(this.radius);
      }
    }

    export function square(x: number): number {
      return x * x;
    }

    export const double = (x: number): number => x * 2;

    describe("Circle", () => {
      it("computes area", () => {
        expect(new Circle(1).area()).toBeCloseTo(3.14);
      });
    });
    """
)

JAVA_SOURCE = dedent(
    """\
    package com.example;

    import org.junit.jupiter.api.Test;

    public class Calculator extends Base implements Adder, Serializable {
        private int total;

        /** Adds a value. */
        public int add(int value) {
            total = total + value;
            return total;
        }

        @Test
        void addsValues() {
            assertEquals(3, new Calculator().add(3));
        }
    }
    """
)


def by_name(extraction, kind=None):
    return {
        e.name: e
        for e in extraction.entities
        if kind is None or e.kind == kind
    }


@pytest.fixture
def adapter():
    return ExtractionAdapter()


class TestHelpers:
    def test_split_params_respects_nesting(self):
        assert split_params("a: Vec<(i32, i32)>, b: [u8; 4]") == [
            "a: Vec<(i32, i32)>",
            "b: [u8; 4]",
        ]

    def test_colon_params(self):
        names, types = parse_params("&self, a: i32, mut b: &str", "colon")
        assert names == ["a", "b"]
        assert types == ["i32", "&str"]

    def test_colon_params_with_defaults(self):
        names, types = parse_params("x: number = 1, y?: string", "colon")
        assert names == ["x", "y"]
        assert types == ["number", "string"]

    def test_go_grouped_params(self):
        names, types = parse_params("a, b int, s string", "space_after")
        assert names == ["a", "b", "s"]
        assert types == ["int", "int", "string"]

    def test_java_params(self):
        names, types = parse_params(
            "final List<String> items, @Nullable int n", "space_before"
        )
        assert names == ["items", "n"]
        assert types == ["List<String>", "int"]

    def test_block_end_skips_strings_and_comments(self):
        text = 'fn f() { let s = "}"; // }\n /* } */ }\nfn g() {}'
        end = find_block_end(text, 0)
        assert text[end] == "}"
        assert text[: end + 1].endswith("*/ }")

    def test_block_end_semicolon(self):
        text = "fn decl(a: i32);\nfn next() {}"
        assert find_block_end(text, 0) == text.index(";")


class TestPython:
    def test_entities(self, adapter):
        result = adapter.extract_source(PYTHON_SOURCE, "app/calc.py")
        assert result.language == "python"
        assert [(e.name, e.kind) for e in result.entities] == [
            ("MAX_SIZE", "constant"),
            ("add", "function"),
            ("fetch", "function"),
            ("Calculator", "class"),
            ("total", "method"),
            ("TestCalculator", "class"),
            ("test_total", "method"),
        ]

    def test_line_ranges(self, adapter):
        entities = by_name(adapter.extract_source(PYTHON_SOURCE, "a.py"))
        assert (entities["add"].line_start, entities["add"].line_end) == (
            6,
            7,
        )
        calc = entities["Calculator"]
        assert (calc.line_start, calc.line_end) == (14, 18)
        assert entities["add"].code.startswith("def add(")

    def test_signatures(self, adapter):
        entities = by_name(adapter.extract_source(PYTHON_SOURCE, "a.py"))
        add = entities["add"].signature
        assert add["params"] == ["a", "b"]
        assert add["param_types"] == ["int", "int"]
        assert add["return_type"] == "int"
        assert add["is_async"] is False

        fetch = entities["fetch"].signature
        assert fetch["is_async"] is True
        assert fetch["params"] == ["url", "*args", "**kwargs"]

        total = entities["total"].signature
        assert total["params"] == ["values"]
        assert total["container"] == "Calculator"

        calc = entities["Calculator"].signature
        assert calc["bases"] == ["Base"]
        assert calc["doc"] == "Adds things."

    def test_references(self, adapter):
        entities = by_name(adapter.extract_source(PYTHON_SOURCE, "a.py"))
        assert ("calls", "add") in entities["total"].references
        assert ("calls", "get") in entities["fetch"].references
        assert entities["TestCalculator"].references == [
            ("inherits", "TestCase")
        ]

    def test_syntax_error_propagates(self, adapter):
        with pytest.raises(SyntaxError):
            adapter.extract_source("def broken(:\n", "bad.py")


class TestRust:
    def test_entities(self, adapter):
        result = adapter.extract_source(RUST_SOURCE, "src/lib.rs")
        kinds = [(e.name, e.kind) for e in result.entities]
        assert kinds == [
            ("add", "function"),
            ("Calculator", "struct"),
            ("Calculator", "impl"),
            ("new", "method"),
            ("push", "method"),
            ("Calculator", "impl"),
            ("fmt", "method"),
            ("tests", "module"),
            ("adds", "function"),
        ]

    def test_function_details(self, adapter):
        entities = by_name(adapter.extract_source(RUST_SOURCE, "src/lib.rs"))
        add = entities["add"]
        assert (add.line_start, add.line_end) == (4, 6)
        assert add.visibility == "public"
        assert add.signature["params"] == ["a", "b"]
        assert add.signature["param_types"] == ["i32", "i32"]
        assert add.signature["return_type"] == "i32"
        assert add.signature["doc"] == "Sums two numbers."

    def test_methods(self, adapter):
        entities = by_name(
            adapter.extract_source(RUST_SOURCE, "src/lib.rs"), "method"
        )
        push = entities["push"]
        assert push.signature["is_async"] is True
        assert push.signature["params"] == ["value"]
        assert push.signature["container"] == "Calculator"
        assert ("calls", "add") in push.references
        assert entities["fmt"].visibility == "private"
        assert entities["fmt"].signature["return_type"] == "fmt::Result"

    def test_trait_impls(self, adapter):
        entities = by_name(
            adapter.extract_source(RUST_SOURCE, "src/lib.rs"), "struct"
        )
        assert entities["Calculator"].signature["trait_impls"] == [
            "fmt::Display"
        ]

    def test_test_attribute(self, adapter):
        entities = by_name(adapter.extract_source(RUST_SOURCE, "src/lib.rs"))
        adds = entities["adds"]
        assert adds.signature["attributes"] == ["#[test]"]
        assert (adds.line_start, adds.line_end) == (33, 35)
        assert ("calls", "add") in adds.references


class TestGo:
    def test_entities(self, adapter):
        result = adapter.extract_source(GO_SOURCE, "pkg/server.go")
        assert [(e.name, e.kind) for e in result.entities] == [
            ("Server", "struct"),
            ("Handler", "interface"),
            ("NewServer", "function"),
            ("Start", "method"),
            ("listen", "function"),
        ]

    def test_details(self, adapter):
        entities = by_name(adapter.extract_source(GO_SOURCE, "pkg/server.go"))
        new = entities["NewServer"]
        assert new.signature["params"] == ["addr", "port", "timeout"]
        assert new.signature["param_types"] == ["string", "int", "int"]
        assert new.signature["return_type"] == "*Server"
        assert new.visibility == "public"
        assert entities["listen"].visibility == "private"
        start = entities["Start"]
        assert start.signature["container"] == "Server"
        assert ("calls", "listen") in start.references
        doc = entities["Server"].signature["doc"]
        assert doc == "Server handles requests."


class TestTypeScript:
    def test_entities(self, adapter):
        result = adapter.extract_source(TS_SOURCE, "src/shapes.ts")
        names = {(e.name, e.kind) for e in result.entities}
        assert {
            ("Shape", "interface"),
            ("Circle", "class"),
            ("area", "method"),
            ("square", "function"),
            ("double", "function"),
            ("Circle", "test"),
            ("computes_area", "test"),
        } <= names

    def test_details(self, adapter):
        result = adapter.extract_source(TS_SOURCE, "src/shapes.ts")
        classes = by_name(result, "class")
        assert classes["Circle"].signature["bases"] == ["Base"]
        assert classes["Circle"].signature["trait_impls"] == ["Shape"]

        methods = by_name(result, "method")
        assert methods["area"].signature["container"] == "Circle"
        assert methods["area"].signature["return_type"] == "number"
        assert ("calls", "square") in methods["area"].references

        funcs = by_name(result, "function")
        assert funcs["double"].signature["params"] == ["x"]
        assert funcs["square"].signature["param_types"] == ["number"]

        tests = by_name(result, "test")
        assert tests["computes_area"].signature["test_call"] == "it"
        assert tests["Circle"].signature["test_call"] == "describe"

    def test_interface_members_are_not_methods(self, adapter):
        result = adapter.extract_source(TS_SOURCE, "src/shapes.ts")
        areas = [e for e in result.entities if e.name == "area"]
        assert len(areas) == 1


class TestJava:
    def test_entities(self, adapter):
        result = adapter.extract_source(
            JAVA_SOURCE, "src/main/java/com/example/Calculator.java"
        )
        methods = by_name(result, "method")
        assert {"add", "addsValues"} <= set(methods)
        assert methods["add"].signature["params"] == ["value"]
        assert methods["add"].signature["param_types"] == ["int"]
        assert methods["add"].signature["return_type"] == "int"
        assert methods["add"].signature["doc"] == "Adds a value."
        assert methods["add"].visibility == "public"
        assert methods["addsValues"].signature["annotations"] == ["@Test"]
        assert methods["addsValues"].visibility == "package"

    def test_class(self, adapter):
        result = adapter.extract_source(JAVA_SOURCE, "Calculator.java")
        calc = by_name(result, "class")["Calculator"]
        assert calc.signature["bases"] == ["Base"]
        assert calc.signature["trait_impls"] == ["Adder", "Serializable"]
        assert ("inherits", "Base") in calc.references


class TestRegistry:
    def test_default_languages(self):
        registry = PatternRegistry.default()
        for tag in ("python", "rust", "go", "java", "typescript"):
            assert tag in registry
        assert registry.for_path("a/b.tsx").language == "typescript"
        assert registry.for_path("README.md") is None

    def test_yaml_new_language(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text(
            dedent(
                r"""
                languages:
                  kotlin:
                    extensions: [".kt"]
                    param_style: colon
                    entities:
                      - kind: function
                        pattern: '^\s*fun\s+(?P<name>\w+)\((?P<params>[^)]*)\)'
                """
            )
        )
        registry = PatternRegistry.from_yaml(path)
        assert "kotlin" in registry
        assert "rust" in registry

        adapter = ExtractionAdapter(registry=registry)
        source = "fun greet(name: String) {\n    println(name)\n}\n"
        result = adapter.extract_source(source, "app/Main.kt")
        (greet,) = result.entities
        assert greet.name == "greet"
        assert (greet.line_start, greet.line_end) == (1, 3)
        assert greet.signature["param_types"] == ["String"]

    def test_yaml_overlay_keeps_entities(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text(
            "languages:\n  rust:\n    default_visibility: public\n"
        )
        registry = PatternRegistry.from_yaml(path)
        rust = registry.get("rust")
        assert rust.default_visibility == "public"
        assert rust.entities == PatternRegistry.default().get("rust").entities

    @pytest.mark.parametrize(
        "content",
        [
            "not_languages: {}\n",
            "languages:\n  x:\n    entities: []\n",
            "languages:\n  x:\n    extensions: ['.x']\n"
            "    entities:\n      - kind: function\n",
            "languages:\n  x:\n    extensions: ['.x']\n"
            "    entities:\n      - kind: function\n        pattern: '(['\n",
            "languages: [unclosed\n",
        ],
    )
    def test_yaml_errors(self, tmp_path, content):
        path = tmp_path / "patterns.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            PatternRegistry.from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PatternRegistry.from_yaml(tmp_path / "nope.yaml")


class TestAdapter:
    def test_unsupported_language(self, adapter):
        with pytest.raises(ConfigurationError):
            adapter.extract_source("x", "notes.txt")

    def test_explicit_language(self, adapter):
        result = adapter.extract_source(
            "fn f() {}\n", "weird.txt", language="rust"
        )
        assert result.language == "rust"
        assert result.entities[0].name == "f"

    def test_extract_file(self, adapter, tmp_path):
        (tmp_path / "src").mkdir()
        path = tmp_path / "src" / "lib.rs"
        path.write_text("fn f() {}\n")
        result = adapter.extract_file(path, tmp_path)
        assert result.path == "src/lib.rs"

    def test_unsupported_file(self, adapter, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        assert adapter.extract_file(path, tmp_path) is None

    def test_large_file_skipped(self, tmp_path):
        path = tmp_path / "big.rs"
        path.write_text("fn f() {}\n" * 100)
        adapter = ExtractionAdapter(max_file_bytes=50)
        assert adapter.extract_file(path, tmp_path) is None

    def test_iter_files(self, adapter, tmp_path):
        for rel in (
            "src/b.rs",
            "src/a.py",
            "node_modules/pkg/index.js",
            ".codegraph/x.py",
            "README.md",
        ):
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("")
        found = [
            p.relative_to(tmp_path).as_posix()
            for p in adapter.iter_files(tmp_path)
        ]
        assert found == ["src/a.py", "src/b.rs"]
