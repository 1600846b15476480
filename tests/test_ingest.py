from textwrap import dedent

import pytest

from codegraph.config import TestEntityMode
from codegraph.entities import EntityClass, TemporalState
from codegraph.errors import ConfigurationError
from codegraph.ingest import Ingestor
from codegraph.store import CodeGraphStore, InMemoryRepository

LIB_RS = dedent(
    """\
    pub fn add(a: i32, b: i32) -> i32 {
        a + b
    }

    pub fn total(values: &[i32]) -> i32 {
        values.iter().fold(0, |acc, v| add(acc, *v))
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

CALC_PY = dedent(
    """\
    def multiply(a, b):
        return a * b
    """
)

TEST_CALC_PY = dedent(
    """\
    from app.calc import multiply


    def test_multiply():
        assert multiply(2, 3) == 6
    """
)


def write_tree(root, files):
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return root


@pytest.fixture
def project(tmp_path):
    return write_tree(
        tmp_path / "project",
        {
            "src/lib.rs": LIB_RS,
            "app/calc.py": CALC_PY,
            "tests/test_calc.py": TEST_CALC_PY,
            "README.md": "# not code\n",
        },
    )


@pytest.fixture
def store(tmp_path):
    s = CodeGraphStore(tmp_path / "graph.db")
    yield s
    s.close()


class TestMode:
    def test_mode_is_required(self, store):
        with pytest.raises(ConfigurationError):
            Ingestor(store, None)

    def test_invalid_mode(self, store):
        with pytest.raises(ConfigurationError):
            Ingestor(store, "sometimes")

    def test_mode_from_string(self, store):
        assert Ingestor(store, "Exclude").test_mode is TestEntityMode.EXCLUDE


class TestIngest:
    def test_store_mode(self, project, store):
        result = Ingestor(store, TestEntityMode.STORE).ingest(project)
        assert result.files_scanned == 3
        assert result.files_failed == 0
        assert result.entities_stored == 6
        assert result.tests_stored == 2
        assert result.tests_excluded == 0
        assert result.edges_stored == 3
        assert store.count_entities() == 6

        tests = store.query_entities("entity_class = 'TEST'")
        assert sorted(e.name for e in tests) == ["adds", "test_multiply"]

    def test_exclude_mode(self, project, store):
        result = Ingestor(store, TestEntityMode.EXCLUDE).ingest(project)
        assert result.entities_stored == 4
        assert result.tests_stored == 0
        assert result.tests_excluded == 2
        assert result.edges_stored == 1
        assert store.query_entities("entity_class = 'TEST'") == []

    def test_entities_start_unchanged(self, project, store):
        Ingestor(store, "store").ingest(project)
        for entity in store.get_all_entities():
            assert entity.temporal_state == TemporalState.unchanged()
            assert entity.current_code
            assert entity.future_code is None

    def test_line_keys(self, project, store):
        Ingestor(store, "store").ingest(project)
        add = store.get_entity("rust:fn:add:src_lib_rs:1-3")
        assert add is not None
        assert add.current_code.startswith("pub fn add(")
        assert add.visibility == "public"
        assert add.entity_class is EntityClass.CODE
        assert store.get_entity("python:fn:multiply:app_calc_py:1-2")

    def test_call_edges(self, project, store):
        Ingestor(store, "store").ingest(project)
        add_key = "rust:fn:add:src_lib_rs:1-3"
        callers = sorted(store.get_reverse_dependencies(add_key))
        assert callers == [
            "rust:fn:adds:src_lib_rs:14-16",
            "rust:fn:total:src_lib_rs:5-7",
        ]
        edges = store.query_edges("from_key = 'rust:fn:total:src_lib_rs:5-7'")
        assert edges[0].edge_type == "calls"
        assert edges[0].source_location == "src/lib.rs:5"

    def test_cross_file_edge(self, project, store):
        Ingestor(store, "store").ingest(project)
        assert store.get_forward_dependencies(
            "python:fn:test_multiply:tests_test_calc_py:4-5"
        ) == ["python:fn:multiply:app_calc_py:1-2"]

    def test_zero_dependency_codebase(self, tmp_path, store):
        root = write_tree(
            tmp_path / "lonely",
            {"src/one.rs": "pub fn lonely() -> i32 {\n    1\n}\n"},
        )
        result = Ingestor(store, "store").ingest(root)
        assert result.entities_stored == 1
        assert result.edges_stored == 0
        assert store.list_relations() == ["CodeGraph", "DependencyEdges"]
        assert store.count_edges() == 0
        assert store.get_all_edges() == []

    def test_syntax_error_counts_as_failed(self, project, store):
        write_tree(project, {"app/broken.py": "def broken(:\n"})
        result = Ingestor(store, "store").ingest(project)
        assert result.files_scanned == 4
        assert result.files_failed == 1
        assert result.errors[0][0] == "app/broken.py"
        assert result.entities_stored == 6

    def test_reingest_is_idempotent(self, project, store):
        Ingestor(store, "store").ingest(project)
        Ingestor(store, "store").ingest(project)
        assert store.count_entities() == 6
        assert store.count_edges() == 3


class TestIngestSources:
    def test_in_memory_repository(self):
        repo = InMemoryRepository()
        result = Ingestor(repo, "store").ingest_sources(
            {"src/lib.rs": LIB_RS}
        )
        assert result.files_scanned == 1
        assert result.entities_stored == 4
        assert repo.count_edges() == 2
        names = [e.name for e in repo.get_all_entities()]
        assert names == ["add", "total", "tests", "adds"]
