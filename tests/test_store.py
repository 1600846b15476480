import pytest

from codegraph.entities import (
    DependencyEdge,
    Entity,
    EntityClass,
    LineRange,
    TemporalState,
)
from codegraph.errors import (
    ConfigurationError,
    EntityNotFoundError,
    RelationNotFoundError,
    StorageError,
)
from codegraph.store import (
    CODE_GRAPH,
    DEPENDENCY_EDGES,
    CodeGraphStore,
    GraphRepository,
    InMemoryRepository,
    MutableGraphStore,
)


def make_entity(
    name: str,
    start: int = 1,
    entity_class: EntityClass = EntityClass.CODE,
    action: str | None = None,
    file_path: str = "src/lib.rs",
) -> Entity:
    end = start + 2
    future = f"fn {name}() {{ todo!() }}" if action == "Edit" else None
    return Entity(
        key=f"rust:fn:{name}:src_lib_rs:{start}-{end}",
        kind="function",
        name=name,
        file_path=file_path,
        language="rust",
        line_range=LineRange(start, end),
        current_code=f"fn {name}() {{}}",
        future_code=future,
        entity_class=entity_class,
        temporal_state=TemporalState.for_action(action),
    )


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    if request.param == "sqlite":
        s = CodeGraphStore(tmp_path / "graph.db")
        yield s
        s.close()
    else:
        yield InMemoryRepository()


class TestProtocols:
    def test_both_backends_satisfy_protocols(self, store):
        assert isinstance(store, GraphRepository)
        assert isinstance(store, MutableGraphStore)


class TestEntities:
    def test_insert_and_get(self, store):
        entity = make_entity("calculate_sum", 10)
        store.insert_entity(entity)
        assert store.get_entity(entity.key) == entity

    def test_get_missing(self, store):
        assert store.get_entity("rust:fn:nope:src_lib_rs:1-2") is None

    def test_insertion_order_is_stable(self, store):
        names = ["zeta", "alpha", "mid"]
        store.insert_entities(
            make_entity(n, i * 10 + 1) for i, n in enumerate(names)
        )
        assert [e.name for e in store.get_all_entities()] == names

    def test_upsert_keeps_position(self, store):
        a, b = make_entity("a", 1), make_entity("b", 10)
        store.insert_entities([a, b])
        store.insert_entity(make_entity("a", 1, action="Edit"))
        entities = store.get_all_entities()
        assert [e.name for e in entities] == ["a", "b"]
        assert entities[0].future_code is not None

    def test_update(self, store):
        entity = make_entity("a")
        store.insert_entity(entity)
        store.update_entity(
            entity.with_state(TemporalState.for_action("Delete"))
        )
        assert store.get_entity(entity.key).future_action.value == "Delete"

    def test_update_missing(self, store):
        with pytest.raises(EntityNotFoundError):
            store.update_entity(make_entity("ghost"))

    def test_delete_missing(self, store):
        with pytest.raises(EntityNotFoundError):
            store.delete_entity("rust:fn:ghost:src_lib_rs:1-3")

    def test_delete_cascades_edges(self, store):
        a, b, c = make_entity("a", 1), make_entity("b", 5), make_entity("c", 9)
        store.insert_entities([a, b, c])
        store.insert_edges(
            [
                DependencyEdge(a.key, b.key, "calls"),
                DependencyEdge(b.key, c.key, "calls"),
                DependencyEdge(a.key, c.key, "calls"),
            ]
        )
        store.delete_entity(b.key, cascade_edges=True)
        edges = store.get_all_edges()
        assert [(e.from_key, e.to_key) for e in edges] == [(a.key, c.key)]

    def test_delete_without_cascade_keeps_edges(self, store):
        a, b = make_entity("a", 1), make_entity("b", 5)
        store.insert_entities([a, b])
        store.insert_edges([DependencyEdge(a.key, b.key, "calls")])
        store.delete_entity(b.key)
        assert len(store.get_all_edges()) == 1

    def test_changed_entities(self, store):
        store.insert_entities(
            [
                make_entity("a", 1),
                make_entity("b", 5, action="Edit"),
                make_entity("c", 9, action="Delete"),
            ]
        )
        assert [e.name for e in store.get_changed_entities()] == ["b", "c"]

    def test_query_by_class(self, store):
        store.insert_entities(
            [
                make_entity("a", 1),
                make_entity("t", 5, EntityClass.TEST),
                make_entity("b", 9),
            ]
        )
        tests = store.query_entities("entity_class = 'TEST'")
        assert [e.name for e in tests] == ["t"]
        code = store.query_entities("entity_class = 'CODE'")
        assert [e.name for e in code] == ["a", "b"]

    def test_query_pending(self, store):
        store.insert_entities(
            [make_entity("a", 1), make_entity("b", 5, action="Edit")]
        )
        pending = store.query_entities("future_action != null")
        assert [e.name for e in pending] == ["b"]

    def test_query_contains(self, store):
        store.insert_entities(
            [
                make_entity("a", 1, file_path="src/lib.rs"),
                make_entity("b", 5, file_path="src/net/http.rs"),
            ]
        )
        found = store.query_entities("file_path ~ net/")
        assert [e.name for e in found] == ["b"]

    def test_query_unquoted_number_against_text(self, store):
        store.insert_entities(
            [
                make_entity("a", 1, file_path="10"),
                make_entity("b", 5, file_path="src/lib.rs"),
            ]
        )
        found = store.query_entities("file_path = 10")
        assert [e.name for e in found] == ["a"]
        rest = store.query_entities("file_path != 10")
        assert [e.name for e in rest] == ["b"]

    def test_query_quoted_number_against_integer(self, store):
        store.insert_entities(
            [make_entity("a", 1), make_entity("b", 5, action="Delete")]
        )
        found = store.query_entities("future_ind = '0'")
        assert [e.name for e in found] == ["b"]

    def test_query_requires_filter(self, store):
        with pytest.raises(ConfigurationError):
            store.query_entities("")

    def test_clear(self, store):
        store.insert_entity(make_entity("a"))
        store.insert_edges([DependencyEdge("x", "y", "calls")])
        store.clear()
        assert store.get_all_entities() == []
        assert store.get_all_edges() == []


class TestEdges:
    def test_duplicates_ignored(self, store):
        edge = DependencyEdge("a", "b", "calls", "src/lib.rs:3")
        assert store.insert_edges([edge, edge]) == 1
        assert store.insert_edges([edge]) == 0
        assert len(store.get_all_edges()) == 1

    def test_same_pair_different_type(self, store):
        store.insert_edges(
            [
                DependencyEdge("a", "b", "calls"),
                DependencyEdge("a", "b", "implements"),
            ]
        )
        assert len(store.get_all_edges()) == 2

    def test_query_edges(self, store):
        store.insert_edges(
            [
                DependencyEdge("a", "b", "calls"),
                DependencyEdge("b", "c", "implements"),
            ]
        )
        found = store.query_edges("edge_type = 'implements'")
        assert [(e.from_key, e.to_key) for e in found] == [("b", "c")]
        assert len(store.query_edges("ALL")) == 2

    def test_empty_edges_relation(self, store):
        store.insert_entity(make_entity("lonely"))
        assert store.get_all_edges() == []
        assert store.query_edges("ALL") == []


class TestSqliteSchema:
    def test_relations_created(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db") as store:
            assert store.list_relations() == [CODE_GRAPH, DEPENDENCY_EDGES]

    def test_missing_relation(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db", create=False) as store:
            with pytest.raises(RelationNotFoundError) as exc:
                store.get_all_entities()
            assert exc.value.relation == CODE_GRAPH
            with pytest.raises(RelationNotFoundError) as exc:
                store.get_all_edges()
            assert exc.value.relation == DEPENDENCY_EDGES

    def test_missing_relation_is_storage_error(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db", create=False) as store:
            with pytest.raises(StorageError):
                store.count_entities()

    def test_only_code_graph_created(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db", create=False) as store:
            store.create_code_graph_schema()
            assert store.get_all_entities() == []
            with pytest.raises(RelationNotFoundError):
                store.get_all_edges()

    def test_drop_schema(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db") as store:
            store.drop_schema()
            assert store.list_relations() == []

    def test_persists_across_connections(self, tmp_path):
        db = tmp_path / "g.db"
        entity = make_entity("kept")
        with CodeGraphStore(db) as store:
            store.insert_entity(entity)
            store.insert_edges([DependencyEdge(entity.key, "x", "calls")])
        with CodeGraphStore(db, create=False) as store:
            assert store.get_entity(entity.key) == entity
            assert store.count_edges() == 1
            assert store.get_forward_dependencies(entity.key) == ["x"]
            assert store.get_reverse_dependencies("x") == [entity.key]

    def test_in_memory_database(self):
        with CodeGraphStore(":memory:") as store:
            store.insert_entity(make_entity("m"))
            assert store.count_entities() == 1

    def test_failed_delete_leaves_rows(self, tmp_path):
        with CodeGraphStore(tmp_path / "g.db") as store:
            good = make_entity("good")
            store.insert_entity(good)
            with pytest.raises(EntityNotFoundError):
                store.delete_entity("missing")
            assert store.count_entities() == 1
