"""Tests for dependency graph traversal and cycle detection."""

import pytest

from codegraph.entities import DependencyEdge
from codegraph.graph import DependencyGraph
from codegraph.store import InMemoryRepository


def graph_of(*pairs: tuple[str, str], edge_type: str = "calls"):
    return DependencyGraph.from_edges(
        DependencyEdge(a, b, edge_type) for a, b in pairs
    )


class TestDependencies:
    def test_forward_and_reverse(self):
        g = graph_of(("a", "b"), ("a", "c"), ("d", "b"))
        assert g.forward_dependencies("a") == ["b", "c"]
        assert g.reverse_dependencies("b") == ["a", "d"]
        assert g.forward_dependencies("b") == []

    def test_duplicate_targets_collapse(self):
        g = DependencyGraph.from_edges(
            [
                DependencyEdge("a", "b", "calls"),
                DependencyEdge("a", "b", "implements"),
            ]
        )
        assert g.forward_dependencies("a") == ["b"]
        assert g.edge_count == 2

    def test_unknown_key(self):
        g = graph_of(("a", "b"))
        assert g.forward_dependencies("zzz") == []
        assert "zzz" not in g

    def test_nodes(self):
        g = graph_of(("a", "b"))
        g.add_node("lonely")
        assert sorted(g.nodes) == ["a", "b", "lonely"]
        assert len(g) == 3

    def test_edges_for(self):
        g = graph_of(("a", "b"), ("b", "c"), ("c", "a"))
        assert [e.to_key for e in g.edges_for(["a", "c"])] == ["b", "a"]

    def test_from_repository_with_filter(self):
        repo = InMemoryRepository(
            edges=[
                DependencyEdge("a", "b", "calls"),
                DependencyEdge("b", "c", "implements"),
            ]
        )
        g = DependencyGraph.from_repository(repo, "edge_type = 'calls'")
        assert g.edge_count == 1
        assert DependencyGraph.from_repository(repo).edge_count == 2


class TestCycles:
    def test_two_node_cycle(self):
        cycles = graph_of(("a", "b"), ("b", "a")).detect_cycles()
        assert len(cycles) == 1
        assert set(cycles[0]) == {"a", "b"}

    def test_three_node_cycle(self):
        cycles = graph_of(("a", "b"), ("b", "c"), ("c", "a")).detect_cycles()
        assert len(cycles) == 1
        assert set(cycles[0]) == {"a", "b", "c"}
        assert len(cycles[0]) == 3

    def test_cycle_order_follows_edges(self):
        g = graph_of(("a", "b"), ("b", "c"), ("c", "a"))
        cycle = g.detect_cycles()[0]
        for i, node in enumerate(cycle):
            nxt = cycle[(i + 1) % len(cycle)]
            assert nxt in g.forward_dependencies(node)

    def test_dag_has_no_cycles(self):
        g = graph_of(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"))
        assert g.detect_cycles() == []
        assert not g.has_cycles()

    def test_self_loop(self):
        cycles = graph_of(("fact", "fact")).detect_cycles()
        assert cycles == [["fact"]]

    def test_disjoint_cycles(self):
        g = graph_of(
            ("a", "b"), ("b", "a"), ("x", "y"), ("y", "x"), ("a", "x")
        )
        cycles = g.detect_cycles()
        assert sorted(sorted(c) for c in cycles) == [["a", "b"], ["x", "y"]]

    def test_cycle_reachable_from_tail(self):
        g = graph_of(("entry", "a"), ("a", "b"), ("b", "a"))
        cycles = g.detect_cycles()
        assert len(cycles) == 1
        assert "entry" not in cycles[0]

    def test_empty_graph(self):
        assert DependencyGraph().detect_cycles() == []

    def test_long_chain_does_not_recurse(self):
        pairs = [(f"n{i}", f"n{i + 1}") for i in range(5000)]
        assert not graph_of(*pairs).has_cycles()


class TestBlastRadius:
    @pytest.fixture
    def graph(self):
        # caller3 -> caller2 -> caller1 -> core -> dep
        return graph_of(
            ("caller1", "core"),
            ("caller2", "caller1"),
            ("caller3", "caller2"),
            ("core", "dep"),
            ("other", "core"),
        )

    def test_reverse_default(self, graph):
        hits = graph.blast_radius("core")
        assert hits == [
            ("caller1", 1),
            ("other", 1),
            ("caller2", 2),
            ("caller3", 3),
        ]

    def test_hop_limit(self, graph):
        hits = dict(graph.blast_radius("core", max_hops=1))
        assert hits == {"caller1": 1, "other": 1}

    def test_forward(self, graph):
        assert graph.blast_radius("caller2", direction="forward") == [
            ("caller1", 1),
            ("core", 2),
            ("dep", 3),
        ]

    def test_zero_hops(self, graph):
        assert graph.blast_radius("core", max_hops=0) == []

    def test_unknown_key(self, graph):
        assert graph.blast_radius("nowhere") == []

    def test_cycle_terminates(self):
        g = graph_of(("a", "b"), ("b", "a"))
        assert g.blast_radius("a", max_hops=10) == [("b", 1)]
