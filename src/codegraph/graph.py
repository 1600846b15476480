"""Dependency graph over entity keys.

Adjacency is built from DependencyEdge rows (from_key -> [to_key]) and
fully materialized in memory. All traversals are iterative so deep chains
and fully cyclic graphs never hit the interpreter recursion limit.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Literal

import structlog

from codegraph.entities import DependencyEdge
from codegraph.store.repository import GraphRepository

logger = structlog.get_logger(__name__)

Direction = Literal["forward", "reverse"]


class DependencyGraph:
    """Directed graph of entity keys with cycle detection and traversal."""

    def __init__(self) -> None:
        self._forward: dict[str, list[str]] = {}
        self._reverse: dict[str, list[str]] = {}
        self._edges: list[DependencyEdge] = []

    @classmethod
    def from_edges(cls, edges: Iterable[DependencyEdge]) -> DependencyGraph:
        graph = cls()
        for edge in edges:
            graph.add_edge(edge)
        return graph

    @classmethod
    def from_repository(
        cls, repo: GraphRepository, where: str | None = None
    ) -> DependencyGraph:
        edges = repo.query_edges(where) if where else repo.get_all_edges()
        return cls.from_edges(edges)

    def _touch(self, key: str) -> None:
        self._forward.setdefault(key, [])
        self._reverse.setdefault(key, [])

    def add_node(self, key: str) -> None:
        self._touch(key)

    def add_edge(self, edge: DependencyEdge) -> None:
        self._touch(edge.from_key)
        self._touch(edge.to_key)
        self._forward[edge.from_key].append(edge.to_key)
        self._reverse[edge.to_key].append(edge.from_key)
        self._edges.append(edge)

    @property
    def nodes(self) -> list[str]:
        return list(self._forward)

    @property
    def edges(self) -> list[DependencyEdge]:
        return list(self._edges)

    def __contains__(self, key: object) -> bool:
        return key in self._forward

    def __len__(self) -> int:
        return len(self._forward)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def forward_dependencies(self, key: str) -> list[str]:
        """Keys this entity points at, without duplicates."""
        return list(dict.fromkeys(self._forward.get(key, ())))

    def reverse_dependencies(self, key: str) -> list[str]:
        """Keys pointing at this entity, without duplicates."""
        return list(dict.fromkeys(self._reverse.get(key, ())))

    def edges_for(self, keys: Iterable[str]) -> Iterator[DependencyEdge]:
        """Edges whose source is one of the given keys."""
        wanted = set(keys)
        return (e for e in self._edges if e.from_key in wanted)

    def detect_cycles(self) -> list[list[str]]:
        """Find cycles with a depth-first search over every node.

        Each cycle is the path suffix from the node that was found on the
        recursion stack back to the current node, so a self-loop is a
        one-node cycle. A global visited set means a disjoint cycle is
        reported once; cycles over the same node set are deduplicated.
        """
        visited: set[str] = set()
        position: dict[str, int] = {}  # node -> index in path while on stack
        seen: set[frozenset[str]] = set()
        cycles: list[list[str]] = []

        for start in self._forward:
            if start in visited:
                continue
            path = [start]
            position[start] = 0
            visited.add(start)
            stack = [iter(self._forward[start])]

            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    stack.pop()
                    del position[path.pop()]
                    continue
                if nxt in position:
                    cycle = path[position[nxt] :]
                    signature = frozenset(cycle)
                    if signature not in seen:
                        seen.add(signature)
                        cycles.append(cycle)
                elif nxt not in visited:
                    visited.add(nxt)
                    position[nxt] = len(path)
                    path.append(nxt)
                    stack.append(iter(self._forward[nxt]))

        if cycles:
            logger.debug(
                "cycles detected", count=len(cycles), nodes=len(self)
            )
        return cycles

    def has_cycles(self) -> bool:
        return bool(self.detect_cycles())

    def blast_radius(
        self,
        key: str,
        max_hops: int = 3,
        direction: Direction = "reverse",
    ) -> list[tuple[str, int]]:
        """Entities within max_hops of key, with their minimum distance.

        The default reverse direction answers "what is affected if this
        entity changes": callers, implementors and other dependents.
        Results are ordered by distance, then discovery order; the start
        key itself is excluded.
        """
        if max_hops <= 0 or key not in self:
            return []
        adjacency = self._reverse if direction == "reverse" else self._forward
        distances: dict[str, int] = {key: 0}
        queue: deque[str] = deque([key])
        while queue:
            node = queue.popleft()
            depth = distances[node]
            if depth >= max_hops:
                continue
            for neighbor in adjacency[node]:
                if neighbor not in distances:
                    distances[neighbor] = depth + 1
                    queue.append(neighbor)
        del distances[key]
        return list(distances.items())
