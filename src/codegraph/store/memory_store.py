"""Dict-backed store, mostly for tests and one-shot pipelines."""

from __future__ import annotations

from collections.abc import Iterable

from codegraph.entities import DependencyEdge, Entity
from codegraph.errors import EntityNotFoundError
from codegraph.store.filters import edge_filter, entity_filter


class InMemoryRepository:
    """Same query surface as CodeGraphStore without a database.

    Entities keep insertion order; re-inserting an existing key replaces
    it in place.
    """

    def __init__(
        self,
        entities: Iterable[Entity] = (),
        edges: Iterable[DependencyEdge] = (),
    ):
        self._entities: dict[str, Entity] = {}
        self._edges: dict[tuple[str, str, str], DependencyEdge] = {}
        for entity in entities:
            self.insert_entity(entity)
        self.insert_edges(edges)

    def get_all_entities(self) -> list[Entity]:
        return list(self._entities.values())

    def query_entities(self, where: str) -> list[Entity]:
        flt = entity_filter(where)
        if flt.is_all:
            return self.get_all_entities()
        return [e for e in self._entities.values() if flt.matches(e.to_row())]

    def get_all_edges(self) -> list[DependencyEdge]:
        return list(self._edges.values())

    def query_edges(self, where: str) -> list[DependencyEdge]:
        flt = edge_filter(where)
        matched = []
        for edge in self._edges.values():
            row = edge.to_dict()
            row["source_location"] = edge.source_location
            if flt.matches(row):
                matched.append(edge)
        return matched

    def get_entity(self, key: str) -> Entity | None:
        return self._entities.get(key)

    def create_schema(self) -> None:
        """Nothing to create; both relations always exist in memory."""

    def insert_entity(self, entity: Entity) -> None:
        self._entities[entity.key] = entity

    def insert_entities(self, entities: Iterable[Entity]) -> int:
        count = 0
        for entity in entities:
            self.insert_entity(entity)
            count += 1
        return count

    def update_entity(self, entity: Entity) -> None:
        if entity.key not in self._entities:
            raise EntityNotFoundError(entity.key)
        self._entities[entity.key] = entity

    def delete_entity(self, key: str, cascade_edges: bool = False) -> None:
        if self._entities.pop(key, None) is None:
            raise EntityNotFoundError(key)
        if cascade_edges:
            self._edges = {
                k: e
                for k, e in self._edges.items()
                if key not in (e.from_key, e.to_key)
            }

    def count_entities(self) -> int:
        return len(self._entities)

    def insert_edge(self, edge: DependencyEdge) -> None:
        self.insert_edges([edge])

    def insert_edges(self, edges: Iterable[DependencyEdge]) -> int:
        inserted = 0
        for edge in edges:
            ident = (edge.from_key, edge.to_key, edge.edge_type)
            if ident not in self._edges:
                self._edges[ident] = edge
                inserted += 1
        return inserted

    def get_forward_dependencies(self, key: str) -> list[str]:
        return [e.to_key for e in self._edges.values() if e.from_key == key]

    def get_reverse_dependencies(self, key: str) -> list[str]:
        return [e.from_key for e in self._edges.values() if e.to_key == key]

    def count_edges(self) -> int:
        return len(self._edges)

    def get_changed_entities(self) -> list[Entity]:
        return [
            e for e in self._entities.values() if e.future_action is not None
        ]

    def clear(self) -> None:
        self._entities.clear()
        self._edges.clear()
