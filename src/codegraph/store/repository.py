"""Storage-backend interfaces.

Readers (diff generator, export engine) depend only on GraphRepository.
The write path additionally needs MutableGraphStore.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from codegraph.entities import DependencyEdge, Entity


@runtime_checkable
class GraphRepository(Protocol):
    """Four read queries; any store answering them is substitutable."""

    def get_all_entities(self) -> list[Entity]: ...

    def query_entities(self, where: str) -> list[Entity]: ...

    def get_all_edges(self) -> list[DependencyEdge]: ...

    def query_edges(self, where: str) -> list[DependencyEdge]: ...


@runtime_checkable
class MutableGraphStore(GraphRepository, Protocol):
    def create_schema(self) -> None: ...

    def get_entity(self, key: str) -> Entity | None: ...

    def insert_entity(self, entity: Entity) -> None: ...

    def insert_entities(self, entities: Iterable[Entity]) -> int: ...

    def update_entity(self, entity: Entity) -> None: ...

    def delete_entity(self, key: str, cascade_edges: bool = False) -> None: ...

    def insert_edges(self, edges: Iterable[DependencyEdge]) -> int: ...

    def get_changed_entities(self) -> list[Entity]: ...

    def clear(self) -> None: ...
