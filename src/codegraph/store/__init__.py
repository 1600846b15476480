"""Temporal state store: relations, filters and repository backends."""

from codegraph.store.filters import (
    EDGE_COLUMNS,
    ENTITY_COLUMNS,
    Condition,
    Filter,
    edge_filter,
    entity_filter,
    parse_filter,
)
from codegraph.store.memory_store import InMemoryRepository
from codegraph.store.repository import GraphRepository, MutableGraphStore
from codegraph.store.sqlite_store import (
    CODE_GRAPH,
    DEPENDENCY_EDGES,
    CodeGraphStore,
)

__all__ = [
    "CODE_GRAPH",
    "DEPENDENCY_EDGES",
    "EDGE_COLUMNS",
    "ENTITY_COLUMNS",
    "CodeGraphStore",
    "Condition",
    "Filter",
    "GraphRepository",
    "InMemoryRepository",
    "MutableGraphStore",
    "edge_filter",
    "entity_filter",
    "parse_filter",
]
