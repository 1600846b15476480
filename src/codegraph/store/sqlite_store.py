"""SQLite-backed temporal state store.

Two relations:
- CodeGraph: one row per entity (current/future code, temporal flags)
- DependencyEdges: directed edges between entity keys

Both are created together by create_schema(); DependencyEdges exists even
when a codebase has no detected dependencies. Querying a relation that was
never created raises RelationNotFoundError.
"""

from __future__ import annotations

import re
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog

from codegraph.entities import DependencyEdge, Entity
from codegraph.errors import (
    EntityNotFoundError,
    RelationNotFoundError,
    StorageError,
)
from codegraph.store.filters import ENTITY_COLUMNS, edge_filter, entity_filter

logger = structlog.get_logger(__name__)

CODE_GRAPH = "CodeGraph"
DEPENDENCY_EDGES = "DependencyEdges"
RELATIONS = (CODE_GRAPH, DEPENDENCY_EDGES)

MEMORY_DB = ":memory:"

_NO_SUCH_TABLE_RE = re.compile(r"no such table: (?:main\.)?(\w+)")

_CODE_GRAPH_DDL = f"""
CREATE TABLE IF NOT EXISTS {CODE_GRAPH} (
    key TEXT PRIMARY KEY,
    current_code TEXT,
    future_code TEXT,
    interface_signature TEXT NOT NULL,
    tdd_classification TEXT NOT NULL,
    lsp_metadata TEXT,
    current_ind INTEGER NOT NULL,
    future_ind INTEGER NOT NULL,
    future_action TEXT,
    file_path TEXT NOT NULL,
    language TEXT NOT NULL,
    last_modified TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_class TEXT NOT NULL DEFAULT 'CODE'
);
CREATE INDEX IF NOT EXISTS idx_codegraph_file ON {CODE_GRAPH}(file_path);
CREATE INDEX IF NOT EXISTS idx_codegraph_action
    ON {CODE_GRAPH}(future_action);
"""

_EDGES_DDL = f"""
CREATE TABLE IF NOT EXISTS {DEPENDENCY_EDGES} (
    from_key TEXT NOT NULL,
    to_key TEXT NOT NULL,
    edge_type TEXT NOT NULL,
    source_location TEXT,
    UNIQUE(from_key, to_key, edge_type)
);
CREATE INDEX IF NOT EXISTS idx_edges_from ON {DEPENDENCY_EDGES}(from_key);
CREATE INDEX IF NOT EXISTS idx_edges_to ON {DEPENDENCY_EDGES}(to_key);
"""

_ENTITY_SELECT = f"SELECT {', '.join(ENTITY_COLUMNS)} FROM {CODE_GRAPH}"
_EDGE_SELECT = (
    f"SELECT from_key, to_key, edge_type, source_location "
    f"FROM {DEPENDENCY_EDGES}"
)


def _edge_from_row(row: sqlite3.Row) -> DependencyEdge:
    return DependencyEdge(
        from_key=row["from_key"],
        to_key=row["to_key"],
        edge_type=row["edge_type"],
        source_location=row["source_location"],
    )


class CodeGraphStore:
    """Entity and edge relations in a single SQLite database.

    Pass ``":memory:"`` for a throwaway store. With ``create=False`` the
    schema is left alone, so an uninitialized database reports missing
    relations instead of silently creating them.
    """

    def __init__(self, db_path: Path | str, create: bool = True):
        self.db_path = str(db_path)
        if self.db_path != MEMORY_DB:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        if create:
            self.create_schema()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(
                    self.db_path,
                    check_same_thread=False,
                    isolation_level="DEFERRED",
                )
            except sqlite3.Error as e:
                raise StorageError(
                    f"cannot open {self.db_path}: {e}"
                ) from e
            self._conn.row_factory = sqlite3.Row
            if self.db_path != MEMORY_DB:
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
        return self._conn

    @contextmanager
    def _errors(self) -> Iterator[None]:
        """Translate sqlite3 failures into the storage error family."""
        try:
            yield
        except sqlite3.OperationalError as e:
            m = _NO_SUCH_TABLE_RE.search(str(e))
            if m:
                raise RelationNotFoundError(m.group(1), str(e)) from e
            raise StorageError(str(e)) from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """One atomic unit: commit on success, roll back on error."""
        with self._errors(), self.conn:
            yield self.conn

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[Any]:
        with self._errors():
            return self.conn.execute(sql, tuple(params)).fetchall()

    # -- schema -----------------------------------------------------------

    def create_schema(self) -> None:
        """Create both relations (idempotent)."""
        self.create_code_graph_schema()
        self.create_dependency_edges_schema()

    def create_code_graph_schema(self) -> None:
        with self._errors():
            self.conn.executescript(_CODE_GRAPH_DDL)

    def create_dependency_edges_schema(self) -> None:
        with self._errors():
            self.conn.executescript(_EDGES_DDL)

    def list_relations(self) -> list[str]:
        rows = self._query(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "ORDER BY name"
        )
        names = {row["name"] for row in rows}
        return [r for r in RELATIONS if r in names]

    def drop_schema(self) -> None:
        with self.transaction() as conn:
            for relation in RELATIONS:
                conn.execute(f"DROP TABLE IF EXISTS {relation}")
        logger.debug("dropped relations", db=self.db_path)

    def clear(self) -> None:
        """Drop both relations and recreate them empty."""
        self.drop_schema()
        self.create_schema()

    # -- entities ---------------------------------------------------------

    def insert_entity(self, entity: Entity) -> None:
        """Insert or replace an entity row, keeping its original position."""
        with self.transaction() as conn:
            self._upsert(conn, entity)

    def insert_entities(self, entities: Iterable[Entity]) -> int:
        count = 0
        with self.transaction() as conn:
            for entity in entities:
                self._upsert(conn, entity)
                count += 1
        return count

    def _upsert(self, conn: sqlite3.Connection, entity: Entity) -> None:
        row = entity.to_row()
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in row if c != "key"
        )
        conn.execute(
            f"INSERT INTO {CODE_GRAPH} ({cols}) VALUES ({marks}) "
            f"ON CONFLICT(key) DO UPDATE SET {updates}",
            tuple(row.values()),
        )

    def update_entity(self, entity: Entity) -> None:
        row = entity.to_row()
        key = row.pop("key")
        assignments = ", ".join(f"{c} = ?" for c in row)
        with self.transaction() as conn:
            cur = conn.execute(
                f"UPDATE {CODE_GRAPH} SET {assignments} WHERE key = ?",
                (*row.values(), key),
            )
            if cur.rowcount == 0:
                raise EntityNotFoundError(key)

    def delete_entity(self, key: str, cascade_edges: bool = False) -> None:
        with self.transaction() as conn:
            cur = conn.execute(
                f"DELETE FROM {CODE_GRAPH} WHERE key = ?", (key,)
            )
            if cur.rowcount == 0:
                raise EntityNotFoundError(key)
            if cascade_edges:
                conn.execute(
                    f"DELETE FROM {DEPENDENCY_EDGES} "
                    "WHERE from_key = ? OR to_key = ?",
                    (key, key),
                )

    def get_entity(self, key: str) -> Entity | None:
        rows = self._query(f"{_ENTITY_SELECT} WHERE key = ?", (key,))
        return Entity.from_row(rows[0]) if rows else None

    def get_all_entities(self) -> list[Entity]:
        rows = self._query(f"{_ENTITY_SELECT} ORDER BY rowid")
        return [Entity.from_row(r) for r in rows]

    def query_entities(self, where: str) -> list[Entity]:
        clause, params = entity_filter(where).to_sql()
        rows = self._query(
            f"{_ENTITY_SELECT} WHERE {clause} ORDER BY rowid", params
        )
        return [Entity.from_row(r) for r in rows]

    def get_changed_entities(self) -> list[Entity]:
        """Entities with a pending action, in insertion order."""
        rows = self._query(
            f"{_ENTITY_SELECT} WHERE future_action IS NOT NULL "
            "ORDER BY rowid"
        )
        return [Entity.from_row(r) for r in rows]

    def count_entities(self) -> int:
        rows = self._query(f"SELECT COUNT(*) AS n FROM {CODE_GRAPH}")
        return rows[0]["n"]

    # -- edges ------------------------------------------------------------

    def insert_edge(self, edge: DependencyEdge) -> None:
        self.insert_edges([edge])

    def insert_edges(self, edges: Iterable[DependencyEdge]) -> int:
        """Insert edges in one transaction; duplicates are ignored."""
        inserted = 0
        with self.transaction() as conn:
            for edge in edges:
                cur = conn.execute(
                    f"INSERT OR IGNORE INTO {DEPENDENCY_EDGES} "
                    "(from_key, to_key, edge_type, source_location) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        edge.from_key,
                        edge.to_key,
                        edge.edge_type,
                        edge.source_location,
                    ),
                )
                inserted += cur.rowcount
        return inserted

    def get_all_edges(self) -> list[DependencyEdge]:
        rows = self._query(f"{_EDGE_SELECT} ORDER BY rowid")
        return [_edge_from_row(r) for r in rows]

    def query_edges(self, where: str) -> list[DependencyEdge]:
        clause, params = edge_filter(where).to_sql()
        rows = self._query(
            f"{_EDGE_SELECT} WHERE {clause} ORDER BY rowid", params
        )
        return [_edge_from_row(r) for r in rows]

    def get_forward_dependencies(self, key: str) -> list[str]:
        rows = self._query(
            f"SELECT to_key FROM {DEPENDENCY_EDGES} WHERE from_key = ? "
            "ORDER BY rowid",
            (key,),
        )
        return [r["to_key"] for r in rows]

    def get_reverse_dependencies(self, key: str) -> list[str]:
        rows = self._query(
            f"SELECT from_key FROM {DEPENDENCY_EDGES} WHERE to_key = ? "
            "ORDER BY rowid",
            (key,),
        )
        return [r["from_key"] for r in rows]

    def count_edges(self) -> int:
        rows = self._query(f"SELECT COUNT(*) AS n FROM {DEPENDENCY_EDGES}")
        return rows[0]["n"]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> CodeGraphStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
