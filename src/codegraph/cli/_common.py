"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path

from codegraph.config import DEFAULT_DATA_DIR, DEFAULT_DB_NAME, Settings
from codegraph.store import CodeGraphStore


def resolve_root(directory: Path | None) -> Path:
    return directory.resolve() if directory else Path.cwd()


def resolve_db(directory: Path | None, db: Path | None) -> Path:
    """Explicit --db wins, then CODEGRAPH_DB, then <root>/.codegraph."""
    if db is not None:
        return db
    return Settings.from_env(resolve_root(directory)).db_path


def open_store(
    directory: Path | None,
    db: Path | None,
    create: bool = False,
) -> CodeGraphStore:
    """Open the graph database.

    Read commands pass create=False so a missing database surfaces as a
    relation-not-found error instead of an empty result.
    """
    return CodeGraphStore(resolve_db(directory, db), create=create)


__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_DB_NAME",
    "open_store",
    "resolve_db",
    "resolve_root",
]
