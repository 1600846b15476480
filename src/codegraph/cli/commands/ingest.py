"""Ingest command - load a codebase snapshot into the graph store."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from codegraph import console
from codegraph.cli._common import resolve_db, resolve_root
from codegraph.config import Settings, TestEntityMode


@dataclass
class Ingest:
    """Extract entities and dependencies from a directory."""

    directory: Path | None = field(
        default=None,
        metadata={"help": "Codebase root (default: current directory)"},
    )
    test_entities: str | None = field(
        default=None,
        metadata={
            "help": "What to do with TEST entities: 'store' or 'exclude' "
            "(falls back to CODEGRAPH_TEST_ENTITIES)"
        },
    )
    patterns: Path | None = field(
        default=None,
        metadata={"help": "YAML file with extra language patterns"},
    )
    db: Path | None = field(
        default=None,
        metadata={"help": "Database path (default: <root>/.codegraph)"},
    )
    clear: bool = field(
        default=False,
        metadata={"help": "Drop existing relations before ingesting"},
    )

    def run(self) -> int:
        """Execute the ingest command."""
        from codegraph.extraction import ExtractionAdapter, PatternRegistry
        from codegraph.ingest import Ingestor
        from codegraph.store import CodeGraphStore

        root = resolve_root(self.directory)
        if not root.is_dir():
            console.error(f"not a directory: {root}")
            return 1

        settings = Settings.from_env(root)
        mode = (
            TestEntityMode.parse(self.test_entities)
            if self.test_entities
            else settings.require_test_mode()
        )
        registry = (
            PatternRegistry.from_yaml(self.patterns)
            if self.patterns
            else PatternRegistry.default()
        )
        adapter = ExtractionAdapter(
            registry=registry, max_file_bytes=settings.max_file_bytes
        )

        with CodeGraphStore(resolve_db(self.directory, self.db)) as store:
            if self.clear:
                store.clear()
            result = Ingestor(store, mode, adapter=adapter).ingest(root)

        console.header("Ingest Complete")
        console.key_value("files scanned", result.files_scanned, indent=2)
        console.key_value("files failed", result.files_failed, indent=2)
        console.key_value("entities", result.entities_stored, indent=2)
        console.key_value("tests stored", result.tests_stored, indent=2)
        console.key_value("tests excluded", result.tests_excluded, indent=2)
        console.key_value("edges", result.edges_stored, indent=2)
        console.key_value(
            "duration", f"{result.duration_ms:.1f}ms", indent=2
        )
        for path, err in result.errors[:10]:
            console.warning(f"{path}: {err}")
        return 0
