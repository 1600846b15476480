"""Reset commands - bring the store back to an unchanged baseline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from codegraph import console
from codegraph.cli._common import open_store, resolve_root
from codegraph.config import Settings, TestEntityMode


@dataclass
class ResetRebaseline:
    """Clear the store and re-ingest the codebase from disk.

    Run after the pending diff has been applied to the files.
    """

    test_entities: str | None = field(
        default=None,
        metadata={"help": "'store' or 'exclude' (or CODEGRAPH_TEST_ENTITIES)"},
    )
    directory: Path | None = field(
        default=None,
        metadata={"help": "Codebase root (default: current directory)"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the reset:rebaseline command."""
        from codegraph.extraction import ExtractionAdapter
        from codegraph.ingest import Ingestor
        from codegraph.temporal import StateResetManager

        root = resolve_root(self.directory)
        settings = Settings.from_env(root)
        mode = (
            TestEntityMode.parse(self.test_entities)
            if self.test_entities
            else settings.require_test_mode()
        )
        adapter = ExtractionAdapter(max_file_bytes=settings.max_file_bytes)

        with open_store(self.directory, self.db, create=True) as store:
            ingestor = Ingestor(store, mode, adapter=adapter)
            result = StateResetManager(store).rebaseline(root, ingestor)

        console.success("re-baselined")
        console.key_value("entities", result.entities_stored, indent=2)
        console.key_value("edges", result.edges_stored, indent=2)
        return 0


@dataclass
class ResetPromote:
    """Promote pending future code to current in place."""

    directory: Path | None = field(
        default=None,
        metadata={"help": "Directory with .codegraph database"},
    )
    db: Path | None = field(default=None, metadata={"help": "Database path"})

    def run(self) -> int:
        """Execute the reset:promote command."""
        from codegraph.temporal import StateResetManager

        with open_store(self.directory, self.db) as store:
            result = StateResetManager(store).promote()

        console.success(f"promoted {result.total} changes")
        console.key_value("created", len(result.created), indent=2)
        console.key_value("edited", len(result.edited), indent=2)
        console.key_value("deleted", len(result.deleted), indent=2)
        return 0
